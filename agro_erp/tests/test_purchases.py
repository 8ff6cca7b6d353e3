import pytest

from agro_erp.services import PurchaseService

USER = 'compras@agro.test'


@pytest.fixture
def seeded(make_product, make_supplier):
    return {
        'product_id': make_product(sku='SEM-01', name='Semilla de maíz', category='SEMILLA', price=150),
        'supplier_id': make_supplier(credit_limit=5000),
    }


def order(seeded, quantity=10, cost=100, status='Pendiente', payment_method='Efectivo', **extra):
    values = {
        'supplier_id': seeded['supplier_id'],
        'branch_id': 'matriz',
        'date': '2024-03-01',
        'items': [{'product_id': seeded['product_id'], 'quantity': quantity, 'cost': cost}],
        'associated_costs': [{'concept': 'Flete', 'amount': 200, 'prorate': True}],
        'payment_method': payment_method,
        'status': status,
    }
    values.update(extra)
    return values


def supplier_credit(container, supplier_id):
    return container.counterparty_service.get_counterparty('suppliers', supplier_id)['credit_used']


def test_completed_purchase_creates_lots_at_real_cost(container, seeded):
    result = container.purchase_service.save_purchase(order(seeded, status='Completada'), user=USER)

    assert result['ok'], result
    assert result['total'] == 1200
    assert len(result['lots']) == 1
    lots = container.inventory_service.list_lots(sku='SEM-01')
    assert len(lots) == 1
    assert lots[0]['quantity'] == 10
    assert lots[0]['unit_price'] == 120
    assert lots[0]['entry_date'] == '2024-03-01'
    assert lots[0]['purchase_id'] == result['id']
    assert lots[0]['lot'].startswith('LOTE-')
    assert container.product_service.get_product(seeded['product_id'])['cost'] == 120
    assert result['purchase']['supplier_name'] == 'Agroquímicos del Bajío'
    assert result['purchase']['items'][0]['real_cost'] == 120


def test_conversion_factor_multiplies_lot_quantity(container, make_product, make_supplier):
    seeded = {
        'product_id': make_product(sku='GRA-01', name='Granel', category='SEMILLA', conversion_factor=20),
        'supplier_id': make_supplier(),
    }
    result = container.purchase_service.save_purchase(order(seeded, quantity=2, status='Completada'))
    assert result['lots'][0]['quantity'] == 40


def test_pending_purchase_creates_no_lots_until_completed(container, seeded):
    saved = container.purchase_service.save_purchase(order(seeded), user=USER)
    assert saved['lots'] == []
    assert container.inventory_service.list_lots() == []

    completed = container.purchase_service.change_status(saved['id'], 'Completada', USER)
    assert completed['ok'], completed
    assert len(completed['lots']) == 1

    # Re-guardar una compra completada no duplica lotes
    again = container.purchase_service.save_purchase(
        order(seeded, status='Completada', notes='factura recibida'), saved['id'], USER
    )
    assert again['ok'], again
    assert again['lots'] == []
    assert len(container.inventory_service.list_lots()) == 1


def test_completed_purchase_cannot_change_status(container, seeded):
    saved = container.purchase_service.save_purchase(order(seeded, status='Completada'))
    result = container.purchase_service.change_status(saved['id'], 'Cancelada', USER)
    assert result['code'] == 'TRANSICION_INVALIDA'


def test_credit_purchase_charges_only_the_difference(container, seeded):
    supplier_id = seeded['supplier_id']
    saved = container.purchase_service.save_purchase(order(seeded, payment_method='Credito'), user=USER)
    assert saved['ok'], saved
    assert supplier_credit(container, supplier_id) == 1200

    edited = container.purchase_service.save_purchase(
        order(seeded, quantity=20, payment_method='Credito'), saved['id'], USER
    )
    assert edited['ok'], edited
    assert edited['total'] == 2200
    assert supplier_credit(container, supplier_id) == 2200

    cash = container.purchase_service.save_purchase(order(seeded, quantity=20), saved['id'], USER)
    assert cash['ok'], cash
    assert supplier_credit(container, supplier_id) == 0
    assert container.audit_service.search_logs(log_type='CREDITO')


def test_cancelling_releases_credit_and_locks_purchase(container, seeded):
    saved = container.purchase_service.save_purchase(order(seeded, payment_method='Credito'), user=USER)
    cancelled = container.purchase_service.change_status(saved['id'], 'Cancelada', USER)
    assert cancelled['ok'], cancelled
    assert supplier_credit(container, seeded['supplier_id']) == 0
    assert cancelled['purchase']['previous_status'] == 'Pendiente'

    edit = container.purchase_service.save_purchase(order(seeded), saved['id'], USER)
    assert edit['code'] == 'TRANSICION_INVALIDA'


def test_credit_over_limit_rejected_without_writes(container, seeded):
    result = container.purchase_service.save_purchase(
        order(seeded, quantity=60, payment_method='Credito', status='Completada'), user=USER
    )
    assert result['code'] == 'CREDITO_INSUFICIENTE'
    assert container.purchase_service.list_purchases() == []
    assert container.inventory_service.list_lots() == []
    assert supplier_credit(container, seeded['supplier_id']) == 0


def test_delete_releases_charged_credit(container, seeded):
    saved = container.purchase_service.save_purchase(order(seeded, payment_method='Credito'))
    assert container.purchase_service.delete_purchase(saved['id'], USER)['ok']
    assert supplier_credit(container, seeded['supplier_id']) == 0
    assert container.purchase_service.get_purchase(saved['id']) is None


def test_unknown_supplier(container, seeded):
    result = container.purchase_service.save_purchase(order(seeded, supplier_id='no-existe'))
    assert result['code'] == 'NO_ENCONTRADO'


def test_quote_must_be_approved_and_unused(container, seeded):
    quotes = container.quotation_service
    created = quotes.create_quote({
        'quote_number': 'COT-001',
        'supplier_id': seeded['supplier_id'],
        'date': '2024-02-20',
        'items': [{'product_id': seeded['product_id'], 'price': 98}],
    })
    quote_id = created['id']

    pending = container.purchase_service.save_purchase(order(seeded, quote_id=quote_id))
    assert pending['code'] == 'VALIDACION'

    assert quotes.approve(quote_id)['ok']
    assert quotes.approved_unused()[0]['id'] == quote_id
    first = container.purchase_service.save_purchase(order(seeded, quote_id=quote_id))
    assert first['ok'], first
    assert quotes.approved_unused() == []

    second = container.purchase_service.save_purchase(order(seeded, quote_id=quote_id))
    assert second['code'] == 'VALIDACION'
    assert second['error'] == 'La cotización ya fue usada en otra compra.'


def test_kpis(container, seeded):
    container.purchase_service.save_purchase(order(seeded, status='Completada'))
    pending = container.purchase_service.save_purchase(order(seeded))
    cancelled = container.purchase_service.save_purchase(order(seeded))
    container.purchase_service.change_status(cancelled['id'], 'Cancelada')

    kpis = container.purchase_service.kpis()
    assert kpis == {'total': 3, 'completed': 1, 'pending': 1, 'cancelled': 1, 'total_amount': 2400}
    assert pending['ok']


def test_request_logistics_creates_pickup(container, seeded):
    saved = container.purchase_service.save_purchase(order(seeded))
    result = container.purchase_service.request_logistics(saved['id'], USER)

    assert result['ok'], result
    assert result['folio'].startswith('REC-')
    assert result['whatsapp_url'] is None
    pickup = container.store.collection('pickups').get(result['pickup_id'])
    assert pickup['origin'] == 'Carretera 45 km 3'
    assert pickup['status'] == 'Programada'
    assert pickup['purchase_order_id'] == saved['id']
    assert container.purchase_service.get_purchase(saved['id'])['logistics_status'] == 'Solicitada'
    assert container.notification_service.list_for(USER)[0]['icon_name'] == 'Truck'

    again = container.purchase_service.request_logistics(saved['id'], USER)
    assert again['code'] == 'TRANSICION_INVALIDA'


def test_whatsapp_link_when_phone_configured(container, seeded):
    branch = container.branch_service.create_branch({'name': 'Matriz León'})
    values = order(seeded, branch_id=branch['id'])
    service = PurchaseService(container.store, logistics_phone='5214771234567')
    saved = service.save_purchase(values)

    result = service.request_logistics(saved['id'])

    assert result['whatsapp_url'].startswith('https://wa.me/5214771234567?text=')
    assert 'Matriz%20Le%C3%B3n' in result['whatsapp_url']


def test_reception_creates_lots_with_variance(container, seeded):
    saved = container.purchase_service.save_purchase(order(seeded))
    result = container.inventory_service.confirm_reception(
        saved['id'], {seeded['product_id']: 8}, USER
    )

    assert result['ok'], result
    assert result['lots'][0]['quantity'] == 8
    assert result['lots'][0]['unit_price'] == 120
    assert result['variances'][0]['variance'] == -2
    assert container.purchase_service.get_purchase(saved['id'])['status'] == 'Completada'

    again = container.inventory_service.confirm_reception(saved['id'], {}, USER)
    assert again['code'] == 'TRANSICION_INVALIDA'
