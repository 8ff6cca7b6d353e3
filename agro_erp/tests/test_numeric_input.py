import pytest

from agro_erp.errors import ValidationError
from agro_erp.services.counterparty_service import reserve_credit
from agro_erp.utils import to_float

USER = 'caja@agro.test'
MALFORMED = ['nan', 'NaN', 'inf', '-inf', 'Infinity', 'abc']


@pytest.mark.parametrize('value', MALFORMED + [float('nan'), float('inf')])
def test_to_float_rejects_non_finite_and_text(value):
    with pytest.raises(ValidationError):
        to_float(value, 'monto')


@pytest.mark.parametrize('value, expected', [('12.5', 12.5), ('', 0.0), (None, 0.0), (3, 3.0), ('-2', -2.0)])
def test_to_float_accepts_finite_numbers(value, expected):
    assert to_float(value) == expected


def test_credit_reservation_rejects_nan(container, make_client):
    client_id = make_client(credit_limit=1000)
    with pytest.raises(ValidationError):
        container.store.run_transaction(lambda tx: reserve_credit(tx, 'clients', client_id, float('nan')))
    client = container.counterparty_service.get_counterparty('clients', client_id)
    assert client['credit_used'] == 0


# ==============================================================================
# VENTAS
# ==============================================================================

@pytest.fixture
def stock(container, make_product, add_stock, make_client):
    product_id = make_product()
    lot_id = add_stock('FERT-01', 10, 40)
    return {'product_id': product_id, 'lot_id': lot_id, 'client_id': make_client(credit_limit=500)}


@pytest.mark.parametrize('field', ['quantity', 'price'])
@pytest.mark.parametrize('value', MALFORMED)
def test_sale_with_malformed_item_number_is_rejected(container, stock, field, value):
    item = {'product_id': stock['product_id'], 'quantity': 2}
    item[field] = value
    result = container.sales_service.create_sale({
        'branch_id': 'matriz', 'client_id': stock['client_id'], 'payment_method': 'Credito',
        'items': [item],
    }, USER)

    assert result['code'] == 'VALIDACION'
    assert container.store.collection('inventory').get(stock['lot_id'])['quantity'] == 10
    assert container.counterparty_service.get_counterparty('clients', stock['client_id'])['credit_used'] == 0
    assert container.sales_service.list_sales() == []


@pytest.mark.parametrize('value', ['nan', 'inf'])
def test_sale_with_malformed_discount_is_rejected(container, stock, value):
    result = container.sales_service.create_sale({
        'branch_id': 'matriz', 'discount': value,
        'items': [{'product_id': stock['product_id'], 'quantity': 1}],
    }, USER)
    assert result['code'] == 'VALIDACION'
    assert container.store.collection('inventory').get(stock['lot_id'])['quantity'] == 10


def test_sale_in_unknown_branch_is_rejected(container, stock):
    result = container.sales_service.create_sale({
        'branch_id': 'sucursal-fantasma',
        'items': [{'product_id': stock['product_id'], 'quantity': 1}],
    }, USER)
    assert result['code'] == 'NO_ENCONTRADO'
    assert 'Sucursal' in result['error']
    assert container.sales_service.list_sales() == []


# ==============================================================================
# ABONOS
# ==============================================================================

@pytest.mark.parametrize('amount', MALFORMED + [float('nan'), float('inf')])
def test_client_payment_with_malformed_amount_is_rejected(container, make_client, amount):
    client_id = make_client(credit_limit=1000)
    container.store.collection('clients').update_fields(client_id, {'credit_used': 300})

    result = container.counterparty_service.apply_client_payment(client_id, amount, user=USER)

    assert result['code'] == 'VALIDACION'
    assert container.counterparty_service.get_counterparty('clients', client_id)['credit_used'] == 300
    assert container.counterparty_service.list_payments('client') == []


@pytest.mark.parametrize('limit', ['nan', 'inf'])
def test_credit_limit_must_be_finite(container, limit):
    result = container.counterparty_service.create_counterparty(
        'clients', {'name': 'Rancho La Loma', 'has_credit': True, 'credit_limit': limit}
    )
    assert result['code'] == 'VALIDACION'


# ==============================================================================
# COMPRAS
# ==============================================================================

@pytest.fixture
def purchase_setup(make_product, make_supplier):
    return {
        'product_id': make_product(sku='SEM-01', name='Semilla de maíz', category='SEMILLA', price=150),
        'supplier_id': make_supplier(credit_limit=5000),
    }


def purchase_values(setup, quantity=10, cost=100, **extra):
    values = {
        'supplier_id': setup['supplier_id'],
        'branch_id': 'matriz',
        'date': '2024-03-01',
        'items': [{'product_id': setup['product_id'], 'quantity': quantity, 'cost': cost}],
        'payment_method': 'Credito',
        'status': 'Completada',
    }
    values.update(extra)
    return values


def assert_nothing_recorded(container, setup):
    assert container.inventory_service.list_lots(sku='SEM-01') == []
    assert container.purchase_service.list_purchases() == []
    supplier = container.counterparty_service.get_counterparty('suppliers', setup['supplier_id'])
    assert supplier['credit_used'] == 0


@pytest.mark.parametrize('field', ['quantity', 'cost'])
@pytest.mark.parametrize('value', MALFORMED)
def test_purchase_with_malformed_item_number_is_rejected(container, purchase_setup, field, value):
    values = purchase_values(purchase_setup)
    values['items'][0][field] = value

    result = container.purchase_service.save_purchase(values, user=USER)

    assert result['code'] == 'VALIDACION'
    assert_nothing_recorded(container, purchase_setup)


@pytest.mark.parametrize('value', ['nan', 'inf', 'abc'])
def test_purchase_with_malformed_associated_cost_is_rejected(container, purchase_setup, value):
    values = purchase_values(purchase_setup,
                             associated_costs=[{'concept': 'Flete', 'amount': value, 'prorate': True}])
    assert container.purchase_service.save_purchase(values, user=USER)['code'] == 'VALIDACION'
    assert_nothing_recorded(container, purchase_setup)


def test_purchase_for_unknown_branch_is_rejected(container, purchase_setup):
    result = container.purchase_service.save_purchase(
        purchase_values(purchase_setup, branch_id='sucursal-fantasma'), user=USER
    )
    assert result['code'] == 'NO_ENCONTRADO'
    assert_nothing_recorded(container, purchase_setup)


def test_purchase_for_registered_branch_creates_lots_there(container, purchase_setup):
    branch_id = container.branch_service.create_branch({'name': 'Sucursal Irapuato'})['id']

    result = container.purchase_service.save_purchase(
        purchase_values(purchase_setup, branch_id=branch_id), user=USER
    )

    assert result['ok'], result
    assert [l['quantity'] for l in container.inventory_service.list_lots(branch_id=branch_id)] == [10]


def test_manual_lot_for_unknown_branch_is_rejected(container, make_product):
    make_product()
    result = container.inventory_service.add_lot({
        'sku': 'FERT-01', 'lot': 'L-1', 'quantity': 5, 'unit_price': 40, 'branch_id': 'sucursal-fantasma',
    })
    assert result['code'] == 'NO_ENCONTRADO'
    assert container.inventory_service.list_lots() == []
