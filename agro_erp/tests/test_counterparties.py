import pytest

from agro_erp.errors import InsufficientCreditError, ValidationError
from agro_erp.services.counterparty_service import release_credit, reserve_credit

USER = 'cobranza@agro.test'


def set_credit_used(container, collection, counterparty_id, amount):
    container.store.collection(collection).update_fields(counterparty_id, {'credit_used': amount})


def test_supplier_requires_contact_fields(container):
    result = container.counterparty_service.create_counterparty('suppliers', {'name': 'Sin datos'})
    assert result['code'] == 'VALIDACION'


def test_credit_limit_required_when_credit_enabled(container):
    result = container.counterparty_service.create_counterparty(
        'clients', {'name': 'Rancho', 'has_credit': True, 'credit_limit': 0}
    )
    assert result['code'] == 'VALIDACION'


def test_invalid_collection(container):
    with pytest.raises(ValidationError):
        container.counterparty_service.list_counterparties('employees')


def test_reserve_and_release_credit(container, make_client):
    client_id = make_client(credit_limit=1000)
    store = container.store

    store.run_transaction(lambda tx: reserve_credit(tx, 'clients', client_id, 400))
    with pytest.raises(InsufficientCreditError) as exc:
        store.run_transaction(lambda tx: reserve_credit(tx, 'clients', client_id, 601))
    assert exc.value.message == 'Crédito insuficiente. Disponible: $600.00'
    assert exc.value.details == {'available': 600.0, 'requested': 601.0}

    released = store.run_transaction(lambda tx: release_credit(tx, 'clients', client_id, 1000))
    assert released['credit_used'] == 0
    assert released['overpaid'] is True


def test_client_without_credit_is_rejected(container, make_client):
    client_id = make_client()
    with pytest.raises(InsufficientCreditError) as exc:
        container.store.run_transaction(lambda tx: reserve_credit(tx, 'clients', client_id, 1))
    assert 'no tiene crédito autorizado' in exc.value.message


def test_client_payment_floors_balance_at_zero(container, make_client):
    client_id = make_client(credit_limit=1000)
    set_credit_used(container, 'clients', client_id, 300)

    result = container.counterparty_service.apply_client_payment(
        client_id, 500, note='Pago en ventanilla', payment_date='2024-05-02', user=USER
    )

    assert result['ok'], result
    assert result['credit_used'] == 0
    assert result['overpaid'] is True
    assert 'warning' in result
    payment = container.counterparty_service.list_payments('client')[0]
    assert payment['amount'] == 500
    assert payment['date'] == '2024-05-02'
    assert payment['client_id'] == client_id
    assert container.audit_service.search_logs('Abono de crédito', log_type='CREDITO')


def test_partial_payment_keeps_balance(container, make_client):
    client_id = make_client(credit_limit=1000)
    set_credit_used(container, 'clients', client_id, 300)
    result = container.counterparty_service.apply_client_payment(client_id, 120)
    assert result['credit_used'] == 180
    assert result['overpaid'] is False
    assert 'warning' not in result


@pytest.mark.parametrize('amount', [0, -50, 'abc'])
def test_payment_amount_must_be_positive_number(container, make_client, amount):
    client_id = make_client(credit_limit=1000)
    result = container.counterparty_service.apply_client_payment(client_id, amount)
    assert result['code'] == 'VALIDACION'


def test_payment_settling_credit_sale_marks_it_paid(container, make_client, make_product, add_stock):
    client_id = make_client(credit_limit=1000)
    product_id = make_product()
    add_stock('FERT-01', 10, 40)
    sale = container.sales_service.create_sale({
        'branch_id': 'matriz', 'client_id': client_id, 'payment_method': 'Credito',
        'items': [{'product_id': product_id, 'quantity': 2}],
    })

    first = container.counterparty_service.apply_client_payment(client_id, 50, sale_id=sale['id'])
    assert first['sale_paid'] is False
    assert container.counterparty_service.credit_sales_for(client_id)[0]['balance'] == 150

    second = container.counterparty_service.apply_client_payment(client_id, 150, sale_id=sale['id'])
    assert second['sale_paid'] is True
    assert container.sales_service.get_sale(sale['id'])['status'] == 'Pagada'


def test_supplier_payment(container, make_supplier):
    supplier_id = make_supplier(credit_limit=5000)
    set_credit_used(container, 'suppliers', supplier_id, 2000)
    result = container.counterparty_service.apply_supplier_payment(supplier_id, 750, user=USER)
    assert result['credit_used'] == 1250
    assert container.counterparty_service.list_payments('supplier')[0]['supplier'] == 'Agroquímicos del Bajío'


def test_credit_summary(container, make_client):
    client_id = make_client(credit_limit=1000)
    set_credit_used(container, 'clients', client_id, 250)
    summary = container.counterparty_service.credit_summary('clients', client_id)
    assert summary['available'] == 750
    assert summary['usage_pct'] == 25.0
    assert container.counterparty_service.credit_summary('clients', 'x')['code'] == 'NO_ENCONTRADO'


def test_update_ignores_credit_used_and_checks_limit(container, make_client):
    client_id = make_client(credit_limit=1000)
    set_credit_used(container, 'clients', client_id, 600)
    service = container.counterparty_service

    lowered = service.update_counterparty('clients', client_id, {'credit_limit': 500})
    assert lowered['code'] == 'VALIDACION'

    renamed = service.update_counterparty('clients', client_id, {'name': 'Rancho Nuevo', 'credit_used': 0})
    assert renamed['ok'], renamed
    assert renamed['client']['credit_used'] == 600


def test_cannot_delete_with_balance(container, make_client):
    client_id = make_client(credit_limit=1000)
    set_credit_used(container, 'clients', client_id, 10)
    assert container.counterparty_service.delete_counterparty('clients', client_id)['code'] == 'VALIDACION'
