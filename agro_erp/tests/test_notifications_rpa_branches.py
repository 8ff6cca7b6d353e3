import pytest

USER = 'ana@agro.test'


@pytest.fixture
def notifications(container):
    return container.notification_service


def test_notify_without_user_is_ignored(notifications):
    assert notifications.notify('', 'Venta', 'Sin destinatario') is None


def test_notify_and_read(notifications):
    first = notifications.notify(USER, 'Venta registrada', 'VTA-000001', icon='ShoppingCart')
    notifications.notify(USER, 'Compra', 'OC-1', icon='Cohete')

    items = notifications.list_for(USER)
    assert len(items) == 2
    assert {n['icon_name'] for n in items} == {'ShoppingCart', 'Package'}
    assert notifications.unread_count(USER) == 2

    assert notifications.mark_read(USER, first) is True
    assert notifications.mark_read(USER, 'no-existe') is False
    assert notifications.unread_count(USER) == 1
    assert notifications.mark_all_read(USER) == 1
    assert notifications.list_for(USER, unread_only=True) == []
    # Otro usuario no ve nada
    assert notifications.list_for('otro@agro.test') == []


def test_fixed_id_overwrites(notifications):
    notifications.notify(USER, 'Bienvenido', 'Hola', notification_id='welcome')
    notifications.mark_all_read(USER)
    notifications.notify(USER, 'Bienvenido', 'Hola de nuevo', notification_id='welcome')

    items = notifications.list_for(USER)
    assert len(items) == 1
    assert items[0]['id'] == 'welcome'
    assert items[0]['description'] == 'Hola de nuevo'
    assert items[0]['is_read'] is False


# ==============================================================================
# RPA
# ==============================================================================

def test_bot_lifecycle(container):
    rpa = container.rpa_service
    created = rpa.create_bot({'name': 'Conciliación', 'trigger': 'scheduled', 'frequency': 'Diario 06:00'})
    assert created['ok'], created
    bot = created['bot']
    assert bot['status'] == 'Inactivo'
    assert bot['last_run'] == 'N/A'
    assert bot['next_run'] == 'Diario 06:00'

    assert rpa.toggle(created['id'])['status'] == 'Activo'
    assert rpa.status_counts() == {'active': 1, 'inactive': 0, 'error': 0}
    assert rpa.toggle(created['id'])['status'] == 'Inactivo'

    updated = rpa.update_bot(created['id'], {'trigger': 'manual'})
    assert updated['bot']['next_run'] == 'Manual'


def test_scheduled_bot_needs_frequency(container):
    result = container.rpa_service.create_bot({'name': 'Reporte', 'trigger': 'scheduled'})
    assert result['code'] == 'VALIDACION'


def test_bot_in_error_cannot_toggle(container):
    rpa = container.rpa_service
    bot_id = rpa.create_bot({'name': 'Facturas'})['id']
    container.store.collection('rpa_bots').update_fields(bot_id, {'status': 'Error'})

    assert rpa.toggle(bot_id)['code'] == 'TRANSICION_INVALIDA'
    assert rpa.toggle('no-existe')['code'] == 'NO_ENCONTRADO'


# ==============================================================================
# SUCURSALES
# ==============================================================================

def test_branch_with_stock_cannot_be_deleted(container, make_product, add_stock):
    branches = container.branch_service
    branch_id = branches.create_branch({'name': 'Sucursal Irapuato', 'city': 'Irapuato'})['id']
    make_product()
    add_stock('FERT-01', 3, 40, branch_id=branch_id)

    assert branches.delete_branch(branch_id)['code'] == 'VALIDACION'

    lot = container.inventory_service.list_lots(branch_id=branch_id)[0]
    container.store.collection('inventory').update_fields(lot['id'], {'quantity': 0})
    assert branches.delete_branch(branch_id)['ok']
    assert branches.get_branch(branch_id) is None


def test_branch_requires_name(container):
    assert container.branch_service.create_branch({'city': 'León'})['code'] == 'VALIDACION'
