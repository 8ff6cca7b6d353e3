from datetime import date

import pytest

from agro_erp.services.asset_service import current_value, monthly_depreciation, months_elapsed

TRACTOR = {
    'name': 'Tractor John Deere 5075E',
    'category': 'Maquinaria',
    'location': 'Matriz',
    'acquisition_cost': 120000,
    'acquisition_date': '2023-01-15',
    'useful_life': 5,
}


def test_straight_line_example():
    assert monthly_depreciation(120000, 5) == 2000
    assert current_value(120000, 5, date(2023, 1, 15), date(2025, 1, 15)) == 72000


@pytest.mark.parametrize('acquired, as_of, expected', [
    (date(2023, 1, 31), date(2023, 2, 28), 0),
    (date(2023, 1, 15), date(2023, 2, 14), 0),
    (date(2023, 1, 15), date(2023, 2, 15), 1),
    (date(2023, 1, 15), date(2025, 1, 15), 24),
    (date(2025, 1, 1), date(2024, 1, 1), 0),
])
def test_months_elapsed(acquired, as_of, expected):
    assert months_elapsed(acquired, as_of) == expected


def test_value_never_negative_and_non_increasing():
    acquired = date(2015, 6, 1)
    values = [current_value(50000, 2, acquired, date(year, 6, 1)) for year in range(2015, 2020)]
    assert values == sorted(values, reverse=True)
    assert values[-1] == 0


def test_create_asset_stores_valuation(container):
    result = container.asset_service.create_asset(TRACTOR, 'admin@agro.test', as_of=date(2025, 1, 15))
    assert result['ok'], result
    asset = result['asset']
    assert asset['monthly_depreciation'] == 2000
    assert asset['current_value'] == 72000
    assert asset['valued_at'] == '2025-01-15'
    assert container.audit_service.search_logs(log_type='ACTIVO')


@pytest.mark.parametrize('field, value', [
    ('acquisition_cost', 0),
    ('useful_life', 0),
    ('name', ''),
    ('acquisition_date', 'ayer'),
])
def test_invalid_asset_rejected(container, field, value):
    values = dict(TRACTOR, **{field: value})
    assert container.asset_service.create_asset(values)['code'] == 'VALIDACION'


def test_revalue_all_and_totals(container):
    service = container.asset_service
    service.create_asset(TRACTOR, as_of=date(2023, 1, 15))
    service.create_asset(dict(TRACTOR, name='Bodega', acquisition_cost=60000, useful_life=10),
                         as_of=date(2023, 1, 15))

    assert service.revalue_all(date(2024, 1, 15)) == 2

    totals = service.totals()
    assert totals['count'] == 2
    assert totals['acquisition_cost'] == 180000
    # Tractor: 120000 - 2000*12; Bodega: 60000 - 500*12
    assert totals['current_value'] == 96000 + 54000
    assert totals['monthly_depreciation'] == 2500


def test_update_recalculates(container):
    created = container.asset_service.create_asset(TRACTOR, as_of=date(2025, 1, 15))
    updated = container.asset_service.update_asset(
        created['id'], {'useful_life': 10}, as_of=date(2025, 1, 15)
    )
    assert updated['asset']['monthly_depreciation'] == 1000
    assert updated['asset']['current_value'] == 96000


# ==============================================================================
# MANTENIMIENTO
# ==============================================================================

@pytest.fixture
def asset_id(container):
    return container.asset_service.create_asset(TRACTOR)['id']


def maintenance(asset_id, **extra):
    values = {
        'asset_id': asset_id,
        'type': 'Preventivo',
        'date': '2025-03-10',
        'technician': 'Taller Agrícola del Bajío',
        'cost': 3500,
    }
    values.update(extra)
    return values


def test_scheduled_maintenance_puts_asset_in_maintenance(container, asset_id):
    result = container.maintenance_service.save_maintenance(maintenance(asset_id), user='admin@agro.test')

    assert result['ok'], result
    assert result['folio'].startswith('MAINT-')
    assert result['maintenance']['status'] == 'Programado'
    assert result['maintenance']['asset_name'] == 'Tractor John Deere 5075E'
    assert result['asset_status'] == 'Mantenimiento'
    assert container.asset_service.get_asset(asset_id)['status'] == 'Mantenimiento'
    assert container.audit_service.search_logs('Mantenimiento preventivo registrado')


def test_completing_maintenance_reactivates_asset(container, asset_id):
    service = container.maintenance_service
    saved = service.save_maintenance(maintenance(asset_id, status='En Progreso'))

    done = service.update_status(saved['id'], 'Completado')

    assert done['ok'], done
    assert done['asset_status'] == 'Activo'
    assert container.asset_service.get_asset(asset_id)['status'] == 'Activo'
    assert service.get_maintenance(saved['id'])['folio'] == saved['folio']


def test_asset_stays_in_maintenance_while_another_is_open(container, asset_id):
    service = container.maintenance_service
    first = service.save_maintenance(maintenance(asset_id))
    service.save_maintenance(maintenance(asset_id, type='Correctivo', date='2025-03-12'))

    service.update_status(first['id'], 'Completado')
    assert container.asset_service.get_asset(asset_id)['status'] == 'Mantenimiento'


def test_deleting_open_maintenance_reactivates_asset(container, asset_id):
    service = container.maintenance_service
    saved = service.save_maintenance(maintenance(asset_id))

    result = service.delete_maintenance(saved['id'])

    assert result['asset_status'] == 'Activo'
    assert container.asset_service.get_asset(asset_id)['status'] == 'Activo'
    assert service.delete_maintenance(saved['id'])['code'] == 'NO_ENCONTRADO'


def test_moving_maintenance_to_other_asset_updates_both(container, asset_id):
    other = container.asset_service.create_asset(dict(TRACTOR, name='Sembradora'))['id']
    service = container.maintenance_service
    saved = service.save_maintenance(maintenance(asset_id))

    moved = service.save_maintenance({'asset_id': other}, saved['id'])

    assert moved['maintenance']['asset_name'] == 'Sembradora'
    assert container.asset_service.get_asset(asset_id)['status'] == 'Activo'
    assert container.asset_service.get_asset(other)['status'] == 'Mantenimiento'


def test_maintenance_overview_groups_by_status(container, asset_id):
    service = container.maintenance_service
    service.save_maintenance(maintenance(asset_id))
    service.save_maintenance(maintenance(asset_id, type='Correctivo', date='2025-03-12'))
    service.save_maintenance(maintenance(asset_id, status='Completado', date='2025-01-05', cost=1200.5))

    overview = service.overview()

    assert len(overview['scheduled']) == 2
    assert [m['type'] for m in overview['corrective']] == ['Correctivo']
    assert [m['date'] for m in overview['history']] == ['2025-01-05']
    assert overview['completed_cost'] == 1200.5
    assert len(service.list_maintenances(asset_id=asset_id, status='Programado')) == 2


def test_maintenance_requires_existing_asset(container):
    result = container.maintenance_service.save_maintenance(maintenance('no-existe'))
    assert result['code'] == 'NO_ENCONTRADO'
    assert container.maintenance_service.list_maintenances() == []


@pytest.mark.parametrize('field, value', [
    ('type', 'Urgente'),
    ('status', 'Cancelado'),
    ('technician', ''),
    ('date', ''),
    ('cost', -1),
    ('cost', 'nan'),
])
def test_invalid_maintenance_rejected(container, asset_id, field, value):
    result = container.maintenance_service.save_maintenance(maintenance(asset_id, **{field: value}))
    assert result['code'] == 'VALIDACION'
    assert container.asset_service.get_asset(asset_id)['status'] == 'Activo'


def test_update_unknown_maintenance(container):
    assert container.maintenance_service.update_status('no-existe', 'Completado')['code'] == 'NO_ENCONTRADO'
