import pytest

USER = 'logistica@agro.test'

TRUCK = {
    'name': 'Camioneta 1',
    'plate': 'gto-123-a',
    'type': 'Camioneta',
    'fuel_efficiency': 9.5,
}


@pytest.fixture
def logistics(container):
    return container.logistics_service


def vehicle_status(logistics, vehicle_id):
    return logistics.get_vehicle(vehicle_id)['status']


def make_delivery(logistics, **extra):
    values = {'client': 'Rancho El Sauz', 'destination': 'Silao', 'delivery_date': '2024-04-10'}
    values.update(extra)
    result = logistics.create_trip('delivery', values, USER)
    assert result['ok'], result
    return result['id']


def test_vehicle_plate_unique_and_normalized(logistics):
    first = logistics.create_vehicle(TRUCK)
    assert first['vehicle']['plate'] == 'GTO-123-A'
    assert first['vehicle']['status'] == 'Disponible'
    duplicate = logistics.create_vehicle(dict(TRUCK, name='Otra'))
    assert duplicate['code'] == 'VALIDACION'


@pytest.mark.parametrize('field, value', [
    ('type', 'Avión'),
    ('fuel_efficiency', 0),
    ('fuel_type', 'Eléctrico'),
])
def test_vehicle_validation(logistics, field, value):
    assert logistics.create_vehicle(dict(TRUCK, **{field: value}))['code'] == 'VALIDACION'


def test_vehicle_status_follows_trip(logistics):
    vehicle_id = logistics.create_vehicle(TRUCK)['id']
    delivery_id = make_delivery(logistics)
    folio = logistics.list_trips('delivery')[0]['folio']
    assert folio.startswith('ENT-')

    assert logistics.assign_vehicle('delivery', delivery_id, vehicle_id, USER)['ok']
    assert vehicle_status(logistics, vehicle_id) == 'Disponible'

    assert logistics.update_trip_status('delivery', delivery_id, 'En Ruta', USER)['ok']
    assert vehicle_status(logistics, vehicle_id) == 'En Ruta'

    # Un vehículo En Ruta no se asigna a otro viaje ni se elimina
    other = make_delivery(logistics)
    assert logistics.assign_vehicle('delivery', other, vehicle_id, USER)['code'] == 'TRANSICION_INVALIDA'
    assert logistics.delete_vehicle(vehicle_id)['code'] == 'VALIDACION'

    assert logistics.update_trip_status('delivery', delivery_id, 'Entregada', USER)['ok']
    assert vehicle_status(logistics, vehicle_id) == 'Disponible'

    locked = logistics.update_trip_status('delivery', delivery_id, 'En Ruta', USER)
    assert locked['code'] == 'TRANSICION_INVALIDA'
    assert logistics.delete_vehicle(vehicle_id)['ok']


def test_reassigning_in_transit_trip_swaps_vehicles(logistics):
    first = logistics.create_vehicle(TRUCK)['id']
    second = logistics.create_vehicle(dict(TRUCK, name='Camioneta 2', plate='GTO-999-B'))['id']
    delivery_id = make_delivery(logistics, vehicle_id=first)
    logistics.update_trip_status('delivery', delivery_id, 'En Ruta', USER)

    assert logistics.assign_vehicle('delivery', delivery_id, second, USER)['ok']
    assert vehicle_status(logistics, first) == 'Disponible'
    assert vehicle_status(logistics, second) == 'En Ruta'


def test_trip_needs_available_vehicle(logistics):
    vehicle_id = logistics.create_vehicle(dict(TRUCK, status='Mantenimiento'))['id']
    result = logistics.create_trip('pickup', {
        'client': 'Agroquímicos', 'origin': 'León', 'scheduled_date': '2024-04-11',
        'vehicle_id': vehicle_id,
    })
    assert result['code'] == 'TRANSICION_INVALIDA'


def test_invalid_status_and_trip_type(logistics):
    delivery_id = make_delivery(logistics)
    assert logistics.update_trip_status('delivery', delivery_id, 'Completada')['code'] == 'VALIDACION'
    assert logistics.list_trips('delivery', 'En Preparación')[0]['id'] == delivery_id
    assert logistics.create_trip('drone', {})['code'] == 'VALIDACION'


def test_completed_pickup_marks_purchase_received(container, logistics, make_product, make_supplier):
    product_id = make_product()
    supplier_id = make_supplier()
    purchase = container.purchase_service.save_purchase({
        'supplier_id': supplier_id, 'branch_id': 'matriz', 'date': '2024-04-01',
        'items': [{'product_id': product_id, 'quantity': 5, 'cost': 80}],
        'payment_method': 'Efectivo',
    })
    pickup = container.purchase_service.request_logistics(purchase['id'], USER)

    result = logistics.update_trip_status('pickup', pickup['pickup_id'], 'Completada', USER)

    assert result['ok'], result
    assert container.purchase_service.get_purchase(purchase['id'])['logistics_status'] == 'Recibido'


def test_expenses_grouped_by_vehicle(logistics):
    vehicle_id = logistics.create_vehicle(TRUCK)['id']
    with_vehicle = make_delivery(logistics, vehicle_id=vehicle_id)
    without_vehicle = make_delivery(logistics)

    for trip_id, concept, amount in [(with_vehicle, 'Combustible', 1200),
                                     (with_vehicle, 'Casetas', 300),
                                     (without_vehicle, 'Viáticos', 150)]:
        result = logistics.add_expense({
            'date': '2024-04-10', 'concept': concept, 'amount': amount,
            'trip_id': trip_id, 'trip_type': 'delivery',
        }, USER)
        assert result['ok'], result

    expense = logistics.list_expenses(with_vehicle)[0]
    assert expense['vehicle_id'] == vehicle_id
    assert expense['trip_folio'].startswith('ENT-')

    report = logistics.expenses_by_vehicle()
    assert report[0]['vehicle_name'] == 'Camioneta 1'
    assert report[0]['total'] == 1500
    assert report[0]['by_concept'] == {'Combustible': 1200, 'Casetas': 300}
    assert report[1]['vehicle_name'] == 'Sin asignar'
    assert report[1]['total'] == 150


def test_expense_validation(logistics):
    delivery_id = make_delivery(logistics)
    base = {'date': '2024-04-10', 'concept': 'Otro', 'amount': 10,
            'trip_id': delivery_id, 'trip_type': 'delivery'}
    assert logistics.add_expense(dict(base, amount=0))['code'] == 'VALIDACION'
    assert logistics.add_expense(dict(base, concept='Comida'))['code'] == 'VALIDACION'
    assert logistics.add_expense(dict(base, trip_id='nope'))['code'] == 'NO_ENCONTRADO'
