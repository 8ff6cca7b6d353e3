import pytest

ADMIN = {'email': 'admin@agro.test', 'password': 'admin123'}


def login(client, email=ADMIN['email'], password=ADMIN['password']):
    r = client.post('/api/auth/login', json={'email': email, 'password': password})
    assert r.status_code == 200, r.get_json()
    return r.get_json()['csrf_token']


@pytest.fixture
def token(client):
    return login(client)


def post(client, url, token, payload=None):
    return client.post(url, json=payload or {}, headers={'X-CSRF-Token': token})


def test_requires_login(client):
    r = client.get('/api/products')
    assert r.status_code == 401
    assert r.get_json()['code'] == 'NO_AUTORIZADO'


def test_bad_credentials(client):
    r = client.post('/api/auth/login', json={'email': 'admin@agro.test', 'password': 'mala'})
    assert r.status_code == 401
    assert 'csrf_token' not in r.get_json()


def test_login_returns_session_data(client):
    r = client.post('/api/auth/login', json=ADMIN)
    data = r.get_json()
    assert data['ok'] is True
    assert data['role'] == 'admin'
    assert data['csrf_token']

    me = client.get('/api/auth/me').get_json()
    assert me['item']['email'] == 'admin@agro.test'

    notifications = client.get('/api/notifications').get_json()
    assert notifications['unread'] == 1
    assert notifications['items'][0]['id'] == 'welcome'


def test_mutation_without_csrf_is_rejected(client, token):
    r = client.post('/api/products', json={'sku': 'X-1', 'name': 'X', 'category': 'SEMILLA', 'price': 1})
    assert r.status_code == 403
    assert r.get_json()['code'] == 'CSRF'

    r = client.post('/api/products', json={'sku': 'X-1', 'name': 'X', 'category': 'SEMILLA',
                                           'price': 1, 'csrf_token': 'otro'})
    assert r.status_code == 403


def test_security_headers(client):
    r = client.get('/api/products')
    assert r.headers['X-Frame-Options'] == 'DENY'
    assert r.headers['X-Content-Type-Options'] == 'nosniff'
    assert 'Strict-Transport-Security' not in r.headers


def test_product_stock_and_sale_flow(client, token):
    r = post(client, '/api/products', token, {
        'sku': 'FERT-01', 'name': 'Fertilizante Triple 17', 'category': 'FERTILIZANTE', 'price': 100,
    })
    assert r.status_code == 201, r.get_json()
    product_id = r.get_json()['id']

    r = post(client, '/api/inventory', token, {
        'sku': 'FERT-01', 'lot': 'L-1', 'quantity': 10, 'unit_price': 40,
        'entry_date': '2024-01-01', 'branch_id': 'matriz',
    })
    assert r.status_code == 201, r.get_json()

    stock = client.get('/api/products?branch_id=matriz').get_json()['items']
    assert stock[0]['stock'] == 10

    r = post(client, '/api/sales', token, {
        'branch_id': 'matriz', 'items': [{'product_id': product_id, 'quantity': 4}],
    })
    assert r.status_code == 201, r.get_json()
    sale = r.get_json()
    assert sale['total'] == 400
    assert sale['margin'] == 240

    r = post(client, '/api/sales', token, {
        'branch_id': 'matriz', 'items': [{'product_id': product_id, 'quantity': 50}],
    })
    assert r.status_code == 409
    assert r.get_json()['code'] == 'STOCK_INSUFICIENTE'

    summary = client.get('/api/sales/summary').get_json()
    assert summary['count'] == 1
    assert summary['revenue'] == 400

    r = post(client, f"/api/sales/{sale['id']}/cancel", token)
    assert r.status_code == 200
    r = post(client, f"/api/sales/{sale['id']}/cancel", token)
    assert r.status_code == 409


def test_validation_error_is_400(client, token):
    r = post(client, '/api/clients', token, {'name': ''})
    assert r.status_code == 400
    assert r.get_json()['code'] == 'VALIDACION'


def test_finance_rejects_unknown_assumption(client, token):
    assert client.get('/api/finance/statements').status_code == 200
    r = client.get('/api/finance/statements?sin_sentido=1')
    assert r.status_code == 400


def test_operator_cannot_manage_users(client, token):
    r = post(client, '/api/users', token, {'email': 'caja@agro.test', 'password': 'caja123',
                                           'role': 'operador'})
    assert r.status_code == 201

    post(client, '/api/auth/logout', token)
    login(client, 'caja@agro.test', 'caja123')

    r = client.get('/api/users')
    assert r.status_code == 403
    assert r.get_json()['code'] == 'PERMISO_DENEGADO'
    assert client.get('/api/products').status_code == 200


def test_own_password_change_requires_current(client, token):
    r = post(client, '/api/auth/password', token, {'new_password': 'nueva123'})
    assert r.status_code == 401
    r = post(client, '/api/auth/password', token, {'new_password': 'nueva123',
                                                   'current_password': 'admin123'})
    assert r.status_code == 200


def test_unknown_route_is_json_404(client):
    r = client.get('/api/no-existe')
    assert r.status_code == 404
    assert r.get_json()['code'] == 'NO_ENCONTRADO'


def test_missing_resource_is_404(client, token):
    r = client.get('/api/sales/no-existe')
    assert r.status_code == 404
    assert r.get_json()['ok'] is False


def test_performance_stats_collected(client, token):
    client.get('/api/products')
    stats = client.get('/api/performance').get_json()
    assert 'GET /api/products' in stats['routes']
    assert 'Iniciar sesión' in stats['routes']


def test_maintenance_routes_update_asset_status(client, token):
    asset = post(client, '/api/assets', token, {
        'name': 'Tractor John Deere 5075E', 'category': 'Maquinaria', 'location': 'Matriz',
        'acquisition_cost': 120000, 'acquisition_date': '2023-01-15', 'useful_life': 5,
    }).get_json()

    r = post(client, '/api/maintenances', token, {
        'asset_id': asset['id'], 'type': 'Correctivo', 'date': '2025-03-10',
        'technician': 'Taller Agrícola del Bajío', 'cost': 2800,
    })
    assert r.status_code == 201
    maintenance_id = r.get_json()['id']
    assert client.get(f"/api/assets/{asset['id']}").get_json()['item']['status'] == 'Mantenimiento'

    r = client.put(f'/api/maintenances/{maintenance_id}', json={'status': 'Completado'},
                   headers={'X-CSRF-Token': token})
    assert r.status_code == 200
    assert r.get_json()['asset_status'] == 'Activo'

    overview = client.get('/api/maintenances/overview').get_json()
    assert [m['id'] for m in overview['history']] == [maintenance_id]
    assert client.get('/api/maintenances/no-existe').status_code == 404
