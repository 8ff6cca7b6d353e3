# ==============================================================================
# FIXTURES COMPARTIDAS
# ==============================================================================
# Cada prueba trabaja sobre una carpeta de datos temporal (tmp_path) con su
# propio contenedor; nada toca los datos reales.
# ==============================================================================

import pytest

from agro_erp.app_container import AppContainer
from agro_erp.config import TestingConfig
from agro_erp.main import create_app
from agro_erp.performance_logger import reset_stats

BRANCH = 'matriz'


@pytest.fixture
def config(tmp_path):
    cfg = TestingConfig()
    cfg.DATA_DIR = str(tmp_path / 'data')
    cfg.LOG_DIR = str(tmp_path / 'logs')
    return cfg


@pytest.fixture
def container(config):
    AppContainer.reset_instance()
    c = AppContainer(config)
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def store(container):
    return container.store


@pytest.fixture
def app(config):
    reset_stats()
    flask_app = create_app(config)
    yield flask_app
    AppContainer.reset_instance()


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


# ==============================================================================
# FÁBRICAS DE DATOS
# ==============================================================================

@pytest.fixture
def make_product(container):
    def _make(sku='FERT-01', name='Fertilizante Triple 17', category='FERTILIZANTE', price=100, **extra):
        values = {'sku': sku, 'name': name, 'category': category, 'price': price}
        values.update(extra)
        result = container.product_service.create_product(values, 'admin@agro.test')
        assert result['ok'], result
        return result['id']
    return _make


@pytest.fixture
def add_stock(container):
    def _add(sku, quantity, unit_price, entry_date='2024-01-01', lot=None, branch_id=BRANCH):
        result = container.inventory_service.add_lot({
            'sku': sku,
            'lot': lot or f'L-{entry_date}',
            'quantity': quantity,
            'unit_price': unit_price,
            'entry_date': entry_date,
            'branch_id': branch_id,
        }, 'admin@agro.test')
        assert result['ok'], result
        return result['id']
    return _add


@pytest.fixture
def make_branch(container):
    def _make(branch_id='irapuato', name='Sucursal Irapuato'):
        container.store.collection('branches').set(branch_id, {'name': name, 'city': 'Irapuato'})
        return branch_id
    return _make


@pytest.fixture
def make_client(container):
    def _make(name='Rancho El Sauz', credit_limit=0.0):
        values = {'name': name}
        if credit_limit:
            values.update(has_credit=True, credit_limit=credit_limit)
        result = container.counterparty_service.create_counterparty('clients', values)
        assert result['ok'], result
        return result['id']
    return _make


@pytest.fixture
def make_supplier(container):
    def _make(company_name='Agroquímicos del Bajío', credit_limit=0.0, address='Carretera 45 km 3'):
        values = {
            'name': 'Luis Ramírez',
            'company_name': company_name,
            'contact_name': 'Luis Ramírez',
            'phone': '4771234567',
            'address': address,
        }
        if credit_limit:
            values.update(has_credit=True, credit_limit=credit_limit)
        result = container.counterparty_service.create_counterparty('suppliers', values)
        assert result['ok'], result
        return result['id']
    return _make
