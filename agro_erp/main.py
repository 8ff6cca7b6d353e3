# ==============================================================================
# APLICACIÓN FLASK - API JSON
# ==============================================================================
# Las rutas solo orquestan request -> service -> response.
# Toda la lógica de negocio vive en agro_erp/services.
#
# SEGURIDAD:
# - Sesión por cookie (login por e-mail y contraseña)
# - Token CSRF emitido al iniciar sesión; obligatorio en el header
#   X-CSRF-Token para POST/PUT/PATCH/DELETE
# - Headers de seguridad en todas las respuestas
# ==============================================================================

import logging
import uuid
from functools import wraps
from typing import Any, Dict, Tuple

from flask import Blueprint, Flask, current_app, jsonify, request, session

from agro_erp.app_container import AppContainer
from agro_erp.config import DEFAULT_SECRET, Config
from agro_erp.errors import (
    WRITE_ERROR_CODE,
    AuthError,
    ErpError,
    InsufficientCreditError,
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    TransactionConflictError,
    ValidationError,
)
from agro_erp.logging_config import setup_logging
from agro_erp.models.entities import UserRole
from agro_erp.performance_logger import get_function_stats, get_route_stats, init_profiling
from agro_erp.services.backup_service import run_startup_backup
from agro_erp.services.common import CLIENTS, SUPPLIERS

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__, url_prefix='/api')

# Código de error de servicio -> status HTTP
STATUS_BY_CODE = {
    cls.code: cls.http_status
    for cls in (ValidationError, NotFoundError, InsufficientCreditError, InsufficientStockError,
                InvalidTransitionError, TransactionConflictError, AuthError)
}
STATUS_BY_CODE[WRITE_ERROR_CODE] = 500

# Segmento de URL -> tipo de viaje
TRIP_TYPES = {'deliveries': 'delivery', 'pickups': 'pickup'}

MUTATING_METHODS = frozenset(['POST', 'PUT', 'PATCH', 'DELETE'])


# ═══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def container() -> AppContainer:
    return current_app.extensions['agro_erp']


def current_user() -> str:
    return session.get('user')


def body() -> Dict[str, Any]:
    """Cuerpo JSON de la petición (objeto)."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("El cuerpo de la petición debe ser un objeto JSON.")
    return {k: v for k, v in data.items() if k != 'csrf_token'}


def respond(result: Dict[str, Any], success_status: int = 200) -> Tuple[Any, int]:
    """Convierte un resultado de servicio en respuesta JSON."""
    if result.get('ok'):
        return jsonify(result), success_status
    return jsonify(result), STATUS_BY_CODE.get(result.get('code'), 400)


def listing(items) -> Tuple[Any, int]:
    return jsonify({'ok': True, 'items': items, 'count': len(items)}), 200


def found(item: Dict[str, Any], resource: str, identifier: str) -> Tuple[Any, int]:
    if item is None:
        return respond(NotFoundError(resource, identifier).to_result())
    return jsonify({'ok': True, 'item': item}), 200


# ═══════════════════════════════════════════════════════════════════════════════
# DECORADORES DE ACCESO
# ═══════════════════════════════════════════════════════════════════════════════

def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if 'user' not in session:
            return respond(AuthError("Debes iniciar sesión.").to_result())
        return f(*args, **kwargs)
    return wrapper


def role_required(role_name: str):
    """Exige un rol; admin tiene acceso a todo."""
    def deco(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            user_role = session.get('role')
            if user_role != role_name and user_role != UserRole.ADMIN.value:
                return jsonify({'ok': False, 'error': 'Permiso denegado.', 'code': 'PERMISO_DENEGADO'}), 403
            return f(*args, **kwargs)
        return wrapper
    return deco


def generate_csrf_token() -> str:
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


@api.before_request
def verify_csrf():
    """Valida el token CSRF en peticiones que modifican datos."""
    if request.method not in MUTATING_METHODS or request.endpoint == 'api.login':
        return None
    token = session.get('csrf_token')
    sent = request.headers.get('X-CSRF-Token') or request.headers.get('X-CSRFToken')
    if not sent:
        data = request.get_json(silent=True)
        if isinstance(data, dict):
            sent = data.get('csrf_token')
    if not token or not sent or token != sent:
        return jsonify({'ok': False, 'error': 'CSRF token inválido', 'code': 'CSRF'}), 403
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# AUTENTICACIÓN Y USUARIOS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/auth/login', methods=['POST'])
def login():
    data = body()
    result = container().user_service.authenticate(data.get('email') or '', data.get('password') or '')
    if not result['ok']:
        return respond(result)
    session.clear()
    session['user'] = result['email']
    session['role'] = result['role']
    token = generate_csrf_token()
    container().notification_service.notify(
        result['email'], 'Bienvenido',
        f"Hola {result['name'] or result['email']}, tu sesión está activa.",
        link='/dashboard', icon='Users', notification_id='welcome'
    )
    return jsonify({**result, 'csrf_token': token}), 200


@api.route('/auth/logout', methods=['POST'])
@login_required
def logout():
    container().user_service.logout(current_user())
    session.clear()
    return jsonify({'ok': True}), 200


@api.route('/auth/me', methods=['GET'])
@login_required
def me():
    return found(container().user_service.get_user(current_user()), 'Usuario', current_user())


@api.route('/auth/password', methods=['POST'])
@login_required
def change_own_password():
    data = body()
    return respond(container().user_service.change_password(
        current_user(), data.get('new_password'), current_password=data.get('current_password') or ''
    ))


@api.route('/users', methods=['GET'])
@login_required
@role_required(UserRole.ADMIN.value)
def list_users():
    return listing(container().user_service.list_users())


@api.route('/users', methods=['POST'])
@login_required
@role_required(UserRole.ADMIN.value)
def create_user():
    data = body()
    return respond(container().user_service.create_user(
        data.get('email'), data.get('password'), data.get('role'), data.get('name', ''),
        admin_user=current_user()
    ), 201)


@api.route('/users/<path:email>/password', methods=['POST'])
@login_required
@role_required(UserRole.ADMIN.value)
def reset_password(email):
    return respond(container().user_service.change_password(
        email, body().get('new_password'), admin_user=current_user()
    ))


# ═══════════════════════════════════════════════════════════════════════════════
# PRODUCTOS E INVENTARIO
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/products', methods=['GET'])
@login_required
def list_products():
    branch_id = request.args.get('branch_id')
    service = container().product_service
    return listing(service.products_with_stock(branch_id) if branch_id else service.list_products())


@api.route('/products', methods=['POST'])
@login_required
def create_product():
    return respond(container().product_service.create_product(body(), current_user()), 201)


@api.route('/products/<product_id>', methods=['GET'])
@login_required
def get_product(product_id):
    return found(container().product_service.get_product(product_id), 'Producto', product_id)


@api.route('/products/<product_id>', methods=['PUT'])
@login_required
def update_product(product_id):
    return respond(container().product_service.update_product(product_id, body(), current_user()))


@api.route('/products/<product_id>', methods=['DELETE'])
@login_required
@role_required(UserRole.ADMIN.value)
def delete_product(product_id):
    return respond(container().product_service.delete_product(product_id, current_user()))


@api.route('/inventory', methods=['GET'])
@login_required
def list_lots():
    return listing(container().inventory_service.list_lots(
        request.args.get('branch_id'), request.args.get('sku')
    ))


@api.route('/inventory', methods=['POST'])
@login_required
def add_lot():
    return respond(container().inventory_service.add_lot(body(), current_user()), 201)


@api.route('/inventory/valuation', methods=['GET'])
@login_required
def inventory_valuation():
    return jsonify({'ok': True, **container().inventory_service.inventory_valuation()}), 200


@api.route('/inventory/count', methods=['POST'])
@login_required
def physical_count():
    data = body()
    branch_id = data.get('branch_id')
    if not branch_id:
        raise ValidationError("La sucursal es requerida.")
    return listing(container().inventory_service.physical_count(branch_id, data.get('counts') or {}))


# ═══════════════════════════════════════════════════════════════════════════════
# CLIENTES, PROVEEDORES Y CRÉDITO
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/<any(clients, suppliers):collection>', methods=['GET'])
@login_required
def list_counterparties(collection):
    return listing(container().counterparty_service.list_counterparties(collection))


@api.route('/<any(clients, suppliers):collection>', methods=['POST'])
@login_required
def create_counterparty(collection):
    return respond(container().counterparty_service.create_counterparty(collection, body(), current_user()), 201)


@api.route('/<any(clients, suppliers):collection>/<counterparty_id>', methods=['GET'])
@login_required
def get_counterparty(collection, counterparty_id):
    item = container().counterparty_service.get_counterparty(collection, counterparty_id)
    return found(item, 'Cliente' if collection == CLIENTS else 'Proveedor', counterparty_id)


@api.route('/<any(clients, suppliers):collection>/<counterparty_id>', methods=['PUT'])
@login_required
def update_counterparty(collection, counterparty_id):
    return respond(container().counterparty_service.update_counterparty(
        collection, counterparty_id, body(), current_user()
    ))


@api.route('/<any(clients, suppliers):collection>/<counterparty_id>', methods=['DELETE'])
@login_required
@role_required(UserRole.ADMIN.value)
def delete_counterparty(collection, counterparty_id):
    return respond(container().counterparty_service.delete_counterparty(collection, counterparty_id, current_user()))


@api.route('/<any(clients, suppliers):collection>/<counterparty_id>/credit', methods=['GET'])
@login_required
def credit_summary(collection, counterparty_id):
    return respond(container().counterparty_service.credit_summary(collection, counterparty_id))


@api.route('/clients/<client_id>/credit-sales', methods=['GET'])
@login_required
def credit_sales(client_id):
    return listing(container().counterparty_service.credit_sales_for(client_id))


@api.route('/<any(clients, suppliers):collection>/<counterparty_id>/payments', methods=['POST'])
@login_required
def apply_payment(collection, counterparty_id):
    data = body()
    service = container().counterparty_service
    if collection == CLIENTS:
        result = service.apply_client_payment(
            counterparty_id, data.get('amount'), data.get('sale_id'), data.get('note', ''),
            data.get('date'), current_user()
        )
    else:
        result = service.apply_supplier_payment(
            counterparty_id, data.get('amount'), data.get('note', ''), data.get('date'), current_user()
        )
    return respond(result, 201)


@api.route('/payments', methods=['GET'])
@login_required
def list_payments():
    return listing(container().counterparty_service.list_payments(request.args.get('type')))


# ═══════════════════════════════════════════════════════════════════════════════
# COMPRAS Y COTIZACIONES
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/purchases', methods=['GET'])
@login_required
def list_purchases():
    return listing(container().purchase_service.list_purchases(request.args.get('status')))


@api.route('/purchases/kpis', methods=['GET'])
@login_required
def purchase_kpis():
    return jsonify({'ok': True, **container().purchase_service.kpis()}), 200


@api.route('/purchases', methods=['POST'])
@login_required
def create_purchase():
    return respond(container().purchase_service.save_purchase(body(), user=current_user()), 201)


@api.route('/purchases/<purchase_id>', methods=['GET'])
@login_required
def get_purchase(purchase_id):
    return found(container().purchase_service.get_purchase(purchase_id), 'Compra', purchase_id)


@api.route('/purchases/<purchase_id>', methods=['PUT'])
@login_required
def update_purchase(purchase_id):
    return respond(container().purchase_service.save_purchase(body(), purchase_id, current_user()))


@api.route('/purchases/<purchase_id>', methods=['DELETE'])
@login_required
@role_required(UserRole.ADMIN.value)
def delete_purchase(purchase_id):
    return respond(container().purchase_service.delete_purchase(purchase_id, current_user()))


@api.route('/purchases/<purchase_id>/status', methods=['POST'])
@login_required
def change_purchase_status(purchase_id):
    return respond(container().purchase_service.change_status(
        purchase_id, body().get('status'), current_user()
    ))


@api.route('/purchases/<purchase_id>/logistics', methods=['POST'])
@login_required
def request_logistics(purchase_id):
    return respond(container().purchase_service.request_logistics(purchase_id, current_user()), 201)


@api.route('/purchases/<purchase_id>/reception', methods=['POST'])
@login_required
def confirm_reception(purchase_id):
    return respond(container().inventory_service.confirm_reception(
        purchase_id, body().get('received') or {}, current_user()
    ))


@api.route('/quotations', methods=['GET'])
@login_required
def list_quotes():
    return listing(container().quotation_service.list_quotes(request.args.get('status')))


@api.route('/quotations/approved-unused', methods=['GET'])
@login_required
def approved_unused_quotes():
    return listing(container().quotation_service.approved_unused())


@api.route('/quotations', methods=['POST'])
@login_required
def create_quote():
    return respond(container().quotation_service.create_quote(body(), current_user()), 201)


@api.route('/quotations/<quote_id>', methods=['GET'])
@login_required
def get_quote(quote_id):
    return found(container().quotation_service.get_quote(quote_id), 'Cotización', quote_id)


@api.route('/quotations/<quote_id>', methods=['PUT'])
@login_required
def update_quote(quote_id):
    return respond(container().quotation_service.update_quote(quote_id, body(), current_user()))


@api.route('/quotations/<quote_id>', methods=['DELETE'])
@login_required
def delete_quote(quote_id):
    return respond(container().quotation_service.delete_quote(quote_id, current_user()))


@api.route('/quotations/<quote_id>/<any(approve, reject):decision>', methods=['POST'])
@login_required
@role_required(UserRole.ADMIN.value)
def decide_quote(quote_id, decision):
    service = container().quotation_service
    action = service.approve if decision == 'approve' else service.reject
    return respond(action(quote_id, current_user()))


# ═══════════════════════════════════════════════════════════════════════════════
# VENTAS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/sales', methods=['GET'])
@login_required
def list_sales():
    return listing(container().sales_service.list_sales(
        request.args.get('branch_id'), request.args.get('status'), request.args.get('client_id')
    ))


@api.route('/sales/summary', methods=['GET'])
@login_required
def sales_summary():
    return jsonify({'ok': True, **container().sales_service.sales_summary()}), 200


@api.route('/sales', methods=['POST'])
@login_required
def create_sale():
    return respond(container().sales_service.create_sale(body(), current_user()), 201)


@api.route('/sales/<sale_id>', methods=['GET'])
@login_required
def get_sale(sale_id):
    return found(container().sales_service.get_sale(sale_id), 'Venta', sale_id)


@api.route('/sales/<sale_id>/cancel', methods=['POST'])
@login_required
def cancel_sale(sale_id):
    return respond(container().sales_service.cancel_sale(sale_id, current_user()))


@api.route('/sales/<sale_id>/pay', methods=['POST'])
@login_required
def mark_sale_paid(sale_id):
    return respond(container().sales_service.mark_paid(sale_id, current_user()))


@api.route('/sales/<sale_id>', methods=['DELETE'])
@login_required
@role_required(UserRole.ADMIN.value)
def delete_sale(sale_id):
    return respond(container().sales_service.delete_sale(sale_id, current_user()))


# ═══════════════════════════════════════════════════════════════════════════════
# ACTIVOS FIJOS Y FINANZAS
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/assets', methods=['GET'])
@login_required
def list_assets():
    return listing(container().asset_service.list_assets())


@api.route('/assets/totals', methods=['GET'])
@login_required
def asset_totals():
    return jsonify({'ok': True, **container().asset_service.totals()}), 200


@api.route('/assets', methods=['POST'])
@login_required
def create_asset():
    return respond(container().asset_service.create_asset(body(), current_user()), 201)


@api.route('/assets/<asset_id>', methods=['GET'])
@login_required
def get_asset(asset_id):
    return found(container().asset_service.get_asset(asset_id), 'Activo', asset_id)


@api.route('/assets/<asset_id>', methods=['PUT'])
@login_required
def update_asset(asset_id):
    return respond(container().asset_service.update_asset(asset_id, body(), current_user()))


@api.route('/assets/<asset_id>', methods=['DELETE'])
@login_required
@role_required(UserRole.ADMIN.value)
def delete_asset(asset_id):
    return respond(container().asset_service.delete_asset(asset_id, current_user()))


@api.route('/assets/revalue', methods=['POST'])
@login_required
@role_required(UserRole.ADMIN.value)
def revalue_assets():
    return jsonify({'ok': True, 'updated': container().asset_service.revalue_all()}), 200


@api.route('/maintenances', methods=['GET'])
@login_required
def list_maintenances():
    return listing(container().maintenance_service.list_maintenances(
        request.args.get('asset_id'), request.args.get('status')
    ))


@api.route('/maintenances/overview', methods=['GET'])
@login_required
def maintenance_overview():
    return jsonify({'ok': True, **container().maintenance_service.overview()}), 200


@api.route('/maintenances', methods=['POST'])
@login_required
def create_maintenance():
    return respond(container().maintenance_service.save_maintenance(body(), user=current_user()), 201)


@api.route('/maintenances/<maintenance_id>', methods=['GET'])
@login_required
def get_maintenance(maintenance_id):
    item = container().maintenance_service.get_maintenance(maintenance_id)
    return found(item, 'Mantenimiento', maintenance_id)


@api.route('/maintenances/<maintenance_id>', methods=['PUT'])
@login_required
def update_maintenance(maintenance_id):
    return respond(container().maintenance_service.save_maintenance(body(), maintenance_id, current_user()))


@api.route('/maintenances/<maintenance_id>', methods=['DELETE'])
@login_required
@role_required(UserRole.ADMIN.value)
def delete_maintenance(maintenance_id):
    return respond(container().maintenance_service.delete_maintenance(maintenance_id, current_user()))


@api.route('/finance/statements', methods=['GET', 'POST'])
@login_required
def financial_statements():
    overrides = body() if request.method == 'POST' else request.args.to_dict()
    return jsonify({'ok': True, **container().finance_service.statements(overrides)}), 200


# ═══════════════════════════════════════════════════════════════════════════════
# LOGÍSTICA
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/logistics/vehicles', methods=['GET'])
@login_required
def list_vehicles():
    return listing(container().logistics_service.list_vehicles(request.args.get('status')))


@api.route('/logistics/vehicles', methods=['POST'])
@login_required
def create_vehicle():
    return respond(container().logistics_service.create_vehicle(body(), current_user()), 201)


@api.route('/logistics/vehicles/<vehicle_id>', methods=['PUT'])
@login_required
def update_vehicle(vehicle_id):
    return respond(container().logistics_service.update_vehicle(vehicle_id, body(), current_user()))


@api.route('/logistics/vehicles/<vehicle_id>', methods=['DELETE'])
@login_required
def delete_vehicle(vehicle_id):
    return respond(container().logistics_service.delete_vehicle(vehicle_id, current_user()))


@api.route('/logistics/<any(deliveries, pickups):kind>', methods=['GET'])
@login_required
def list_trips(kind):
    return listing(container().logistics_service.list_trips(TRIP_TYPES[kind], request.args.get('status')))


@api.route('/logistics/<any(deliveries, pickups):kind>', methods=['POST'])
@login_required
def create_trip(kind):
    return respond(container().logistics_service.create_trip(TRIP_TYPES[kind], body(), current_user()), 201)


@api.route('/logistics/<any(deliveries, pickups):kind>/<trip_id>', methods=['DELETE'])
@login_required
def delete_trip(kind, trip_id):
    return respond(container().logistics_service.delete_trip(TRIP_TYPES[kind], trip_id, current_user()))


@api.route('/logistics/<any(deliveries, pickups):kind>/<trip_id>/vehicle', methods=['POST'])
@login_required
def assign_vehicle(kind, trip_id):
    return respond(container().logistics_service.assign_vehicle(
        TRIP_TYPES[kind], trip_id, body().get('vehicle_id'), current_user()
    ))


@api.route('/logistics/<any(deliveries, pickups):kind>/<trip_id>/status', methods=['POST'])
@login_required
def update_trip_status(kind, trip_id):
    return respond(container().logistics_service.update_trip_status(
        TRIP_TYPES[kind], trip_id, body().get('status'), current_user()
    ))


@api.route('/logistics/expenses', methods=['GET'])
@login_required
def list_expenses():
    return listing(container().logistics_service.list_expenses(request.args.get('trip_id')))


@api.route('/logistics/expenses/by-vehicle', methods=['GET'])
@login_required
def expenses_by_vehicle():
    return listing(container().logistics_service.expenses_by_vehicle())


@api.route('/logistics/expenses', methods=['POST'])
@login_required
def add_expense():
    return respond(container().logistics_service.add_expense(body(), current_user()), 201)


@api.route('/logistics/expenses/<expense_id>', methods=['DELETE'])
@login_required
def delete_expense(expense_id):
    return respond(container().logistics_service.delete_expense(expense_id, current_user()))


# ═══════════════════════════════════════════════════════════════════════════════
# NOTIFICACIONES, RPA Y SUCURSALES
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/notifications', methods=['GET'])
@login_required
def list_notifications():
    unread_only = request.args.get('unread') in ('1', 'true')
    service = container().notification_service
    items = service.list_for(current_user(), unread_only)
    return jsonify({'ok': True, 'items': items, 'unread': service.unread_count(current_user())}), 200


@api.route('/notifications/<notification_id>/read', methods=['POST'])
@login_required
def mark_notification_read(notification_id):
    if not container().notification_service.mark_read(current_user(), notification_id):
        return respond(NotFoundError('Notificación', notification_id).to_result())
    return jsonify({'ok': True}), 200


@api.route('/notifications/read-all', methods=['POST'])
@login_required
def mark_all_notifications_read():
    return jsonify({'ok': True, 'updated': container().notification_service.mark_all_read(current_user())}), 200


@api.route('/rpa/bots', methods=['GET'])
@login_required
def list_bots():
    service = container().rpa_service
    return jsonify({'ok': True, 'items': service.list_bots(), 'status_counts': service.status_counts()}), 200


@api.route('/rpa/bots', methods=['POST'])
@login_required
def create_bot():
    return respond(container().rpa_service.create_bot(body(), current_user()), 201)


@api.route('/rpa/bots/<bot_id>', methods=['PUT'])
@login_required
def update_bot(bot_id):
    return respond(container().rpa_service.update_bot(bot_id, body(), current_user()))


@api.route('/rpa/bots/<bot_id>', methods=['DELETE'])
@login_required
def delete_bot(bot_id):
    return respond(container().rpa_service.delete_bot(bot_id, current_user()))


@api.route('/rpa/bots/<bot_id>/toggle', methods=['POST'])
@login_required
def toggle_bot(bot_id):
    return respond(container().rpa_service.toggle(bot_id, current_user()))


@api.route('/branches', methods=['GET'])
@login_required
def list_branches():
    return listing(container().branch_service.list_branches())


@api.route('/branches', methods=['POST'])
@login_required
@role_required(UserRole.ADMIN.value)
def create_branch():
    return respond(container().branch_service.create_branch(body(), current_user()), 201)


@api.route('/branches/<branch_id>', methods=['PUT'])
@login_required
@role_required(UserRole.ADMIN.value)
def update_branch(branch_id):
    return respond(container().branch_service.update_branch(branch_id, body(), current_user()))


@api.route('/branches/<branch_id>', methods=['DELETE'])
@login_required
@role_required(UserRole.ADMIN.value)
def delete_branch(branch_id):
    return respond(container().branch_service.delete_branch(branch_id, current_user()))


# ═══════════════════════════════════════════════════════════════════════════════
# ADMINISTRACIÓN (auditoría, backups, rendimiento)
# ═══════════════════════════════════════════════════════════════════════════════

@api.route('/audit', methods=['GET'])
@login_required
@role_required(UserRole.ADMIN.value)
def audit_logs():
    service = container().audit_service
    query = request.args.get('q', '')
    log_type = request.args.get('type')
    user = request.args.get('user')
    if query or log_type or user:
        return listing(service.search_logs(query, log_type, user))
    return listing(service.get_recent_logs(int(request.args.get('limit', 100))))


@api.route('/backups', methods=['GET'])
@login_required
@role_required(UserRole.ADMIN.value)
def backup_status():
    return jsonify({'ok': True, **container().backup_service.get_backup_status()}), 200


@api.route('/backups', methods=['POST'])
@login_required
@role_required(UserRole.ADMIN.value)
def create_backup():
    service = container().backup_service
    result = service.create_backup(force=bool(body().get('force')))
    result['rotation'] = service.rotate_backups()
    status = 201 if result['success'] else 500
    return jsonify({'ok': result['success'], **result}), status


@api.route('/performance', methods=['GET'])
@login_required
@role_required(UserRole.ADMIN.value)
def performance_stats():
    return jsonify({'ok': True, 'routes': get_route_stats(), 'functions': get_function_stats()}), 200


# ═══════════════════════════════════════════════════════════════════════════════
# FÁBRICA DE LA APLICACIÓN
# ═══════════════════════════════════════════════════════════════════════════════

def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
    # HSTS solo con HTTPS real
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ErpError)
    def handle_erp_error(error: ErpError):
        return respond(error.to_result())

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({'ok': False, 'error': 'Recurso no encontrado', 'code': 'NO_ENCONTRADO'}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return jsonify({'ok': False, 'error': 'Método no permitido', 'code': 'METODO_NO_PERMITIDO'}), 405

    @app.errorhandler(500)
    def handle_internal_error(error):
        logger.error("Error interno en %s %s", request.method, request.path)
        return jsonify({'ok': False, 'error': 'Error interno del servidor', 'code': 'ERROR_INTERNO'}), 500


def create_app(config: Config = None) -> Flask:
    """
    Crea la aplicación Flask.

    Args:
        config: Configuración (por defecto Config leída del entorno)

    Returns:
        App lista para servir
    """
    config = config or Config()
    setup_logging(config.LOG_LEVEL, config.LOG_DIR, config.LOG_TO_FILE)

    if not config.SECRET_KEY:
        if config.PRODUCTION_MODE:
            logger.warning("PRODUCTION_MODE activo sin AGRO_SECRET_KEY definida; se usa la clave de desarrollo")
        config.SECRET_KEY = DEFAULT_SECRET

    app = Flask(__name__)
    app.config.update(config.to_flask())

    # Un contenedor por app (carpeta de datos de esta configuración)
    AppContainer.reset_instance()
    app_container = AppContainer(config)
    app.extensions['agro_erp'] = app_container

    app_container.user_service.seed_admin(config.ADMIN_EMAIL, config.ADMIN_PASSWORD)
    if config.BACKUP_ON_STARTUP:
        run_startup_backup(config.DATA_DIR, config.MAX_BACKUPS)
    app_container.asset_service.revalue_all()

    init_profiling(app)
    app.register_blueprint(api)
    app.after_request(set_security_headers)
    _register_error_handlers(app)

    logger.info("agro_erp iniciado (datos en %s)", config.DATA_DIR)
    return app
