# ==============================================================================
# UTILIDADES DE SERVICIOS
# ==============================================================================
# Nombres de colecciones y el decorador que convierte errores de negocio
# en el resultado estándar {'ok': False, 'error': ..., 'code': ...}.
# ==============================================================================

import logging
from functools import wraps
from typing import Any, Callable, Dict

from agro_erp.errors import ErpError, NotFoundError, write_failure

logger = logging.getLogger(__name__)

# Colecciones del almacén de documentos
PRODUCTS = 'products'
INVENTORY = 'inventory'
SALES = 'sales'
PURCHASES = 'purchases'
QUOTATIONS = 'quotations'
CLIENTS = 'clients'
SUPPLIERS = 'suppliers'
PAYMENTS = 'payments'
BRANCHES = 'branches'
FIXED_ASSETS = 'fixed_assets'
VEHICLES = 'vehicles'
DELIVERIES = 'deliveries'
PICKUPS = 'pickups'
LOGISTICS_EXPENSES = 'logistics_expenses'
RPA_BOTS = 'rpa_bots'
MAINTENANCES = 'maintenances'

# Sucursal principal; existe aunque no tenga documento en BRANCHES
DEFAULT_BRANCH = 'matriz'


def notifications_collection(user_id: str) -> str:
    """Subcolección de notificaciones de un usuario."""
    return f"users/{user_id}/notifications"


def require_branch(tx: Any, branch_id: str) -> Dict[str, Any]:
    """
    Valida la sucursal dentro de una transacción.

    Returns:
        Documento de la sucursal (o uno mínimo para la matriz)

    Raises:
        NotFoundError: Si la sucursal no existe
    """
    branch = tx.get(BRANCHES, branch_id)
    if branch:
        return branch
    if branch_id == DEFAULT_BRANCH:
        return {'id': DEFAULT_BRANCH, 'name': 'Matriz'}
    raise NotFoundError('Sucursal', branch_id)


def service_call(action: str) -> Callable:
    """
    Decorador para métodos públicos de servicio.

    - ErpError -> resultado con su código (se registra en INFO)
    - OSError (fallo de escritura) -> ERROR_ESCRITURA con traceback en el log

    Args:
        action: Nombre de la operación para los logs
    """
    def decorator(fn: Callable[..., Dict[str, Any]]) -> Callable[..., Dict[str, Any]]:
        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Dict[str, Any]:
            try:
                return fn(*args, **kwargs)
            except ErpError as e:
                logger.info("%s rechazado (%s): %s", action, e.code, e.message)
                return e.to_result()
            except OSError:
                logger.exception("Fallo de escritura en %s", action)
                return write_failure()
        return wrapper
    return decorator
