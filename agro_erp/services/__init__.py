# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio de la aplicación.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones sobre el DocumentStore
# 2. Las operaciones con dinero o stock corren en UNA transacción
# 3. Las rutas (controllers) solo llaman a servicios
# 4. Los métodos públicos devuelven {'ok': bool, ...}
#
# ESTRUCTURA:
# ├── costing.py              → Prorrateo de gastos y costo real
# ├── product_service.py      → Catálogo
# ├── inventory_service.py    → Lotes, recepción, consumo
# ├── counterparty_service.py → Clientes, proveedores, crédito, abonos
# ├── purchase_service.py     → Órdenes de compra
# ├── sales_service.py        → Ventas
# ├── quotation_service.py    → Cotizaciones
# ├── asset_service.py        → Activos fijos y depreciación
# ├── maintenance_service.py  → Mantenimiento de activos
# ├── logistics_service.py    → Flotilla, entregas, recolecciones, gastos
# ├── finance_service.py      → Estados financieros
# ├── notification_service.py → Notificaciones por usuario
# ├── rpa_service.py          → Registro de bots
# ├── branch_service.py       → Sucursales
# ├── user_service.py         → Usuarios y autenticación
# ├── audit_service.py        → Logs de actividad
# └── backup_service.py       → Backups ZIP diarios
# ==============================================================================

from agro_erp.services.asset_service import AssetService
from agro_erp.services.audit_service import AuditService
from agro_erp.services.backup_service import BackupService, run_startup_backup
from agro_erp.services.branch_service import BranchService
from agro_erp.services.costing import prorate_costs
from agro_erp.services.counterparty_service import CounterpartyService
from agro_erp.services.finance_service import FinanceService, FinancialInputs
from agro_erp.services.inventory_service import InventoryService
from agro_erp.services.logistics_service import LogisticsService
from agro_erp.services.maintenance_service import MaintenanceService
from agro_erp.services.notification_service import NotificationService
from agro_erp.services.product_service import ProductService
from agro_erp.services.purchase_service import PurchaseService
from agro_erp.services.quotation_service import QuotationService
from agro_erp.services.rpa_service import RpaService
from agro_erp.services.sales_service import SalesService
from agro_erp.services.user_service import UserService

__all__ = [
    'AssetService',
    'AuditService',
    'BackupService',
    'run_startup_backup',
    'BranchService',
    'prorate_costs',
    'CounterpartyService',
    'FinanceService',
    'FinancialInputs',
    'InventoryService',
    'LogisticsService',
    'MaintenanceService',
    'NotificationService',
    'ProductService',
    'PurchaseService',
    'QuotationService',
    'RpaService',
    'SalesService',
    'UserService',
]
