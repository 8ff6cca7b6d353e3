# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único para obtener repositorios y servicios ya cableados.
# Facilita:
#   - Inyección de dependencias
#   - Testing (un contenedor por carpeta de datos temporal)
#   - Cambiar la persistencia sin tocar servicios
# ==============================================================================

from typing import Optional

from agro_erp.config import Config
from agro_erp.repositories import AuditRepository, DocumentStore, UserRepository
from agro_erp.services import (
    AssetService,
    AuditService,
    BackupService,
    BranchService,
    CounterpartyService,
    FinanceService,
    InventoryService,
    LogisticsService,
    MaintenanceService,
    NotificationService,
    ProductService,
    PurchaseService,
    QuotationService,
    RpaService,
    SalesService,
    UserService,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    de cada repositorio y servicio.

    Uso:
        container = AppContainer(config)
        sales_service = container.sales_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, config: Config = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config: Config = None):
        if self._initialized:
            return

        self.config = config or Config()
        self._data_dir = self.config.DATA_DIR

        # Repositorios (lazy loading)
        self._store: Optional[DocumentStore] = None
        self._user_repo: Optional[UserRepository] = None
        self._audit_repo: Optional[AuditRepository] = None

        # Servicios (lazy loading)
        self._services = {}

        self._initialized = True

    # =========================================================================
    # REPOSITORIOS
    # =========================================================================

    @property
    def store(self) -> DocumentStore:
        """Almacén de documentos (singleton)."""
        if self._store is None:
            self._store = DocumentStore(self._data_dir, self.config.TX_MAX_ATTEMPTS)
        return self._store

    @property
    def user_repo(self) -> UserRepository:
        if self._user_repo is None:
            self._user_repo = UserRepository(self._data_dir)
        return self._user_repo

    @property
    def audit_repo(self) -> AuditRepository:
        if self._audit_repo is None:
            self._audit_repo = AuditRepository(self._data_dir)
        return self._audit_repo

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    def _service(self, name: str, factory):
        if name not in self._services:
            self._services[name] = factory()
        return self._services[name]

    @property
    def audit_service(self) -> AuditService:
        return self._service('audit', lambda: AuditService(self.audit_repo))

    @property
    def notification_service(self) -> NotificationService:
        return self._service('notification', lambda: NotificationService(self.store))

    @property
    def user_service(self) -> UserService:
        return self._service('user', lambda: UserService(self.user_repo, self.audit_service))

    @property
    def product_service(self) -> ProductService:
        return self._service('product', lambda: ProductService(self.store, self.audit_service))

    @property
    def inventory_service(self) -> InventoryService:
        return self._service('inventory', lambda: InventoryService(self.store, self.audit_service))

    @property
    def counterparty_service(self) -> CounterpartyService:
        return self._service('counterparty', lambda: CounterpartyService(self.store, self.audit_service))

    @property
    def purchase_service(self) -> PurchaseService:
        return self._service('purchase', lambda: PurchaseService(
            self.store,
            self.audit_service,
            self.notification_service,
            self.config.LOGISTICS_PHONE
        ))

    @property
    def sales_service(self) -> SalesService:
        return self._service('sales', lambda: SalesService(
            self.store,
            self.audit_service,
            self.notification_service
        ))

    @property
    def quotation_service(self) -> QuotationService:
        return self._service('quotation', lambda: QuotationService(self.store))

    @property
    def asset_service(self) -> AssetService:
        return self._service('asset', lambda: AssetService(self.store, self.audit_service))

    @property
    def maintenance_service(self) -> MaintenanceService:
        return self._service('maintenance', lambda: MaintenanceService(self.store, self.audit_service))

    @property
    def logistics_service(self) -> LogisticsService:
        return self._service('logistics', lambda: LogisticsService(self.store, self.audit_service))

    @property
    def finance_service(self) -> FinanceService:
        return self._service('finance', lambda: FinanceService(self.store))

    @property
    def rpa_service(self) -> RpaService:
        return self._service('rpa', lambda: RpaService(self.store))

    @property
    def branch_service(self) -> BranchService:
        return self._service('branch', lambda: BranchService(self.store))

    @property
    def backup_service(self) -> BackupService:
        return self._service('backup', lambda: BackupService(self._data_dir, self.config.MAX_BACKUPS))

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """Reinicia todas las instancias (recarga datos)."""
        self._store = None
        self._user_repo = None
        self._audit_repo = None
        self._services = {}

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None
