# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Entidades del dominio como dataclasses. Validan sus invariantes al
# construirse con from_dict() y son independientes de la persistencia.
# ==============================================================================

from .entities import (
    # Usuarios
    User,
    UserRole,

    # Catálogo e inventario
    Product,
    Branch,
    InventoryLot,

    # Contrapartes
    Client,
    Supplier,
    CounterpartyStatus,
    PUBLIC_CLIENT_ID,
    PUBLIC_CLIENT_NAME,

    # Compras y ventas
    PurchaseOrder,
    PurchaseItem,
    AssociatedCost,
    PurchaseStatus,
    SaleRequest,
    SaleItem,
    SaleStatus,
    PaymentMethod,
    normalize_payment_method,

    # Cotizaciones
    Quote,
    QuoteItem,
    QuoteStatus,

    # Activos
    FixedAsset,

    # Logística
    Vehicle,
    VehicleStatus,
    VehicleType,
    FuelType,
    Delivery,
    DeliveryStatus,
    Pickup,
    PickupStatus,
    LogisticsExpense,
    ExpenseConcept,
    TripType,

    # RPA
    RpaBot,
    BotStatus,
    BotTrigger,
)

__all__ = [
    'User', 'UserRole',
    'Product', 'Branch', 'InventoryLot',
    'Client', 'Supplier', 'CounterpartyStatus', 'PUBLIC_CLIENT_ID', 'PUBLIC_CLIENT_NAME',
    'PurchaseOrder', 'PurchaseItem', 'AssociatedCost', 'PurchaseStatus',
    'SaleRequest', 'SaleItem', 'SaleStatus', 'PaymentMethod', 'normalize_payment_method',
    'Quote', 'QuoteItem', 'QuoteStatus',
    'FixedAsset',
    'Vehicle', 'VehicleStatus', 'VehicleType', 'FuelType',
    'Delivery', 'DeliveryStatus', 'Pickup', 'PickupStatus',
    'LogisticsExpense', 'ExpenseConcept', 'TripType',
    'RpaBot', 'BotStatus', 'BotTrigger',
]
