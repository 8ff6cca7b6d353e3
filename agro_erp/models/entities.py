# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio y valida sus invariantes
# al construirse desde los datos de entrada (from_dict). Los errores de
# validación se lanzan como ValidationError con un mensaje para el usuario.
# Diseñadas para ser independientes del mecanismo de persistencia.
# ==============================================================================

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from agro_erp.errors import ValidationError
from agro_erp.utils import parse_date, to_float


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class UserRole(str, Enum):
    """Roles de usuario disponibles en el sistema."""
    ADMIN = "admin"
    OPERADOR = "operador"


class PurchaseStatus(str, Enum):
    PENDIENTE = "Pendiente"
    COMPLETADA = "Completada"
    CANCELADA = "Cancelada"


class SaleStatus(str, Enum):
    PENDIENTE = "Pendiente"      # Venta a crédito por cobrar
    PAGADA = "Pagada"
    CANCELADA = "Cancelada"      # Terminal


class QuoteStatus(str, Enum):
    PENDIENTE = "Pendiente"
    APROBADA = "Aprobada"
    RECHAZADA = "Rechazada"


class PaymentMethod(str, Enum):
    """Métodos de pago aceptados."""
    EFECTIVO = "Efectivo"
    TARJETA = "Tarjeta"
    TRANSFERENCIA = "Transferencia"
    CREDITO = "Credito"


class CounterpartyStatus(str, Enum):
    ACTIVO = "Activo"
    INACTIVO = "Inactivo"


class VehicleType(str, Enum):
    CAMIONETA = "Camioneta"
    TRACTOR = "Tractor"
    CAMION = "Camión"


class VehicleStatus(str, Enum):
    DISPONIBLE = "Disponible"
    EN_RUTA = "En Ruta"
    MANTENIMIENTO = "Mantenimiento"


class FuelType(str, Enum):
    DIESEL = "Diesel"
    GASOLINA = "Gasolina"


class DeliveryStatus(str, Enum):
    EN_PREPARACION = "En Preparación"
    EN_RUTA = "En Ruta"
    ENTREGADA = "Entregada"
    CANCELADA = "Cancelada"


class PickupStatus(str, Enum):
    PROGRAMADA = "Programada"
    EN_TRANSITO = "En Tránsito"
    COMPLETADA = "Completada"
    CANCELADA = "Cancelada"


class ExpenseConcept(str, Enum):
    COMBUSTIBLE = "Combustible"
    CASETAS = "Casetas"
    VIATICOS = "Viáticos"
    MANTENIMIENTO_MENOR = "Mantenimiento Menor"
    OTRO = "Otro"


class AssetStatus(str, Enum):
    ACTIVO = "Activo"
    MANTENIMIENTO = "Mantenimiento"


class MaintenanceType(str, Enum):
    PREVENTIVO = "Preventivo"
    CORRECTIVO = "Correctivo"


class MaintenanceStatus(str, Enum):
    PROGRAMADO = "Programado"
    EN_PROGRESO = "En Progreso"
    COMPLETADO = "Completado"    # Libera el activo


class TripType(str, Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class BotStatus(str, Enum):
    ACTIVO = "Activo"
    INACTIVO = "Inactivo"
    ERROR = "Error"


class BotTrigger(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    WEBHOOK = "webhook"


# Cliente genérico de mostrador: nunca compra a crédito
PUBLIC_CLIENT_ID = 'general-public'
PUBLIC_CLIENT_NAME = 'Público en General'

# Objeto de impuesto SAT que causa IVA
OBJ_IMP_TAXABLE = '02'
DEFAULT_IVA_RATE = 0.16
# Categorías con tasa 0% de IVA
ZERO_RATE_CATEGORIES = frozenset(['FERTILIZANTE', 'ADHERENTE'])


# ==============================================================================
# HELPERS DE VALIDACIÓN
# ==============================================================================

def _text(data: Dict[str, Any], key: str, label: str = None, required: bool = False) -> str:
    value = data.get(key)
    value = '' if value is None else str(value).strip()
    if required and not value:
        raise ValidationError(f"{label or key} es requerido.")
    return value


def _number(
    data: Dict[str, Any],
    key: str,
    label: str = None,
    default: float = 0.0,
    minimum: float = None,
    strict: bool = False
) -> float:
    """
    Lee un número del dict.

    Args:
        minimum: Valor mínimo permitido
        strict: Si True el valor debe ser estrictamente mayor a minimum
    """
    raw = data.get(key)
    value = default if raw is None or raw == '' else to_float(raw, label or key)
    if minimum is not None:
        if strict and value <= minimum:
            raise ValidationError(f"{label or key} debe ser mayor a {minimum:g}.")
        if not strict and value < minimum:
            raise ValidationError(f"{label or key} no puede ser menor a {minimum:g}.")
    return value


def _choice(value: Any, enum_cls, label: str, default: Enum = None) -> str:
    """Valida un valor contra una enumeración y devuelve su texto."""
    if (value is None or value == '') and default is not None:
        return default.value
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ', '.join(e.value for e in enum_cls)
        raise ValidationError(f"{label} inválido: '{value}'. Valores permitidos: {allowed}.")


def normalize_payment_method(value: Any) -> str:
    """
    Normaliza el método de pago ('credito', 'Crédito' -> 'Credito').

    Raises:
        ValidationError: Si no es un método conocido
    """
    text = str(value or '').strip().lower().replace('é', 'e')
    for method in PaymentMethod:
        if method.value.lower() == text:
            return method.value
    return _choice(value, PaymentMethod, 'Método de pago')


def _date_text(data: Dict[str, Any], key: str, label: str, required: bool = False) -> str:
    parsed = parse_date(data.get(key), label)
    if parsed is None:
        if required:
            raise ValidationError(f"{label} es requerida.")
        return ''
    return parsed.isoformat()


# ==============================================================================
# USUARIOS
# ==============================================================================

@dataclass
class User:
    """
    Usuario del sistema (clave = e-mail).

    Attributes:
        email: Identificador único del usuario
        password_hash: Hash werkzeug de la contraseña
        role: Rol del usuario
    """
    email: str
    password_hash: str
    role: UserRole = UserRole.OPERADOR
    name: str = ''

    @classmethod
    def from_dict(cls, email: str, data: Dict[str, Any]) -> 'User':
        try:
            role = UserRole(data.get('role', 'operador'))
        except ValueError:
            role = UserRole.OPERADOR
        return cls(
            email=email,
            password_hash=data.get('password', ''),
            role=role,
            name=data.get('name', ''),
        )


# ==============================================================================
# CATÁLOGO
# ==============================================================================

@dataclass
class Product:
    """
    Producto del catálogo. El stock NO vive aquí sino en los lotes.

    Attributes:
        cost: Último costo real de compra (se sobrescribe al completar compras)
        conversion_factor: Unidades de venta por unidad de compra
        obj_imp: Clave SAT de objeto de impuesto ('02' causa IVA)
    """
    sku: str
    name: str
    category: str
    price: float = 0.0
    cost: float = 0.0
    description: str = ''
    company_name: str = ''
    active_ingredient: str = ''
    is_bulk: bool = False
    sales_unit: str = ''
    purchase_unit: str = ''
    conversion_factor: float = 1.0
    obj_imp: str = OBJ_IMP_TAXABLE
    iva_rate: Optional[float] = None
    ieps_rate: float = 0.0

    @property
    def tax_rate(self) -> float:
        """Tasa de IVA aplicable a la venta (16% si no se definió)."""
        if self.obj_imp != OBJ_IMP_TAXABLE or self.category.upper() in ZERO_RATE_CATEGORIES:
            return 0.0
        return DEFAULT_IVA_RATE if self.iva_rate is None else self.iva_rate

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        factor = _number(data, 'conversion_factor', 'El factor de conversión', default=1.0)
        if factor <= 0:
            factor = 1.0
        return cls(
            sku=_text(data, 'sku', 'El SKU', required=True),
            name=_text(data, 'name', 'El nombre', required=True),
            category=_text(data, 'category', 'La categoría', required=True),
            price=_number(data, 'price', 'El precio', minimum=0),
            cost=_number(data, 'cost', 'El costo', minimum=0),
            description=_text(data, 'description'),
            company_name=_text(data, 'company_name'),
            active_ingredient=_text(data, 'active_ingredient'),
            is_bulk=bool(data.get('is_bulk', False)),
            sales_unit=_text(data, 'sales_unit'),
            purchase_unit=_text(data, 'purchase_unit'),
            conversion_factor=factor,
            obj_imp=_text(data, 'obj_imp') or OBJ_IMP_TAXABLE,
            iva_rate=(None if data.get('iva_rate') in (None, '')
                      else _number(data, 'iva_rate', 'La tasa de IVA', minimum=0)),
            ieps_rate=_number(data, 'ieps_rate', 'La tasa de IEPS', minimum=0),
        )


@dataclass
class Branch:
    name: str
    address: str = ''
    city: str = ''
    state: str = ''
    postal_code: str = ''
    phone: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Branch':
        return cls(
            name=_text(data, 'name', 'El nombre de la sucursal', required=True),
            address=_text(data, 'address'),
            city=_text(data, 'city'),
            state=_text(data, 'state'),
            postal_code=_text(data, 'postal_code'),
            phone=_text(data, 'phone'),
        )


# ==============================================================================
# INVENTARIO
# ==============================================================================

@dataclass
class InventoryLot:
    """
    Lote de inventario: cantidad de un SKU en una sucursal con su costo.

    Attributes:
        lot: Número de lote (ej: LOTE-A1B2C3)
        unit_price: Costo unitario real del lote
        entry_date: Fecha de entrada ISO
    """
    product_name: str
    sku: str
    lot: str
    quantity: float
    unit_price: float
    entry_date: str
    branch_id: str
    purchase_id: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InventoryLot':
        return cls(
            product_name=_text(data, 'product_name'),
            sku=_text(data, 'sku', 'El SKU', required=True),
            lot=_text(data, 'lot', 'El número de lote', required=True),
            quantity=_number(data, 'quantity', 'La cantidad', minimum=0),
            unit_price=_number(data, 'unit_price', 'El costo unitario', minimum=0),
            entry_date=_date_text(data, 'entry_date', 'La fecha de entrada', required=True),
            branch_id=_text(data, 'branch_id', 'La sucursal', required=True),
            purchase_id=_text(data, 'purchase_id'),
        )


# ==============================================================================
# CONTRAPARTES (CLIENTES / PROVEEDORES)
# ==============================================================================

@dataclass
class Client:
    name: str
    rfc: str = ''
    contact: str = ''
    address: str = ''
    status: str = CounterpartyStatus.ACTIVO.value
    has_credit: bool = False
    credit_limit: float = 0.0
    credit_used: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def _base_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        has_credit = bool(data.get('has_credit', False))
        limit = _number(data, 'credit_limit', 'El límite de crédito', minimum=0)
        used = _number(data, 'credit_used', 'El crédito usado', minimum=0)
        if has_credit and limit <= 0:
            raise ValidationError("El límite de crédito debe ser mayor a 0 si tiene crédito.")
        return {
            'name': _text(data, 'name', 'El nombre', required=True),
            'rfc': _text(data, 'rfc').upper(),
            'contact': _text(data, 'contact'),
            'address': _text(data, 'address'),
            'status': _choice(data.get('status'), CounterpartyStatus, 'Estatus',
                              default=CounterpartyStatus.ACTIVO),
            'has_credit': has_credit,
            'credit_limit': limit if has_credit else 0.0,
            'credit_used': used,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Client':
        return cls(**cls._base_fields(data))


@dataclass
class Supplier(Client):
    company_name: str = ''
    contact_name: str = ''
    phone: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Supplier':
        fields = cls._base_fields(data)
        fields.update(
            company_name=_text(data, 'company_name', 'El nombre de la empresa', required=True),
            contact_name=_text(data, 'contact_name', 'El nombre del contacto', required=True),
            phone=_text(data, 'phone', 'El teléfono', required=True),
        )
        return cls(**fields)


# ==============================================================================
# COMPRAS
# ==============================================================================

@dataclass
class PurchaseItem:
    """
    Partida de una orden de compra.

    Attributes:
        cost: Costo unitario pactado con el proveedor
        real_cost: Costo unitario con gastos prorrateados (calculado)
    """
    product_id: str
    product_name: str
    quantity: float
    cost: float
    lot_number: str = ''
    additional_cost: float = 0.0
    real_cost: float = 0.0

    @property
    def subtotal(self) -> float:
        return self.quantity * self.cost

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PurchaseItem':
        return cls(
            product_id=_text(data, 'product_id', 'El producto', required=True),
            product_name=_text(data, 'product_name'),
            quantity=_number(data, 'quantity', 'La cantidad', minimum=0, strict=True),
            cost=_number(data, 'cost', 'El costo', minimum=0),
            lot_number=_text(data, 'lot_number'),
        )


@dataclass
class AssociatedCost:
    """Gasto adicional de la compra (flete, maniobras...)."""
    concept: str
    amount: float
    prorate: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AssociatedCost':
        return cls(
            concept=_text(data, 'concept', 'El concepto del gasto', required=True),
            amount=_number(data, 'amount', 'El monto del gasto', minimum=0),
            prorate=bool(data.get('prorate', True)),
        )


@dataclass
class PurchaseOrder:
    supplier_id: str
    branch_id: str
    date: str
    items: List[PurchaseItem]
    payment_method: str
    status: str = PurchaseStatus.PENDIENTE.value
    associated_costs: List[AssociatedCost] = field(default_factory=list)
    notes: str = ''
    quote_id: str = ''
    campaign: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PurchaseOrder':
        items = [PurchaseItem.from_dict(i) for i in (data.get('items') or [])]
        if not items:
            raise ValidationError("Debes agregar al menos un producto.")
        method = normalize_payment_method(data.get('payment_method'))
        if method == PaymentMethod.TRANSFERENCIA.value:
            raise ValidationError("Las compras se pagan en Efectivo, Tarjeta o Credito.")
        return cls(
            supplier_id=_text(data, 'supplier_id', 'El proveedor', required=True),
            branch_id=_text(data, 'branch_id', 'La sucursal', required=True),
            date=_date_text(data, 'date', 'La fecha', required=True),
            items=items,
            payment_method=method,
            status=_choice(data.get('status'), PurchaseStatus, 'Estatus',
                           default=PurchaseStatus.PENDIENTE),
            associated_costs=[
                AssociatedCost.from_dict(c) for c in (data.get('associated_costs') or [])
            ],
            notes=_text(data, 'notes'),
            quote_id=_text(data, 'quote_id'),
            campaign=_text(data, 'campaign'),
        )


# ==============================================================================
# VENTAS
# ==============================================================================

@dataclass
class SaleItem:
    product_id: str
    quantity: float
    price: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SaleItem':
        price = data.get('price')
        return cls(
            product_id=_text(data, 'product_id', 'El producto', required=True),
            quantity=_number(data, 'quantity', 'La cantidad', minimum=0, strict=True),
            price=None if price is None or price == '' else _number(data, 'price', 'El precio', minimum=0),
        )


@dataclass
class SaleRequest:
    """Datos de entrada para registrar una venta."""
    branch_id: str
    client_id: str
    payment_method: str
    items: List[SaleItem]
    discount: float = 0.0

    @property
    def is_credit(self) -> bool:
        return self.payment_method == PaymentMethod.CREDITO.value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SaleRequest':
        items = [SaleItem.from_dict(i) for i in (data.get('items') or [])]
        if not items:
            raise ValidationError("Agregue al menos un producto.")
        client_id = _text(data, 'client_id') or PUBLIC_CLIENT_ID
        method = normalize_payment_method(data.get('payment_method') or PaymentMethod.EFECTIVO.value)
        if method == PaymentMethod.CREDITO.value and client_id == PUBLIC_CLIENT_ID:
            raise ValidationError("El público en general no puede comprar a crédito.")
        return cls(
            branch_id=_text(data, 'branch_id', 'La sucursal', required=True),
            client_id=client_id,
            payment_method=method,
            items=items,
            discount=_number(data, 'discount', 'El descuento', minimum=0),
        )


# ==============================================================================
# COTIZACIONES
# ==============================================================================

@dataclass
class QuoteItem:
    product_id: str
    product_name: str
    price: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuoteItem':
        return cls(
            product_id=_text(data, 'product_id', 'El producto', required=True),
            product_name=_text(data, 'product_name'),
            price=_number(data, 'price', 'El precio', minimum=0),
        )


@dataclass
class Quote:
    quote_number: str
    supplier_id: str
    date: str
    items: List[QuoteItem]
    campaign: str = ''
    status: str = QuoteStatus.PENDIENTE.value

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Quote':
        items = [QuoteItem.from_dict(i) for i in (data.get('items') or [])]
        if not items:
            raise ValidationError("Debe haber al menos un producto.")
        return cls(
            quote_number=_text(data, 'quote_number', 'El número de cotización', required=True),
            supplier_id=_text(data, 'supplier_id', 'El proveedor', required=True),
            date=_date_text(data, 'date', 'La fecha', required=True),
            items=items,
            campaign=_text(data, 'campaign'),
            status=_choice(data.get('status'), QuoteStatus, 'Estatus',
                           default=QuoteStatus.PENDIENTE),
        )


# ==============================================================================
# ACTIVOS FIJOS
# ==============================================================================

@dataclass
class FixedAsset:
    """
    Activo fijo depreciado en línea recta.

    Attributes:
        acquisition_cost: Costo de adquisición (> 0)
        useful_life: Vida útil en años (> 0)
    """
    name: str
    category: str
    location: str
    acquisition_cost: float
    acquisition_date: str
    useful_life: float
    description: str = ''
    status: str = AssetStatus.ACTIVO.value

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FixedAsset':
        return cls(
            name=_text(data, 'name', 'El nombre', required=True),
            category=_text(data, 'category', 'La categoría', required=True),
            location=_text(data, 'location', 'La ubicación', required=True),
            acquisition_cost=_number(data, 'acquisition_cost', 'El costo de adquisición',
                                     minimum=0, strict=True),
            acquisition_date=_date_text(data, 'acquisition_date', 'La fecha de adquisición',
                                        required=True),
            useful_life=_number(data, 'useful_life', 'La vida útil', minimum=0, strict=True),
            description=_text(data, 'description'),
            status=_text(data, 'status') or AssetStatus.ACTIVO.value,
        )


@dataclass
class Maintenance:
    """
    Mantenimiento de un activo fijo.

    Mientras exista uno sin completar el activo queda en Mantenimiento.
    """
    asset_id: str
    type: str
    date: str
    technician: str
    cost: float = 0.0
    status: str = MaintenanceStatus.PROGRAMADO.value
    notes: str = ''

    @property
    def is_open(self) -> bool:
        return self.status != MaintenanceStatus.COMPLETADO.value

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Maintenance':
        return cls(
            asset_id=_text(data, 'asset_id', 'El activo', required=True),
            type=_choice(data.get('type'), MaintenanceType, 'Tipo de mantenimiento'),
            date=_date_text(data, 'date', 'La fecha', required=True),
            technician=_text(data, 'technician', 'El técnico o proveedor', required=True),
            cost=_number(data, 'cost', 'El costo', minimum=0),
            status=_choice(data.get('status'), MaintenanceStatus, 'Estatus',
                           default=MaintenanceStatus.PROGRAMADO),
            notes=_text(data, 'notes'),
        )


# ==============================================================================
# LOGÍSTICA
# ==============================================================================

@dataclass
class Vehicle:
    name: str
    plate: str
    type: str
    status: str = VehicleStatus.DISPONIBLE.value
    brand: str = ''
    model: str = ''
    year: Optional[int] = None
    capacity: str = ''
    fuel_efficiency: float = 0.0
    fuel_type: str = FuelType.DIESEL.value

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Vehicle':
        year = data.get('year')
        return cls(
            name=_text(data, 'name', 'El nombre', required=True),
            plate=_text(data, 'plate', 'La placa', required=True).upper(),
            type=_choice(data.get('type'), VehicleType, 'Tipo de vehículo'),
            status=_choice(data.get('status'), VehicleStatus, 'Estatus',
                           default=VehicleStatus.DISPONIBLE),
            brand=_text(data, 'brand'),
            model=_text(data, 'model'),
            year=int(_number(data, 'year', 'El año')) if year not in (None, '') else None,
            capacity=_text(data, 'capacity'),
            fuel_efficiency=_number(data, 'fuel_efficiency', 'El rendimiento',
                                    minimum=0, strict=True),
            fuel_type=_choice(data.get('fuel_type'), FuelType, 'Combustible',
                              default=FuelType.DIESEL),
        )


@dataclass
class Delivery:
    client: str
    destination: str
    delivery_date: str
    status: str = DeliveryStatus.EN_PREPARACION.value
    vehicle_id: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Delivery':
        return cls(
            client=_text(data, 'client', 'El cliente', required=True),
            destination=_text(data, 'destination', 'El destino', required=True),
            delivery_date=_date_text(data, 'delivery_date', 'La fecha de entrega', required=True),
            vehicle_id=_text(data, 'vehicle_id'),
        )


@dataclass
class Pickup:
    client: str
    origin: str
    scheduled_date: str
    status: str = PickupStatus.PROGRAMADA.value
    vehicle_id: str = ''
    purchase_order_id: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Pickup':
        return cls(
            client=_text(data, 'client', 'El proveedor', required=True),
            origin=_text(data, 'origin', 'El origen', required=True),
            scheduled_date=_date_text(data, 'scheduled_date', 'La fecha programada', required=True),
            vehicle_id=_text(data, 'vehicle_id'),
            purchase_order_id=_text(data, 'purchase_order_id'),
        )


@dataclass
class LogisticsExpense:
    date: str
    concept: str
    amount: float
    trip_id: str
    trip_type: str
    notes: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LogisticsExpense':
        return cls(
            date=_date_text(data, 'date', 'La fecha', required=True),
            concept=_choice(data.get('concept'), ExpenseConcept, 'Concepto'),
            amount=_number(data, 'amount', 'El monto', minimum=0, strict=True),
            trip_id=_text(data, 'trip_id', 'El viaje', required=True),
            trip_type=_choice(data.get('trip_type'), TripType, 'Tipo de viaje'),
            notes=_text(data, 'notes'),
        )


# ==============================================================================
# RPA
# ==============================================================================

@dataclass
class RpaBot:
    name: str
    description: str
    trigger: str
    frequency: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RpaBot':
        trigger = _choice(data.get('trigger'), BotTrigger, 'Disparador', default=BotTrigger.MANUAL)
        frequency = _text(data, 'frequency')
        if trigger == BotTrigger.SCHEDULED.value and not frequency:
            raise ValidationError("La frecuencia es requerida para bots programados.")
        return cls(
            name=_text(data, 'name', 'El nombre', required=True),
            description=_text(data, 'description'),
            trigger=trigger,
            frequency=frequency,
        )

    @property
    def next_run(self) -> str:
        return self.frequency if self.trigger == BotTrigger.SCHEDULED.value else 'Manual'
