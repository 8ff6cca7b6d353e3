# ==============================================================================
# SERVICIO DE INVENTARIO (LOTES)
# ==============================================================================
# El stock de un SKU en una sucursal es la suma de sus lotes.
# Las salidas consumen lotes del más antiguo al más nuevo (fecha de entrada)
# dentro de la transacción de la venta; ningún lote queda negativo.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from agro_erp.errors import InsufficientStockError, InvalidTransitionError, NotFoundError, ValidationError
from agro_erp.models.entities import InventoryLot, PurchaseStatus
from agro_erp.repositories.collection_repository import new_document_id
from agro_erp.repositories.document_store import DocumentStore, Transaction
from agro_erp.services.audit_service import AuditService
from agro_erp.services.common import DEFAULT_BRANCH, INVENTORY, PRODUCTS, PURCHASES, require_branch, service_call
from agro_erp.utils import folio, now_iso, to_float, today

logger = logging.getLogger(__name__)


def lot_sort_key(lot: Dict[str, Any]):
    """Orden de consumo: fecha de entrada, luego número de lote."""
    return (lot.get('entry_date') or '', lot.get('lot') or '', lot.get('id') or '')


def new_lot_document(
    tx: Transaction,
    product: Dict[str, Any],
    quantity: float,
    unit_price: float,
    branch_id: str,
    lot_number: str = '',
    purchase_id: str = '',
    entry_date: str = None
) -> Dict[str, Any]:
    """
    Crea un lote dentro de una transacción.

    Returns:
        Documento del lote con su 'id'
    """
    lot_id = new_document_id()
    lot = InventoryLot(
        product_name=product.get('name', ''),
        sku=product.get('sku', ''),
        lot=lot_number or folio('LOTE', lot_id),
        quantity=quantity,
        unit_price=unit_price,
        entry_date=entry_date or today().isoformat(),
        branch_id=branch_id or DEFAULT_BRANCH,
        purchase_id=purchase_id,
    ).to_dict()
    tx.set(INVENTORY, lot_id, lot)
    lot['id'] = lot_id
    return lot


class InventoryService:
    """
    Servicio para gestión de lotes de inventario.

    Responsabilidades:
    - Entradas manuales y por recepción de compra
    - Consumo transaccional de lotes por ventas
    - Conteo físico y valuación
    """

    def __init__(self, store: DocumentStore, audit_service: AuditService = None):
        self.store = store
        self.lots = store.collection(INVENTORY)
        self.audit_service = audit_service

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list_lots(self, branch_id: str = None, sku: str = None) -> List[Dict[str, Any]]:
        """Lotes filtrados por sucursal y/o SKU, más recientes primero."""
        filters = {}
        if branch_id:
            filters['branch_id'] = branch_id
        if sku:
            filters['sku'] = sku
        return sorted(self.lots.where(**filters), key=lot_sort_key, reverse=True)

    def stock_for(self, sku: str, branch_id: str) -> float:
        return sum(float(l.get('quantity', 0) or 0) for l in self.lots.where(sku=sku, branch_id=branch_id))

    def inventory_valuation(self) -> Dict[str, Any]:
        """
        Valor del inventario: Σ cantidad × costo unitario.

        Returns:
            {'total': float, 'by_branch': {branch_id: float}}
        """
        by_branch: Dict[str, float] = {}
        total = 0.0
        for lot in self.lots.list():
            value = float(lot.get('quantity', 0) or 0) * float(lot.get('unit_price', 0) or 0)
            total += value
            branch = lot.get('branch_id') or DEFAULT_BRANCH
            by_branch[branch] = by_branch.get(branch, 0.0) + value
        return {'total': round(total, 2), 'by_branch': {k: round(v, 2) for k, v in by_branch.items()}}

    # =========================================================================
    # ENTRADAS
    # =========================================================================

    @service_call('Entrada manual de inventario')
    def add_lot(self, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        """
        Registra un lote manual.

        Args:
            values: sku (o product_id), lot, quantity, unit_price, entry_date, branch_id
        """
        data = dict(values)
        product = None
        if data.get('product_id'):
            product = self.store.collection(PRODUCTS).get(data['product_id'])
        elif data.get('sku'):
            found = self.store.collection(PRODUCTS).where(sku=data['sku'])
            product = found[0] if found else None
        if not product:
            raise NotFoundError('Producto', data.get('product_id') or data.get('sku'))

        data['sku'] = product['sku']
        data['product_name'] = product.get('name', '')
        data.setdefault('entry_date', today().isoformat())
        lot = InventoryLot.from_dict(data)

        def store_lot(tx: Transaction) -> str:
            require_branch(tx, lot.branch_id)
            return tx.add(INVENTORY, lot.to_dict())

        lot_id = self.store.run_transaction(store_lot)

        if self.audit_service:
            self.audit_service.log(
                AuditService.TYPE_INVENTARIO, user,
                f"Entrada manual: +{lot.quantity:g} {lot.product_name} (Lote {lot.lot}) en {lot.branch_id}",
                lot_id, {'sku': lot.sku, 'quantity': lot.quantity}
            )
        return {'ok': True, 'id': lot_id, 'lot': self.lots.get(lot_id)}

    @service_call('Recepción de compra')
    def confirm_reception(
        self,
        purchase_id: str,
        received: Dict[str, Any],
        user: str = None
    ) -> Dict[str, Any]:
        """
        Confirma la recepción física de una compra.

        Crea un lote por cada partida recibida (cantidad recibida × factor de
        conversión, costo real de la partida) y marca la compra Completada.

        Args:
            purchase_id: ID de la compra
            received: {product_id: cantidad_recibida}

        Returns:
            {'ok': True, 'lots': [...], 'variances': [{product_id, expected, received, variance}]}
        """
        received = received or {}

        def reception(tx: Transaction) -> Dict[str, Any]:
            purchase = tx.get(PURCHASES, purchase_id)
            if not purchase:
                raise NotFoundError('Compra', purchase_id)
            if purchase.get('status') == PurchaseStatus.COMPLETADA.value or purchase.get('received_at'):
                raise InvalidTransitionError("La compra ya fue recibida en inventario.")
            if purchase.get('status') == PurchaseStatus.CANCELADA.value:
                raise InvalidTransitionError("No se puede recibir una compra cancelada.")

            lots, variances = [], []
            for item in purchase.get('items', []):
                expected = float(item.get('quantity', 0) or 0)
                got = to_float(received.get(item.get('product_id'), expected), 'cantidad recibida')
                if got < 0:
                    raise ValidationError("La cantidad recibida no puede ser negativa.")
                variances.append({
                    'product_id': item.get('product_id'),
                    'product_name': item.get('product_name'),
                    'expected': expected,
                    'received': got,
                    'variance': got - expected,
                })
                if got <= 0:
                    continue
                product = tx.get(PRODUCTS, item.get('product_id'))
                if not product:
                    raise NotFoundError('Producto', item.get('product_id'))
                unit_cost = float(item.get('real_cost') or item.get('cost') or 0)
                factor = float(product.get('conversion_factor') or 1)
                lots.append(new_lot_document(
                    tx, product, got * factor, unit_cost,
                    purchase.get('branch_id'), item.get('lot_number', ''), purchase_id
                ))
                tx.update(PRODUCTS, product['id'], {'cost': unit_cost})

            tx.update(PURCHASES, purchase_id, {
                'status': PurchaseStatus.COMPLETADA.value,
                'previous_status': purchase.get('status'),
                'received_at': now_iso(),
            })
            return {'lots': lots, 'variances': variances}

        result = self.store.run_transaction(reception)
        if self.audit_service and result['lots']:
            self.audit_service.log_lots_created(user, purchase_id, result['lots'])
        return {'ok': True, **result}

    # =========================================================================
    # SALIDAS (dentro de transacción)
    # =========================================================================

    @staticmethod
    def consume_lots(
        tx: Transaction,
        sku: str,
        branch_id: str,
        quantity: float,
        product_name: str = None
    ) -> Dict[str, Any]:
        """
        Descuenta una cantidad de los lotes de un SKU en una sucursal.

        Args:
            tx: Transacción en curso
            sku: SKU a descontar
            branch_id: Sucursal
            quantity: Cantidad a surtir
            product_name: Nombre para mensajes de error

        Returns:
            {'allocations': [{lot_id, lot, quantity, unit_price}], 'cost': float}

        Raises:
            InsufficientStockError: Si no hay lotes o no alcanzan
        """
        name = product_name or sku
        lots = sorted(
            (l for l in tx.where(INVENTORY, sku=sku, branch_id=branch_id)
             if float(l.get('quantity', 0) or 0) > 0),
            key=lot_sort_key
        )
        if not lots and quantity > 0:
            raise InsufficientStockError(f"No hay stock para {name} en esta sucursal.")

        remaining = quantity
        allocations = []
        cost = 0.0
        for lot in lots:
            if remaining <= 0:
                break
            available = float(lot.get('quantity', 0) or 0)
            take = min(remaining, available)
            tx.update(INVENTORY, lot['id'], {'quantity': available - take})
            unit_price = float(lot.get('unit_price', 0) or 0)
            cost += take * unit_price
            remaining -= take
            allocations.append({
                'lot_id': lot['id'],
                'lot': lot.get('lot'),
                'quantity': take,
                'unit_price': unit_price,
            })

        if remaining > 0:
            raise InsufficientStockError(
                f"Stock insuficiente para {name}. Faltan {remaining:g} unidades."
            )
        return {'allocations': allocations, 'cost': cost}

    @staticmethod
    def restore_allocations(tx: Transaction, allocations: List[Dict[str, Any]]) -> float:
        """
        Devuelve cantidades a sus lotes de origen.

        Returns:
            Unidades devueltas (lotes eliminados se ignoran)
        """
        restored = 0.0
        for alloc in allocations:
            lot = tx.get(INVENTORY, alloc.get('lot_id'))
            if not lot:
                logger.warning("Lote %s ya no existe; no se devuelve stock", alloc.get('lot_id'))
                continue
            qty = float(alloc.get('quantity', 0) or 0)
            tx.update(INVENTORY, lot['id'], {'quantity': float(lot.get('quantity', 0) or 0) + qty})
            restored += qty
        return restored

    # =========================================================================
    # CONTEO FÍSICO
    # =========================================================================

    def physical_count(self, branch_id: str, counts: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Compara el conteo físico contra el sistema por lote (no escribe).

        Args:
            branch_id: Sucursal contada
            counts: {lot_id: cantidad_física}

        Returns:
            [{lot_id, sku, product_name, lot, system, physical, variance}]
            variance = físico - sistema (None si el lote no se contó)
        """
        report = []
        for lot in sorted(self.lots.where(branch_id=branch_id), key=lot_sort_key):
            system = float(lot.get('quantity', 0) or 0)
            raw = counts.get(lot['id'])
            physical: Optional[float] = None if raw is None or raw == '' else to_float(raw, 'conteo')
            report.append({
                'lot_id': lot['id'],
                'sku': lot.get('sku'),
                'product_name': lot.get('product_name'),
                'lot': lot.get('lot'),
                'system': system,
                'physical': physical,
                'variance': None if physical is None else physical - system,
            })
        return report
