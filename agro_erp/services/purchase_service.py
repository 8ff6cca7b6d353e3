# ==============================================================================
# SERVICIO DE COMPRAS
# ==============================================================================
# Guardar una compra es UNA transacción:
#   1. Proveedor (y cotización vinculada) válidos
#   2. Crédito del proveedor si el pago es a Credito (solo la diferencia
#      contra lo ya cargado por esta compra)
#   3. Costo real por partida con gastos prorrateados
#   4. Al pasar a Completada: un lote por partida y costo del producto = real
# Si cualquier paso falla no se escribe nada.
# ==============================================================================

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from agro_erp.errors import InvalidTransitionError, NotFoundError, ValidationError
from agro_erp.models.entities import PaymentMethod, PickupStatus, PurchaseOrder, PurchaseStatus, QuoteStatus
from agro_erp.performance_logger import profile_function
from agro_erp.repositories.collection_repository import new_document_id
from agro_erp.repositories.document_store import DocumentStore, Transaction
from agro_erp.services.audit_service import AuditService
from agro_erp.services.common import (
    BRANCHES, PICKUPS, PRODUCTS, PURCHASES, QUOTATIONS, SUPPLIERS, require_branch, service_call,
)
from agro_erp.services.costing import prorate_costs
from agro_erp.services.counterparty_service import EPSILON, display_name, release_credit, reserve_credit
from agro_erp.services.inventory_service import new_lot_document
from agro_erp.services.notification_service import NotificationService
from agro_erp.utils import folio, money, now_iso, today

logger = logging.getLogger(__name__)

LOGISTICS_REQUESTED = 'Solicitada'
LOGISTICS_RECEIVED = 'Recibido'


class PurchaseService:
    """
    Servicio para órdenes de compra.

    Responsabilidades:
    - Alta/edición transaccional con crédito de proveedor y prorrateo
    - Creación de lotes al completar
    - Cambios de estado, baja y KPIs
    - Solicitud de recolección a logística
    """

    def __init__(
        self,
        store: DocumentStore,
        audit_service: AuditService = None,
        notification_service: NotificationService = None,
        logistics_phone: str = ''
    ):
        self.store = store
        self.purchases = store.collection(PURCHASES)
        self.audit_service = audit_service
        self.notification_service = notification_service
        self.logistics_phone = logistics_phone

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_purchase(self, purchase_id: str) -> Optional[Dict[str, Any]]:
        return self.purchases.get(purchase_id)

    def list_purchases(self, status: str = None) -> List[Dict[str, Any]]:
        """Compras más recientes primero, opcionalmente por estado."""
        items = self.purchases.where(status=status) if status else self.purchases.list()
        return sorted(items, key=lambda p: (p.get('date', ''), p.get('created_at', '')), reverse=True)

    def kpis(self) -> Dict[str, Any]:
        purchases = self.purchases.list()
        by_status = {s.value: 0 for s in PurchaseStatus}
        for p in purchases:
            by_status[p.get('status', PurchaseStatus.PENDIENTE.value)] = \
                by_status.get(p.get('status'), 0) + 1
        return {
            'total': len(purchases),
            'completed': by_status[PurchaseStatus.COMPLETADA.value],
            'pending': by_status[PurchaseStatus.PENDIENTE.value],
            'cancelled': by_status[PurchaseStatus.CANCELADA.value],
            'total_amount': money(sum(
                float(p.get('total', 0) or 0) for p in purchases
                if p.get('status') != PurchaseStatus.CANCELADA.value
            )),
        }

    # =========================================================================
    # ALTA / EDICIÓN
    # =========================================================================

    @staticmethod
    def _check_transition(existing: Optional[Dict[str, Any]], new_status: str) -> None:
        if not existing:
            return
        old_status = existing.get('status')
        if old_status == PurchaseStatus.CANCELADA.value:
            raise InvalidTransitionError("Una compra cancelada no se puede modificar.")
        if old_status == PurchaseStatus.COMPLETADA.value and new_status != old_status:
            raise InvalidTransitionError(
                "Una compra completada ya generó inventario; no puede cambiar de estado."
            )

    @staticmethod
    def _check_quote(tx: Transaction, quote_id: str, purchase_id: str) -> None:
        quote_doc = tx.get(QUOTATIONS, quote_id)
        if not quote_doc:
            raise NotFoundError('Cotización', quote_id)
        if quote_doc.get('status') != QuoteStatus.APROBADA.value:
            raise ValidationError("Solo se pueden vincular cotizaciones aprobadas.")
        for other in tx.where(PURCHASES, quote_id=quote_id):
            if other['id'] != purchase_id:
                raise ValidationError("La cotización ya fue usada en otra compra.")

    @profile_function(name='Guardar compra')
    @service_call('Guardar compra')
    def save_purchase(
        self,
        values: Dict[str, Any],
        purchase_id: str = None,
        user: str = None
    ) -> Dict[str, Any]:
        """
        Crea o edita una orden de compra.

        Args:
            values: Datos de la orden (supplier_id, branch_id, date, items,
                    associated_costs, payment_method, status, notes, quote_id)
            purchase_id: ID si es edición
            user: Usuario (auditoría)

        Returns:
            {'ok': True, 'id', 'total', 'lots': [...], 'purchase': {...}}
            o {'ok': False, 'error', 'code'} (CREDITO_INSUFICIENTE, ...)
        """
        order = PurchaseOrder.from_dict(values)
        costing = prorate_costs(order.items, order.associated_costs)
        total = costing['total_order']

        def save(tx: Transaction) -> Dict[str, Any]:
            existing = None
            if purchase_id:
                existing = tx.get(PURCHASES, purchase_id)
                if not existing:
                    raise NotFoundError('Compra', purchase_id)
            self._check_transition(existing, order.status)

            supplier = tx.get(SUPPLIERS, order.supplier_id)
            if not supplier:
                raise NotFoundError('Proveedor', order.supplier_id)
            require_branch(tx, order.branch_id)
            if order.quote_id:
                self._check_quote(tx, order.quote_id, purchase_id)

            # Crédito: cargar/liberar solo la diferencia
            charged_before = float(existing.get('credit_charged', 0) or 0) if existing else 0.0
            previous_supplier = existing.get('supplier_id') if existing else None
            if previous_supplier and previous_supplier != order.supplier_id and charged_before > EPSILON:
                release_credit(tx, SUPPLIERS, previous_supplier, charged_before)
                charged_before = 0.0
            is_credit = order.payment_method == PaymentMethod.CREDITO.value
            charge_now = total if is_credit and order.status != PurchaseStatus.CANCELADA.value else 0.0
            delta = charge_now - charged_before
            if delta > EPSILON:
                supplier = reserve_credit(tx, SUPPLIERS, order.supplier_id, delta)
            elif delta < -EPSILON:
                supplier = release_credit(tx, SUPPLIERS, order.supplier_id, -delta)

            products = {}
            for item in costing['items']:
                product = tx.get(PRODUCTS, item.product_id)
                if not product:
                    raise NotFoundError('Producto', item.product_id)
                item.product_name = product.get('name', '')
                products[item.product_id] = product

            doc_id = purchase_id or new_document_id()
            lots = []
            old_status = existing.get('status') if existing else None
            if order.status == PurchaseStatus.COMPLETADA.value and old_status != PurchaseStatus.COMPLETADA.value:
                for item in costing['items']:
                    product = products[item.product_id]
                    factor = float(product.get('conversion_factor') or 1)
                    lots.append(new_lot_document(
                        tx, product, item.quantity * factor, item.real_cost,
                        order.branch_id, item.lot_number, doc_id, entry_date=order.date
                    ))
                    tx.update(PRODUCTS, item.product_id, {'cost': item.real_cost})

            purchase = {
                'supplier_id': order.supplier_id,
                'supplier_name': display_name(supplier),
                'branch_id': order.branch_id,
                'date': order.date,
                'items': [asdict(i) for i in costing['items']],
                'associated_costs': [asdict(c) for c in order.associated_costs],
                'subtotal_products': costing['subtotal_products'],
                'total_associated_costs': costing['total_associated_costs'],
                'total_prorated_costs': costing['total_prorated_costs'],
                'total': total,
                'status': order.status,
                'previous_status': old_status or PurchaseStatus.PENDIENTE.value,
                'notes': order.notes,
                'quote_id': order.quote_id,
                'campaign': order.campaign,
                'payment_method': order.payment_method,
                'credit_charged': charge_now,
                'updated_at': now_iso(),
            }
            if existing:
                tx.set(PURCHASES, doc_id, purchase, merge=True)
            else:
                purchase['created_at'] = purchase['updated_at']
                purchase['logistics_status'] = ''
                tx.set(PURCHASES, doc_id, purchase)
            return {
                'id': doc_id,
                'lots': lots,
                'credit_delta': delta,
                'supplier': supplier,
                'old_status': old_status,
            }

        result = self.store.run_transaction(save)
        self._audit_saved(user, order, total, result)
        return {
            'ok': True,
            'id': result['id'],
            'total': total,
            'lots': result['lots'],
            'purchase': self.purchases.get(result['id']),
        }

    def _audit_saved(self, user: str, order: PurchaseOrder, total: float, result: Dict[str, Any]) -> None:
        if not self.audit_service:
            return
        name = display_name(result['supplier'])
        self.audit_service.log_purchase_saved(
            user, result['id'], name, total, order.status, order.payment_method
        )
        if abs(result['credit_delta']) > EPSILON:
            self.audit_service.log_credit_movement(
                user, order.supplier_id, name, result['credit_delta'],
                float(result['supplier'].get('credit_used', 0) or 0),
                f"compra {result['id'][:6].upper()}"
            )
        if result['lots']:
            self.audit_service.log_lots_created(user, result['id'], result['lots'])

    # =========================================================================
    # ESTADO / BAJA
    # =========================================================================

    def change_status(self, purchase_id: str, new_status: str, user: str = None) -> Dict[str, Any]:
        """
        Cambia el estado re-guardando la compra con sus mismos datos.
        Completar crea los lotes; cancelar libera el crédito cargado.
        """
        current = self.purchases.get(purchase_id)
        if not current:
            return NotFoundError('Compra', purchase_id).to_result()
        values = dict(current)
        values['status'] = new_status
        return self.save_purchase(values, purchase_id, user)

    @service_call('Baja de compra')
    def delete_purchase(self, purchase_id: str, user: str = None) -> Dict[str, Any]:
        """Elimina una compra liberando el crédito que tuviera cargado."""
        def remove(tx: Transaction) -> Dict[str, Any]:
            purchase = tx.get(PURCHASES, purchase_id)
            if not purchase:
                raise NotFoundError('Compra', purchase_id)
            charged = float(purchase.get('credit_charged', 0) or 0)
            if charged > EPSILON:
                release_credit(tx, SUPPLIERS, purchase['supplier_id'], charged)
            tx.delete(PURCHASES, purchase_id)
            return purchase

        purchase = self.store.run_transaction(remove)
        if self.audit_service:
            self.audit_service.log(
                AuditService.TYPE_COMPRA, user,
                f"Compra eliminada: {purchase.get('supplier_name')} por "
                f"${float(purchase.get('total', 0) or 0):,.2f} - Por {user or 'sistema'}",
                purchase_id
            )
        return {'ok': True, 'id': purchase_id}

    # =========================================================================
    # LOGÍSTICA
    # =========================================================================

    @service_call('Solicitud de recolección')
    def request_logistics(self, purchase_id: str, user: str = None) -> Dict[str, Any]:
        """
        Marca la compra con logística 'Solicitada' y crea la recolección.

        Returns:
            {'ok': True, 'pickup_id', 'folio', 'whatsapp_url'}
        """
        def request(tx: Transaction) -> Dict[str, Any]:
            purchase = tx.get(PURCHASES, purchase_id)
            if not purchase:
                raise NotFoundError('Compra', purchase_id)
            if purchase.get('status') == PurchaseStatus.CANCELADA.value:
                raise InvalidTransitionError("No se puede solicitar logística para una compra cancelada.")
            if purchase.get('logistics_status') in (LOGISTICS_REQUESTED, LOGISTICS_RECEIVED):
                raise InvalidTransitionError("La recolección de esta compra ya fue solicitada.")

            supplier = tx.get(SUPPLIERS, purchase.get('supplier_id')) or {}
            tx.update(PURCHASES, purchase_id, {
                'logistics_status': LOGISTICS_REQUESTED,
                'logistics_status_at': now_iso(),
            })
            pickup_id = new_document_id()
            pickup = {
                'folio': folio('REC', pickup_id),
                'client': purchase.get('supplier_name', ''),
                'origin': supplier.get('address') or 'Dirección no especificada',
                'scheduled_date': today().isoformat(),
                'status': PickupStatus.PROGRAMADA.value,
                'vehicle_id': '',
                'purchase_order_id': purchase_id,
            }
            tx.set(PICKUPS, pickup_id, pickup)
            return {'pickup_id': pickup_id, 'folio': pickup['folio'], 'purchase': purchase}

        result = self.store.run_transaction(request)
        purchase = result.pop('purchase')

        if self.notification_service and user:
            self.notification_service.notify(
                user, 'Recolección solicitada',
                f"Se programó la recolección {result['folio']} con {purchase.get('supplier_name')}.",
                link='/logistics/recolecciones', icon='Truck'
            )
        if self.audit_service:
            self.audit_service.log(
                AuditService.TYPE_LOGISTICA, user,
                f"Recolección {result['folio']} solicitada para compra {purchase_id[:6].upper()}",
                purchase_id, {'pickup_id': result['pickup_id']}
            )
        result['whatsapp_url'] = self.whatsapp_link(purchase_id, purchase)
        return {'ok': True, **result}

    def whatsapp_link(self, purchase_id: str, purchase: Dict[str, Any]) -> Optional[str]:
        """Enlace wa.me con el aviso para logística (None si no hay teléfono)."""
        if not self.logistics_phone:
            return None
        branch = self.store.collection(BRANCHES).get(purchase.get('branch_id')) or {}
        message = (
            "¡Nueva recolección solicitada!\n"
            f"*Proveedor:* {purchase.get('supplier_name', '')}\n"
            f"*Orden No:* {purchase_id[:7]}\n"
            f"*Sucursal Destino:* {branch.get('name') or 'No especificada'}"
        )
        return f"https://wa.me/{self.logistics_phone}?text={quote(message)}"
