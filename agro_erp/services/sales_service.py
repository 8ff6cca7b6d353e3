# ==============================================================================
# SERVICIO DE VENTAS
# ==============================================================================
# Una venta es UNA transacción:
#   1. Descontar lotes de cada producto en la sucursal (más antiguo primero)
#   2. Calcular subtotal, IVA, descuento, costo y margen
#   3. Si es a Credito: cargar el total al crédito del cliente (Pendiente)
#   4. Guardar la venta
# Si falta stock o crédito no se escribe nada.
# ==============================================================================

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional

from agro_erp.errors import InvalidTransitionError, NotFoundError, ValidationError
from agro_erp.models.entities import (
    PUBLIC_CLIENT_ID, PUBLIC_CLIENT_NAME, PaymentMethod, Product, SaleRequest, SaleStatus,
)
from agro_erp.performance_logger import profile_function
from agro_erp.repositories.collection_repository import new_document_id
from agro_erp.repositories.document_store import DocumentStore, Transaction
from agro_erp.services.audit_service import AuditService
from agro_erp.services.common import CLIENTS, PAYMENTS, PRODUCTS, SALES, require_branch, service_call
from agro_erp.services.counterparty_service import EPSILON, display_name, release_credit, reserve_credit
from agro_erp.services.inventory_service import InventoryService
from agro_erp.services.notification_service import NotificationService
from agro_erp.utils import folio, money, now_iso, today

logger = logging.getLogger(__name__)


def tax_rate_for(product: Dict[str, Any]) -> float:
    """Tasa de IVA de un documento de producto."""
    return Product.from_dict(product).tax_rate


def _paid_on_sale(tx: Transaction, sale_id: str) -> float:
    return sum(float(p.get('amount', 0) or 0) for p in tx.where(PAYMENTS, sale_id=sale_id))


class SalesService:
    """
    Servicio de punto de venta.

    Responsabilidades:
    - Registrar ventas consumiendo lotes y crédito
    - Cancelar (devuelve stock y crédito), liquidar y eliminar
    - Resumen de ventas
    """

    def __init__(
        self,
        store: DocumentStore,
        audit_service: AuditService = None,
        notification_service: NotificationService = None
    ):
        self.store = store
        self.sales = store.collection(SALES)
        self.audit_service = audit_service
        self.notification_service = notification_service

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_sale(self, sale_id: str) -> Optional[Dict[str, Any]]:
        return self.sales.get(sale_id)

    def list_sales(
        self,
        branch_id: str = None,
        status: str = None,
        client_id: str = None
    ) -> List[Dict[str, Any]]:
        filters = {}
        if branch_id:
            filters['branch_id'] = branch_id
        if status:
            filters['status'] = status
        if client_id:
            filters['client_id'] = client_id
        return sorted(
            self.sales.where(**filters),
            key=lambda s: (s.get('date', ''), s.get('created_at', '')),
            reverse=True
        )

    def sales_summary(self) -> Dict[str, Any]:
        """
        Totales de ventas no canceladas.

        Returns:
            {'count', 'revenue', 'total_cost', 'margin', 'by_payment_method', 'pending_count'}
        """
        revenue = cost = 0.0
        count = pending = 0
        by_method: Dict[str, float] = defaultdict(float)
        for sale in self.sales.list():
            if sale.get('status') == SaleStatus.CANCELADA.value:
                continue
            total = float(sale.get('total', 0) or 0)
            count += 1
            revenue += total
            cost += float(sale.get('total_cost', 0) or 0)
            by_method[sale.get('payment_method', '')] += total
            if sale.get('status') == SaleStatus.PENDIENTE.value:
                pending += 1
        return {
            'count': count,
            'revenue': money(revenue),
            'total_cost': money(cost),
            'margin': money(revenue - cost),
            'by_payment_method': {k: money(v) for k, v in by_method.items()},
            'pending_count': pending,
        }

    # =========================================================================
    # ALTA
    # =========================================================================

    @profile_function(name='Registrar venta')
    @service_call('Registro de venta')
    def create_sale(self, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        """
        Registra una venta.

        Args:
            values: branch_id, client_id (default público en general),
                    payment_method, items [{product_id, quantity, price?}],
                    discount
            user: Usuario que vende

        Returns:
            {'ok': True, 'id', 'folio', 'total', 'margin', 'sale'}
            o {'ok': False, 'error', 'code'} con STOCK_INSUFICIENTE /
            CREDITO_INSUFICIENTE
        """
        request = SaleRequest.from_dict(values)

        def sell(tx: Transaction) -> Dict[str, Any]:
            require_branch(tx, request.branch_id)
            if request.client_id == PUBLIC_CLIENT_ID:
                client_name = PUBLIC_CLIENT_NAME
            else:
                client = tx.get(CLIENTS, request.client_id)
                if not client:
                    raise NotFoundError('Cliente', request.client_id)
                client_name = display_name(client)

            lines = []
            subtotal = iva = total_cost = 0.0
            for item in request.items:
                product = tx.get(PRODUCTS, item.product_id)
                if not product:
                    raise NotFoundError('Producto', item.product_id)
                consumed = InventoryService.consume_lots(
                    tx, product.get('sku'), request.branch_id, item.quantity, product.get('name')
                )
                price = float(product.get('price', 0) or 0) if item.price is None else item.price
                line_subtotal = price * item.quantity
                line_tax = line_subtotal * tax_rate_for(product)
                subtotal += line_subtotal
                iva += line_tax
                total_cost += consumed['cost']
                lines.append({
                    'product_id': item.product_id,
                    'product_name': product.get('name', ''),
                    'sku': product.get('sku', ''),
                    'quantity': item.quantity,
                    'price': price,
                    'subtotal': money(line_subtotal),
                    'tax': money(line_tax),
                    'allocations': consumed['allocations'],
                })

            if request.discount > subtotal + EPSILON:
                raise ValidationError("El descuento no puede ser mayor al subtotal.")
            total = money(subtotal - request.discount + iva)

            credit_used = None
            if request.is_credit:
                client = reserve_credit(tx, CLIENTS, request.client_id, total)
                credit_used = client['credit_used']

            sale_id = new_document_id()
            sale = {
                'folio': folio('VTA', sale_id),
                'date': today().isoformat(),
                'branch_id': request.branch_id,
                'client_id': request.client_id,
                'client_name': client_name,
                'payment_method': request.payment_method,
                'items': lines,
                'subtotal': money(subtotal),
                'discount': money(request.discount),
                'iva': money(iva),
                'total': total,
                'total_cost': money(total_cost),
                'margin': money(total - total_cost),
                'status': SaleStatus.PENDIENTE.value if request.is_credit else SaleStatus.PAGADA.value,
                'user': user or 'sistema',
                'created_at': now_iso(),
            }
            tx.set(SALES, sale_id, sale)
            sale['id'] = sale_id
            return {'sale': sale, 'credit_used': credit_used}

        result = self.store.run_transaction(sell)
        sale = result['sale']

        # REGLA DE ORO: registrar en auditoría
        if self.audit_service:
            self.audit_service.log_sale_created(
                user, sale['id'], sale['client_name'], sale['total'],
                sale['payment_method'], len(sale['items'])
            )
            if result['credit_used'] is not None:
                self.audit_service.log_credit_movement(
                    user, sale['client_id'], sale['client_name'], sale['total'],
                    result['credit_used'], f"venta {sale['folio']}"
                )
        if self.notification_service and user:
            self.notification_service.notify(
                user, 'Nueva venta registrada',
                f"Venta {sale['folio']} a {sale['client_name']} por ${sale['total']:,.2f}",
                link='/sales', icon='ShoppingCart'
            )
        return {
            'ok': True,
            'id': sale['id'],
            'folio': sale['folio'],
            'total': sale['total'],
            'margin': sale['margin'],
            'sale': sale,
        }

    # =========================================================================
    # CANCELACIÓN / LIQUIDACIÓN / BAJA
    # =========================================================================

    @staticmethod
    def _reverse(tx: Transaction, sale_id: str, sale: Dict[str, Any]) -> Dict[str, float]:
        """Devuelve stock y el saldo de crédito pendiente de la venta."""
        units = 0.0
        for line in sale.get('items', []):
            units += InventoryService.restore_allocations(tx, line.get('allocations', []))

        released = 0.0
        if sale.get('payment_method') == PaymentMethod.CREDITO.value \
                and sale.get('status') == SaleStatus.PENDIENTE.value:
            released = max(0.0, float(sale.get('total', 0) or 0) - _paid_on_sale(tx, sale_id))
            if released > EPSILON:
                release_credit(tx, CLIENTS, sale['client_id'], released)
        return {'units': units, 'released': released}

    def _audit_reversal(self, user: str, sale_id: str, sale: Dict[str, Any], result: Dict[str, Any]) -> None:
        if not self.audit_service:
            return
        self.audit_service.log_sale_status_change(
            user, sale_id, sale.get('status'), SaleStatus.CANCELADA.value
        )
        if result['units'] > 0:
            self.audit_service.log_stock_restored(user, sale_id, result['units'])
        if result['released'] > EPSILON:
            client = self.store.collection(CLIENTS).get(sale['client_id']) or {}
            self.audit_service.log_credit_movement(
                user, sale['client_id'], sale.get('client_name', ''), -result['released'],
                float(client.get('credit_used', 0) or 0), f"cancelación {sale.get('folio', '')}"
            )

    @service_call('Cancelación de venta')
    def cancel_sale(self, sale_id: str, user: str = None) -> Dict[str, Any]:
        """
        Cancela una venta: devuelve el stock a sus lotes y libera el crédito
        pendiente. Cancelada es terminal.
        """
        def cancel(tx: Transaction) -> Dict[str, Any]:
            sale = tx.get(SALES, sale_id)
            if not sale:
                raise NotFoundError('Venta', sale_id)
            if sale.get('status') == SaleStatus.CANCELADA.value:
                raise InvalidTransitionError("La venta ya está cancelada.")
            result = self._reverse(tx, sale_id, sale)
            tx.update(SALES, sale_id, {
                'status': SaleStatus.CANCELADA.value,
                'previous_status': sale.get('status'),
                'cancelled_at': now_iso(),
            })
            return {'sale': sale, **result}

        result = self.store.run_transaction(cancel)
        self._audit_reversal(user, sale_id, result['sale'], result)
        return {
            'ok': True,
            'id': sale_id,
            'restored_units': result['units'],
            'released_credit': money(result['released']),
        }

    @service_call('Liquidación de venta')
    def mark_paid(self, sale_id: str, user: str = None) -> Dict[str, Any]:
        """
        Marca como Pagada una venta Pendiente. En ventas a crédito registra
        el abono por el saldo restante.
        """
        def settle(tx: Transaction) -> Dict[str, Any]:
            sale = tx.get(SALES, sale_id)
            if not sale:
                raise NotFoundError('Venta', sale_id)
            if sale.get('status') != SaleStatus.PENDIENTE.value:
                raise InvalidTransitionError(
                    f"Solo ventas Pendientes pueden liquidarse (actual: {sale.get('status')})."
                )
            balance = 0.0
            credit_used = None
            if sale.get('payment_method') == PaymentMethod.CREDITO.value:
                balance = max(0.0, float(sale.get('total', 0) or 0) - _paid_on_sale(tx, sale_id))
                if balance > EPSILON:
                    client = release_credit(tx, CLIENTS, sale['client_id'], balance)
                    credit_used = client['credit_used']
                    tx.add(PAYMENTS, {
                        'type': 'client',
                        'client_id': sale['client_id'],
                        'client': sale.get('client_name', ''),
                        'amount': balance,
                        'date': today().isoformat(),
                        'note': f"Liquidación de venta {sale.get('folio', '')}",
                        'user': user or 'sistema',
                        'sale_id': sale_id,
                        'created_at': now_iso(),
                    })
            tx.update(SALES, sale_id, {
                'status': SaleStatus.PAGADA.value,
                'previous_status': sale.get('status'),
            })
            return {'sale': sale, 'balance': balance, 'credit_used': credit_used}

        result = self.store.run_transaction(settle)
        sale = result['sale']
        if self.audit_service:
            self.audit_service.log_sale_status_change(
                user, sale_id, SaleStatus.PENDIENTE.value, SaleStatus.PAGADA.value
            )
            if result['credit_used'] is not None:
                self.audit_service.log_credit_movement(
                    user, sale['client_id'], sale.get('client_name', ''), -result['balance'],
                    result['credit_used'], f"liquidación {sale.get('folio', '')}"
                )
        return {'ok': True, 'id': sale_id, 'paid_balance': money(result['balance'])}

    @service_call('Baja de venta')
    def delete_sale(self, sale_id: str, user: str = None) -> Dict[str, Any]:
        """Elimina una venta; si no estaba cancelada primero se revierte."""
        def remove(tx: Transaction) -> Dict[str, Any]:
            sale = tx.get(SALES, sale_id)
            if not sale:
                raise NotFoundError('Venta', sale_id)
            result = {'units': 0.0, 'released': 0.0}
            if sale.get('status') != SaleStatus.CANCELADA.value:
                result = self._reverse(tx, sale_id, sale)
            tx.delete(SALES, sale_id)
            return {'sale': sale, **result}

        result = self.store.run_transaction(remove)
        sale = result['sale']
        if sale.get('status') != SaleStatus.CANCELADA.value:
            self._audit_reversal(user, sale_id, sale, result)
        if self.audit_service:
            self.audit_service.log(
                AuditService.TYPE_VENTA, user,
                f"Venta {sale.get('folio', sale_id)} eliminada - Por {user or 'sistema'}",
                sale_id
            )
        return {'ok': True, 'id': sale_id}
