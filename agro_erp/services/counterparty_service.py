# ==============================================================================
# SERVICIO DE CONTRAPARTES Y CRÉDITO
# ==============================================================================
# Clientes y proveedores comparten el modelo de crédito:
#   disponible = credit_limit - credit_used
# Todo cambio de credit_used ocurre dentro de una transacción
# (reserve_credit / release_credit) para que dos operaciones simultáneas
# nunca excedan el límite.
# ==============================================================================

import logging
import math
from typing import Any, Dict, List

from agro_erp.errors import InsufficientCreditError, NotFoundError, ValidationError
from agro_erp.models.entities import Client, SaleStatus, Supplier
from agro_erp.repositories.document_store import DocumentStore, Transaction
from agro_erp.services.audit_service import AuditService, fmt_money
from agro_erp.services.common import CLIENTS, PAYMENTS, SALES, SUPPLIERS, service_call
from agro_erp.utils import money, now_iso, parse_date, to_float, today

logger = logging.getLogger(__name__)

# Tolerancia para comparar montos en punto flotante
EPSILON = 1e-6

_LABELS = {CLIENTS: 'Cliente', SUPPLIERS: 'Proveedor'}
_ENTITIES = {CLIENTS: Client, SUPPLIERS: Supplier}


def _label(collection: str) -> str:
    return _LABELS.get(collection, 'Contraparte')


def display_name(counterparty: Dict[str, Any]) -> str:
    """Nombre para mostrar (razón social en proveedores)."""
    return counterparty.get('company_name') or counterparty.get('name') or counterparty.get('id', '')


# =============================================================================
# OPERACIONES DE CRÉDITO (dentro de transacción)
# =============================================================================

def reserve_credit(tx: Transaction, collection: str, counterparty_id: str, amount: float) -> Dict[str, Any]:
    """
    Carga un monto al crédito usado de un cliente/proveedor.

    Args:
        tx: Transacción en curso
        collection: 'clients' o 'suppliers'
        counterparty_id: ID de la contraparte
        amount: Monto a cargar (>= 0)

    Returns:
        Documento de la contraparte con el nuevo credit_used

    Raises:
        NotFoundError: Si no existe
        InsufficientCreditError: Sin crédito autorizado o monto mayor al disponible
    """
    counterparty = tx.get(collection, counterparty_id)
    if not counterparty:
        raise NotFoundError(_label(collection), counterparty_id)
    if not math.isfinite(amount):
        raise ValidationError("El monto a cargar no es un número válido.")
    if amount <= 0:
        return counterparty

    limit = float(counterparty.get('credit_limit', 0) or 0)
    used = float(counterparty.get('credit_used', 0) or 0)
    if not counterparty.get('has_credit') or limit <= 0:
        raise InsufficientCreditError(f"{display_name(counterparty)} no tiene crédito autorizado.")

    available = limit - used
    if amount > available + EPSILON:
        raise InsufficientCreditError(
            f"Crédito insuficiente. Disponible: {fmt_money(max(0.0, available))}",
            details={'available': money(max(0.0, available)), 'requested': money(amount)}
        )

    new_used = used + amount
    tx.update(collection, counterparty_id, {'credit_used': new_used})
    counterparty['credit_used'] = new_used
    return counterparty


def release_credit(tx: Transaction, collection: str, counterparty_id: str, amount: float) -> Dict[str, Any]:
    """
    Libera crédito usado (nunca queda negativo).

    Returns:
        Documento con 'credit_used' actualizado y 'overpaid' si el monto
        excedía el saldo
    """
    counterparty = tx.get(collection, counterparty_id)
    if not counterparty:
        raise NotFoundError(_label(collection), counterparty_id)
    if not math.isfinite(amount) or amount < 0:
        raise ValidationError("El monto a liberar no es un número válido.")
    used = float(counterparty.get('credit_used', 0) or 0)
    new_used = used - amount
    tx.update(collection, counterparty_id, {'credit_used': max(0.0, new_used)})
    counterparty['credit_used'] = max(0.0, new_used)
    counterparty['overpaid'] = new_used < -EPSILON
    return counterparty


class CounterpartyService:
    """
    Servicio para clientes, proveedores y su crédito.

    Responsabilidades:
    - CRUD de clientes y proveedores
    - Abonos de clientes y pagos a proveedores (REGLA DE ORO: auditados)
    - Resumen de crédito por contraparte
    """

    def __init__(self, store: DocumentStore, audit_service: AuditService = None):
        self.store = store
        self.audit_service = audit_service

    def _collection_or_fail(self, collection: str):
        if collection not in _ENTITIES:
            raise ValidationError(f"Colección de contrapartes inválida: {collection}")
        return self.store.collection(collection)

    # =========================================================================
    # CRUD
    # =========================================================================

    def list_counterparties(self, collection: str) -> List[Dict[str, Any]]:
        repo = self._collection_or_fail(collection)
        return sorted(repo.list(), key=lambda c: display_name(c).lower())

    def get_counterparty(self, collection: str, counterparty_id: str) -> Dict[str, Any]:
        return self._collection_or_fail(collection).get(counterparty_id)

    @service_call('Alta de contraparte')
    def create_counterparty(self, collection: str, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        """Crea un cliente o proveedor (crédito usado inicia en 0)."""
        repo = self._collection_or_fail(collection)
        data = dict(values)
        data['credit_used'] = 0
        entity = _ENTITIES[collection].from_dict(data)
        doc = entity.to_dict()
        doc['created_at'] = now_iso()
        new_id = repo.add(doc)
        logger.info("%s creado: %s", _label(collection), entity.name)
        return {'ok': True, 'id': new_id, collection[:-1]: repo.get(new_id)}

    @service_call('Edición de contraparte')
    def update_counterparty(
        self,
        collection: str,
        counterparty_id: str,
        values: Dict[str, Any],
        user: str = None
    ) -> Dict[str, Any]:
        """
        Actualiza datos generales. credit_used no se edita aquí: solo cambia
        con ventas, compras y abonos.
        """
        repo = self._collection_or_fail(collection)
        current = repo.get(counterparty_id)
        if not current:
            raise NotFoundError(_label(collection), counterparty_id)
        merged = dict(current)
        merged.update({k: v for k, v in values.items() if k != 'credit_used'})
        entity = _ENTITIES[collection].from_dict(merged)
        if entity.has_credit and entity.credit_limit + EPSILON < entity.credit_used:
            raise ValidationError(
                f"El límite no puede ser menor al crédito usado ({fmt_money(entity.credit_used)})."
            )
        payload = entity.to_dict()
        payload.pop('credit_used')
        repo.update_fields(counterparty_id, payload)
        return {'ok': True, 'id': counterparty_id, collection[:-1]: repo.get(counterparty_id)}

    @service_call('Baja de contraparte')
    def delete_counterparty(self, collection: str, counterparty_id: str, user: str = None) -> Dict[str, Any]:
        repo = self._collection_or_fail(collection)
        current = repo.get(counterparty_id)
        if not current:
            raise NotFoundError(_label(collection), counterparty_id)
        if float(current.get('credit_used', 0) or 0) > EPSILON:
            raise ValidationError(
                f"No se puede eliminar: tiene saldo pendiente de {fmt_money(current['credit_used'])}."
            )
        repo.remove(counterparty_id)
        return {'ok': True, 'id': counterparty_id}

    # =========================================================================
    # CRÉDITO
    # =========================================================================

    def credit_summary(self, collection: str, counterparty_id: str) -> Dict[str, Any]:
        """
        Resumen de crédito.

        Returns:
            {'ok': True, 'used', 'limit', 'available', 'usage_pct'}
        """
        counterparty = self._collection_or_fail(collection).get(counterparty_id)
        if not counterparty:
            return NotFoundError(_label(collection), counterparty_id).to_result()
        limit = float(counterparty.get('credit_limit', 0) or 0)
        used = float(counterparty.get('credit_used', 0) or 0)
        return {
            'ok': True,
            'has_credit': bool(counterparty.get('has_credit')),
            'used': money(used),
            'limit': money(limit),
            'available': money(max(0.0, limit - used)),
            'usage_pct': round(used / limit * 100, 2) if limit > 0 else 0.0,
        }

    def credit_sales_for(self, client_id: str) -> List[Dict[str, Any]]:
        """Ventas a crédito de un cliente con su saldo pendiente."""
        payments = self.store.collection(PAYMENTS).where(type='client', client_id=client_id)
        paid_by_sale: Dict[str, float] = {}
        for p in payments:
            if p.get('sale_id'):
                paid_by_sale[p['sale_id']] = paid_by_sale.get(p['sale_id'], 0.0) + float(p.get('amount', 0) or 0)

        result = []
        for sale in self.store.collection(SALES).where(client_id=client_id, payment_method='Credito'):
            if sale.get('status') == SaleStatus.CANCELADA.value:
                continue
            sale['balance'] = money(max(0.0, float(sale.get('total', 0) or 0) - paid_by_sale.get(sale['id'], 0.0)))
            result.append(sale)
        return sorted(result, key=lambda s: s.get('date', ''), reverse=True)

    def _apply_payment(
        self,
        collection: str,
        payment_type: str,
        counterparty_id: str,
        amount: Any,
        note: str = '',
        payment_date: Any = None,
        sale_id: str = None,
        user: str = None
    ) -> Dict[str, Any]:
        amount = to_float(amount, 'monto')
        if amount <= 0:
            raise ValidationError("El monto debe ser mayor a 0.")
        when = (parse_date(payment_date, 'fecha') or today()).isoformat()

        def pay(tx: Transaction) -> Dict[str, Any]:
            counterparty = release_credit(tx, collection, counterparty_id, amount)
            payment = {
                'type': payment_type,
                f'{payment_type}_id': counterparty_id,
                payment_type: display_name(counterparty),
                'amount': amount,
                'date': when,
                'note': note or '',
                'user': user or 'sistema',
                'created_at': now_iso(),
            }
            sale_paid = False
            if sale_id:
                sale = tx.get(SALES, sale_id)
                if not sale or sale.get('client_id') != counterparty_id:
                    raise NotFoundError('Venta', sale_id)
                payment['sale_id'] = sale_id
                previous = sum(
                    float(p.get('amount', 0) or 0)
                    for p in tx.where(PAYMENTS, sale_id=sale_id)
                )
                if previous + amount + EPSILON >= float(sale.get('total', 0) or 0) \
                        and sale.get('status') == SaleStatus.PENDIENTE.value:
                    tx.update(SALES, sale_id, {'status': SaleStatus.PAGADA.value})
                    sale_paid = True
            payment_id = tx.add(PAYMENTS, payment)
            return {
                'payment_id': payment_id,
                'credit_used': counterparty['credit_used'],
                'overpaid': counterparty['overpaid'],
                'name': display_name(counterparty),
                'sale_paid': sale_paid,
            }

        result = self.store.run_transaction(pay)
        if result['overpaid']:
            logger.warning("Abono mayor al saldo de %s; el saldo queda en 0", result['name'])

        # REGLA DE ORO: registrar en auditoría
        if self.audit_service:
            self.audit_service.log_credit_movement(
                user, counterparty_id, result['name'], -amount, result['credit_used'],
                f"abono {payment_type}"
            )

        response = {'ok': True, **result}
        if result['overpaid']:
            response['warning'] = 'El abono es mayor al saldo pendiente. El saldo se estableció en $0.00.'
        return response

    @service_call('Abono de cliente')
    def apply_client_payment(
        self,
        client_id: str,
        amount: Any,
        sale_id: str = None,
        note: str = '',
        payment_date: Any = None,
        user: str = None
    ) -> Dict[str, Any]:
        """
        Registra un abono de cliente: reduce su crédito usado (mínimo 0) y
        guarda el pago. Si se indica una venta y queda liquidada, pasa a Pagada.
        """
        return self._apply_payment(CLIENTS, 'client', client_id, amount, note, payment_date, sale_id, user)

    @service_call('Pago a proveedor')
    def apply_supplier_payment(
        self,
        supplier_id: str,
        amount: Any,
        note: str = '',
        payment_date: Any = None,
        user: str = None
    ) -> Dict[str, Any]:
        """Registra un pago a proveedor: reduce el crédito usado con él."""
        return self._apply_payment(SUPPLIERS, 'supplier', supplier_id, amount, note, payment_date, None, user)

    def list_payments(self, payment_type: str = None) -> List[Dict[str, Any]]:
        filters = {'type': payment_type} if payment_type else {}
        return sorted(
            self.store.collection(PAYMENTS).where(**filters),
            key=lambda p: (p.get('date', ''), p.get('created_at', '')),
            reverse=True
        )
