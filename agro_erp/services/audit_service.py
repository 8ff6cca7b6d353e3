# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Centraliza toda la lógica de registro de auditoría.
# Formatea mensajes humanizados y categoriza eventos.
# ==============================================================================

import logging
from typing import Any, Dict, List

from agro_erp.repositories.audit_repository import AuditRepository

logger = logging.getLogger(__name__)


def fmt_money(amount: float) -> str:
    """Formato de moneda: $1,234.50"""
    return f"${float(amount or 0):,.2f}"


class AuditService:
    """
    Servicio para registro y consulta de auditoría.

    La regla de oro: si se mueve dinero (venta, compra a crédito, abono)
    siempre hay un registro.
    """

    TYPE_COMPRA = 'COMPRA'
    TYPE_VENTA = 'VENTA'
    TYPE_CREDITO = 'CREDITO'
    TYPE_INVENTARIO = 'INVENTARIO'
    TYPE_ACTIVO = 'ACTIVO'
    TYPE_LOGISTICA = 'LOGISTICA'
    TYPE_SISTEMA = 'SISTEMA'

    def __init__(self, audit_repo: AuditRepository):
        self.audit_repo = audit_repo

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """
        Registra un evento de auditoría genérico.

        Args:
            log_type: Tipo de evento (COMPRA, VENTA, CREDITO, ...)
            user: Usuario que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID del documento relacionado
            details: Detalles adicionales
        """
        self.audit_repo.log(log_type, user, message, related_id, details)
        logger.debug("[%s] %s", log_type, message)

    def log_sale_created(
        self,
        user: str,
        sale_id: str,
        client_name: str,
        total: float,
        payment_method: str,
        items_count: int
    ) -> None:
        message = (
            f"Venta a {client_name} por {fmt_money(total)} ({payment_method}) "
            f"- {items_count} partidas - Por {user}"
        )
        self.log(self.TYPE_VENTA, user, message, sale_id,
                 {'total': total, 'payment_method': payment_method, 'items_count': items_count})

    def log_sale_status_change(self, user: str, sale_id: str, old_status: str, new_status: str) -> None:
        message = f"Venta {sale_id[:6].upper()}: {old_status} → {new_status} por {user}"
        self.log(self.TYPE_VENTA, user, message, sale_id, {'from': old_status, 'to': new_status})

    def log_purchase_saved(
        self,
        user: str,
        purchase_id: str,
        supplier_name: str,
        total: float,
        status: str,
        payment_method: str
    ) -> None:
        message = (
            f"Compra a {supplier_name} por {fmt_money(total)} ({payment_method}) "
            f"- Estado: {status} - Por {user}"
        )
        self.log(self.TYPE_COMPRA, user, message, purchase_id,
                 {'total': total, 'status': status, 'payment_method': payment_method})

    def log_credit_movement(
        self,
        user: str,
        counterparty_id: str,
        counterparty_name: str,
        amount: float,
        credit_used_after: float,
        reason: str
    ) -> None:
        """
        Registra un movimiento de crédito (cargo positivo, abono negativo).
        REGLA DE ORO: todo cambio de crédito usado pasa por aquí.
        """
        action = 'Cargo' if amount >= 0 else 'Abono'
        message = (
            f"{action} de crédito {counterparty_name}: {fmt_money(abs(amount))} ({reason}) "
            f"- Crédito usado: {fmt_money(credit_used_after)} - Por {user}"
        )
        self.log(self.TYPE_CREDITO, user, message, counterparty_id,
                 {'amount': amount, 'credit_used': credit_used_after, 'reason': reason})

    def log_lots_created(self, user: str, purchase_id: str, lots: List[Dict[str, Any]]) -> None:
        desc = ", ".join(f"{l.get('quantity'):g}x {l.get('sku')}" for l in lots[:3])
        if len(lots) > 3:
            desc += f" (+{len(lots) - 3} más)"
        message = f"Entrada de inventario por compra: {desc} - Por {user}"
        self.log(self.TYPE_INVENTARIO, user, message, purchase_id, {'lots': len(lots)})

    def log_stock_restored(self, user: str, sale_id: str, units: float) -> None:
        message = f"Inventario devuelto por cancelación de venta: {units:g} unidades - Por {user}"
        self.log(self.TYPE_INVENTARIO, user, message, sale_id, {'units': units})

    def log_user_login(self, user: str) -> None:
        self.log(self.TYPE_SISTEMA, user, f"Inicio de sesión: {user}")

    def log_user_logout(self, user: str) -> None:
        self.log(self.TYPE_SISTEMA, user, f"Cierre de sesión: {user}")

    # =========================================================================
    # CONSULTA DE LOGS
    # =========================================================================

    def get_recent_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self.audit_repo.get_recent_logs(limit)

    def search_logs(self, query: str = '', log_type: str = None, user: str = None) -> List[Dict[str, Any]]:
        return self.audit_repo.search_logs(query, log_type, user)
