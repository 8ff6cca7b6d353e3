# ==============================================================================
# SERVICIO DE MANTENIMIENTO DE ACTIVOS
# ==============================================================================
# Programa y registra mantenimientos preventivos y correctivos. El estatus
# del activo sigue a sus mantenimientos:
#   alguno sin completar  -> activo en Mantenimiento
#   todos completados     -> activo Activo
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from agro_erp.errors import NotFoundError
from agro_erp.models.entities import AssetStatus, Maintenance, MaintenanceStatus, MaintenanceType
from agro_erp.repositories.collection_repository import new_document_id
from agro_erp.repositories.document_store import DocumentStore, Transaction
from agro_erp.services.audit_service import AuditService, fmt_money
from agro_erp.services.common import FIXED_ASSETS, MAINTENANCES, service_call
from agro_erp.utils import folio, money, now_iso

logger = logging.getLogger(__name__)


def _sync_asset_status(tx: Transaction, asset_id: str) -> Optional[str]:
    """
    Recalcula el estatus del activo según sus mantenimientos abiertos.

    Returns:
        Nuevo estatus, o None si el activo ya no existe
    """
    asset = tx.get(FIXED_ASSETS, asset_id)
    if not asset:
        return None
    pending = [m for m in tx.where(MAINTENANCES, asset_id=asset_id)
               if m.get('status') != MaintenanceStatus.COMPLETADO.value]
    status = AssetStatus.MANTENIMIENTO.value if pending else AssetStatus.ACTIVO.value
    if asset.get('status') != status:
        tx.update(FIXED_ASSETS, asset_id, {'status': status})
    return status


class MaintenanceService:
    """
    Servicio de mantenimiento.

    Responsabilidades:
    - Alta, edición y baja de mantenimientos (folio MAINT-xxxxxx)
    - Estatus del activo en la misma transacción que el mantenimiento
    - Vista de programados, correctivos pendientes e historial
    """

    def __init__(self, store: DocumentStore, audit_service: AuditService = None):
        self.store = store
        self.maintenances = store.collection(MAINTENANCES)
        self.audit_service = audit_service

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_maintenance(self, maintenance_id: str) -> Optional[Dict[str, Any]]:
        return self.maintenances.get(maintenance_id)

    def list_maintenances(self, asset_id: str = None, status: str = None) -> List[Dict[str, Any]]:
        filters = {}
        if asset_id:
            filters['asset_id'] = asset_id
        if status:
            filters['status'] = status
        items = self.maintenances.where(**filters) if filters else self.maintenances.list()
        return sorted(items, key=lambda m: m.get('date', ''), reverse=True)

    def overview(self) -> Dict[str, Any]:
        """
        Agrupa los mantenimientos como el tablero de mantenimiento.

        Returns:
            {'scheduled': [...], 'corrective': [...], 'history': [...],
             'completed_cost': float}
        """
        items = self.list_maintenances()
        done = MaintenanceStatus.COMPLETADO.value
        history = [m for m in items if m.get('status') == done]
        return {
            'scheduled': [m for m in items if m.get('status') != done],
            'corrective': [m for m in items if m.get('status') != done
                           and m.get('type') == MaintenanceType.CORRECTIVO.value],
            'history': history,
            'completed_cost': money(sum(float(m.get('cost', 0) or 0) for m in history)),
        }

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    @service_call('Registro de mantenimiento')
    def save_maintenance(
        self,
        values: Dict[str, Any],
        maintenance_id: str = None,
        user: str = None
    ) -> Dict[str, Any]:
        """
        Crea o edita un mantenimiento y actualiza el estatus del activo.

        Args:
            values: asset_id, type, date, technician, cost, status, notes
            maintenance_id: None para alta; id existente para edición

        Returns:
            {'ok': True, 'id', 'folio', 'maintenance', 'asset_status'}
        """
        current = None
        if maintenance_id:
            current = self.maintenances.get(maintenance_id)
            if not current:
                raise NotFoundError('Mantenimiento', maintenance_id)
            merged = dict(current)
            merged.update(values)
            values = merged
        maintenance = Maintenance.from_dict(values)

        def save(tx: Transaction) -> Dict[str, Any]:
            asset = tx.get(FIXED_ASSETS, maintenance.asset_id)
            if not asset:
                raise NotFoundError('Activo', maintenance.asset_id)

            doc_id = maintenance_id or new_document_id()
            doc = maintenance.to_dict()
            doc['asset_name'] = asset.get('name', '')
            if maintenance_id:
                existing = tx.get(MAINTENANCES, maintenance_id)
                if not existing:
                    raise NotFoundError('Mantenimiento', maintenance_id)
                doc['updated_at'] = now_iso()
                tx.set(MAINTENANCES, doc_id, doc, merge=True)
                previous_asset = existing.get('asset_id')
                if previous_asset and previous_asset != maintenance.asset_id:
                    _sync_asset_status(tx, previous_asset)
            else:
                doc['folio'] = folio('MAINT', doc_id)
                doc['created_at'] = now_iso()
                tx.set(MAINTENANCES, doc_id, doc)

            doc['asset_status'] = _sync_asset_status(tx, maintenance.asset_id)
            doc['id'] = doc_id
            return doc

        saved = self.store.run_transaction(save)
        if self.audit_service:
            action = 'actualizado' if maintenance_id else 'registrado'
            self.audit_service.log(
                AuditService.TYPE_ACTIVO, user,
                f"Mantenimiento {maintenance.type.lower()} {action} para {saved['asset_name']}: "
                f"{maintenance.status} por {fmt_money(maintenance.cost)}",
                saved['id'], {'asset_id': maintenance.asset_id}
            )
        maintenance_doc = self.maintenances.get(saved['id'])
        return {
            'ok': True,
            'id': saved['id'],
            'folio': maintenance_doc.get('folio'),
            'maintenance': maintenance_doc,
            'asset_status': saved['asset_status'],
        }

    def update_status(self, maintenance_id: str, new_status: str, user: str = None) -> Dict[str, Any]:
        return self.save_maintenance({'status': new_status}, maintenance_id, user)

    @service_call('Baja de mantenimiento')
    def delete_maintenance(self, maintenance_id: str, user: str = None) -> Dict[str, Any]:
        def remove(tx: Transaction) -> Dict[str, Any]:
            existing = tx.get(MAINTENANCES, maintenance_id)
            if not existing:
                raise NotFoundError('Mantenimiento', maintenance_id)
            tx.delete(MAINTENANCES, maintenance_id)
            return {'asset_status': _sync_asset_status(tx, existing.get('asset_id'))}

        result = self.store.run_transaction(remove)
        logger.info("Mantenimiento %s eliminado", maintenance_id)
        return {'ok': True, 'id': maintenance_id, **result}
