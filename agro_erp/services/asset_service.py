# ==============================================================================
# SERVICIO DE ACTIVOS FIJOS
# ==============================================================================
# Depreciación en línea recta:
#   mensual      = costo / (vida_útil_años * 12)
#   valor_actual = max(0, costo - mensual * meses_transcurridos)
# Los meses transcurridos son meses calendario completos.
# ==============================================================================

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from dateutil.relativedelta import relativedelta

from agro_erp.errors import NotFoundError, ValidationError
from agro_erp.models.entities import FixedAsset
from agro_erp.repositories.document_store import DocumentStore
from agro_erp.services.audit_service import AuditService, fmt_money
from agro_erp.services.common import FIXED_ASSETS, service_call
from agro_erp.utils import money, now_iso, parse_date, today

logger = logging.getLogger(__name__)


# =============================================================================
# CÁLCULOS
# =============================================================================

def monthly_depreciation(cost: float, useful_life_years: float) -> float:
    if cost <= 0 or useful_life_years <= 0:
        return 0.0
    return cost / (useful_life_years * 12)


def months_elapsed(acquired: date, as_of: date) -> int:
    """
    Meses calendario completos entre dos fechas (nunca negativo).

    Ejemplo:
        months_elapsed(date(2023, 1, 31), date(2023, 2, 28)) -> 0
        months_elapsed(date(2023, 1, 15), date(2025, 1, 15)) -> 24
    """
    if as_of <= acquired:
        return 0
    delta = relativedelta(as_of, acquired)
    return delta.years * 12 + delta.months


def current_value(cost: float, useful_life_years: float, acquired: date, as_of: date) -> float:
    depreciated = monthly_depreciation(cost, useful_life_years) * months_elapsed(acquired, as_of)
    return max(0.0, cost - depreciated)


class AssetService:
    """
    Servicio de activos fijos.

    Responsabilidades:
    - CRUD con depreciación calculada al guardar
    - Revaluación de todos los activos a una fecha
    - Totales para estados financieros
    """

    def __init__(self, store: DocumentStore, audit_service: AuditService = None):
        self.store = store
        self.assets = store.collection(FIXED_ASSETS)
        self.audit_service = audit_service

    @staticmethod
    def _valued(asset: FixedAsset, as_of: date) -> Dict[str, Any]:
        doc = asset.to_dict()
        acquired = parse_date(asset.acquisition_date)
        doc['monthly_depreciation'] = round(
            monthly_depreciation(asset.acquisition_cost, asset.useful_life), 4
        )
        doc['current_value'] = money(
            current_value(asset.acquisition_cost, asset.useful_life, acquired, as_of)
        )
        doc['valued_at'] = as_of.isoformat()
        return doc

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_asset(self, asset_id: str) -> Optional[Dict[str, Any]]:
        return self.assets.get(asset_id)

    def list_assets(self) -> List[Dict[str, Any]]:
        return sorted(self.assets.list(), key=lambda a: a.get('name', '').lower())

    def totals(self) -> Dict[str, float]:
        """
        Returns:
            {'acquisition_cost', 'current_value', 'monthly_depreciation', 'count'}
        """
        assets = self.assets.list()
        return {
            'count': len(assets),
            'acquisition_cost': money(sum(float(a.get('acquisition_cost', 0) or 0) for a in assets)),
            'current_value': money(sum(float(a.get('current_value', 0) or 0) for a in assets)),
            'monthly_depreciation': money(sum(float(a.get('monthly_depreciation', 0) or 0) for a in assets)),
        }

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    @service_call('Alta de activo')
    def create_asset(self, values: Dict[str, Any], user: str = None, as_of: date = None) -> Dict[str, Any]:
        asset = FixedAsset.from_dict(values)
        doc = self._valued(asset, as_of or today())
        doc['created_at'] = now_iso()
        asset_id = self.assets.add(doc)
        if self.audit_service:
            self.audit_service.log(
                AuditService.TYPE_ACTIVO, user,
                f"Activo registrado: {asset.name} por {fmt_money(asset.acquisition_cost)} "
                f"({asset.useful_life:g} años)",
                asset_id
            )
        return {'ok': True, 'id': asset_id, 'asset': self.assets.get(asset_id)}

    @service_call('Edición de activo')
    def update_asset(
        self,
        asset_id: str,
        values: Dict[str, Any],
        user: str = None,
        as_of: date = None
    ) -> Dict[str, Any]:
        current = self.assets.get(asset_id)
        if not current:
            raise NotFoundError('Activo', asset_id)
        merged = dict(current)
        merged.update(values)
        doc = self._valued(FixedAsset.from_dict(merged), as_of or today())
        self.assets.update_fields(asset_id, doc)
        return {'ok': True, 'id': asset_id, 'asset': self.assets.get(asset_id)}

    @service_call('Baja de activo')
    def delete_asset(self, asset_id: str, user: str = None) -> Dict[str, Any]:
        removed = self.assets.remove(asset_id)
        if removed is None:
            raise NotFoundError('Activo', asset_id)
        if self.audit_service:
            self.audit_service.log(
                AuditService.TYPE_ACTIVO, user, f"Activo eliminado: {removed.get('name')}", asset_id
            )
        return {'ok': True, 'id': asset_id}

    def revalue_all(self, as_of: date = None) -> int:
        """
        Recalcula el valor actual de todos los activos a una fecha.

        Returns:
            Número de activos actualizados
        """
        as_of = as_of or today()
        updated = 0
        for doc in self.assets.list():
            try:
                asset = FixedAsset.from_dict(doc)
            except ValidationError:
                logger.warning("Activo %s con datos inválidos; no se revalúa", doc['id'])
                continue
            self.assets.update_fields(doc['id'], self._valued(asset, as_of))
            updated += 1
        logger.info("Activos revaluados al %s: %d", as_of.isoformat(), updated)
        return updated
