# ==============================================================================
# SERVICIO DE COTIZACIONES
# ==============================================================================
# Cotizaciones de proveedores. Solo las Aprobadas que ninguna compra haya
# usado pueden vincularse a una orden de compra.
# ==============================================================================

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from agro_erp.errors import InvalidTransitionError, NotFoundError
from agro_erp.models.entities import Quote, QuoteStatus
from agro_erp.repositories.document_store import DocumentStore
from agro_erp.services.common import PURCHASES, QUOTATIONS, SUPPLIERS, service_call
from agro_erp.services.counterparty_service import display_name
from agro_erp.utils import now_iso

logger = logging.getLogger(__name__)


class QuotationService:

    def __init__(self, store: DocumentStore):
        self.store = store
        self.quotes = store.collection(QUOTATIONS)

    def get_quote(self, quote_id: str) -> Optional[Dict[str, Any]]:
        return self.quotes.get(quote_id)

    def list_quotes(self, status: str = None) -> List[Dict[str, Any]]:
        items = self.quotes.where(status=status) if status else self.quotes.list()
        return sorted(items, key=lambda q: q.get('date', ''), reverse=True)

    def approved_unused(self) -> List[Dict[str, Any]]:
        """Cotizaciones aprobadas que todavía no tienen compra vinculada."""
        used = {p.get('quote_id') for p in self.store.collection(PURCHASES).list() if p.get('quote_id')}
        return [q for q in self.list_quotes(QuoteStatus.APROBADA.value) if q['id'] not in used]

    def _build(self, values: Dict[str, Any]) -> Dict[str, Any]:
        quote = Quote.from_dict(values)
        supplier = self.store.collection(SUPPLIERS).get(quote.supplier_id)
        if not supplier:
            raise NotFoundError('Proveedor', quote.supplier_id)
        doc = quote.to_dict()
        doc['supplier_name'] = display_name(supplier)
        doc['items'] = [asdict(i) for i in quote.items]
        return doc

    @service_call('Alta de cotización')
    def create_quote(self, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        data = dict(values)
        data['status'] = QuoteStatus.PENDIENTE.value
        doc = self._build(data)
        doc['created_at'] = now_iso()
        quote_id = self.quotes.add(doc)
        logger.info("Cotización %s registrada", doc['quote_number'])
        return {'ok': True, 'id': quote_id, 'quote': self.quotes.get(quote_id)}

    @service_call('Edición de cotización')
    def update_quote(self, quote_id: str, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        current = self.quotes.get(quote_id)
        if not current:
            raise NotFoundError('Cotización', quote_id)
        merged = dict(current)
        merged.update(values)
        # El estado solo cambia con approve/reject
        merged['status'] = current.get('status')
        doc = self._build(merged)
        self.quotes.update_fields(quote_id, doc)
        return {'ok': True, 'id': quote_id, 'quote': self.quotes.get(quote_id)}

    @service_call('Baja de cotización')
    def delete_quote(self, quote_id: str, user: str = None) -> Dict[str, Any]:
        if self.quotes.remove(quote_id) is None:
            raise NotFoundError('Cotización', quote_id)
        return {'ok': True, 'id': quote_id}

    def _decide(self, quote_id: str, new_status: QuoteStatus) -> Dict[str, Any]:
        current = self.quotes.get(quote_id)
        if not current:
            raise NotFoundError('Cotización', quote_id)
        if current.get('status') != QuoteStatus.PENDIENTE.value:
            raise InvalidTransitionError(
                f"Solo cotizaciones Pendientes pueden pasar a {new_status.value} "
                f"(actual: {current.get('status')})."
            )
        self.quotes.update_fields(quote_id, {'status': new_status.value, 'decided_at': now_iso()})
        return {'ok': True, 'id': quote_id, 'status': new_status.value}

    @service_call('Aprobación de cotización')
    def approve(self, quote_id: str, user: str = None) -> Dict[str, Any]:
        return self._decide(quote_id, QuoteStatus.APROBADA)

    @service_call('Rechazo de cotización')
    def reject(self, quote_id: str, user: str = None) -> Dict[str, Any]:
        return self._decide(quote_id, QuoteStatus.RECHAZADA)
