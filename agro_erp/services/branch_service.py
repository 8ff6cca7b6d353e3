# ==============================================================================
# SERVICIO DE SUCURSALES
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from agro_erp.errors import NotFoundError, ValidationError
from agro_erp.models.entities import Branch
from agro_erp.repositories.document_store import DocumentStore
from agro_erp.services.common import BRANCHES, INVENTORY, service_call

logger = logging.getLogger(__name__)


class BranchService:

    def __init__(self, store: DocumentStore):
        self.store = store
        self.branches = store.collection(BRANCHES)

    def list_branches(self) -> List[Dict[str, Any]]:
        return sorted(self.branches.list(), key=lambda b: b.get('name', '').lower())

    def get_branch(self, branch_id: str) -> Optional[Dict[str, Any]]:
        return self.branches.get(branch_id)

    @service_call('Alta de sucursal')
    def create_branch(self, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        branch = Branch.from_dict(values)
        branch_id = self.branches.add(branch.to_dict())
        logger.info("Sucursal creada: %s", branch.name)
        return {'ok': True, 'id': branch_id, 'branch': self.branches.get(branch_id)}

    @service_call('Edición de sucursal')
    def update_branch(self, branch_id: str, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        current = self.branches.get(branch_id)
        if not current:
            raise NotFoundError('Sucursal', branch_id)
        merged = dict(current)
        merged.update(values)
        self.branches.update_fields(branch_id, Branch.from_dict(merged).to_dict())
        return {'ok': True, 'id': branch_id, 'branch': self.branches.get(branch_id)}

    @service_call('Baja de sucursal')
    def delete_branch(self, branch_id: str, user: str = None) -> Dict[str, Any]:
        """No se elimina una sucursal con existencias."""
        if not self.branches.exists(branch_id):
            raise NotFoundError('Sucursal', branch_id)
        stocked = [l for l in self.store.collection(INVENTORY).where(branch_id=branch_id)
                   if float(l.get('quantity', 0) or 0) > 0]
        if stocked:
            raise ValidationError("La sucursal tiene inventario; transfiérelo o dalo de baja primero.")
        self.branches.remove(branch_id)
        return {'ok': True, 'id': branch_id}
