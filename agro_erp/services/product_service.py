# ==============================================================================
# SERVICIO DE PRODUCTOS
# ==============================================================================
# Catálogo de productos. El stock se calcula desde los lotes de inventario.
# ==============================================================================

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional

from agro_erp.errors import NotFoundError, ValidationError
from agro_erp.models.entities import Product
from agro_erp.repositories.document_store import DocumentStore
from agro_erp.services.audit_service import AuditService
from agro_erp.services.common import INVENTORY, PRODUCTS, service_call

logger = logging.getLogger(__name__)


class ProductService:
    """
    Servicio para gestión del catálogo.

    Responsabilidades:
    - CRUD de productos con SKU único
    - Stock por sucursal (suma de lotes)
    """

    def __init__(self, store: DocumentStore, audit_service: AuditService = None):
        self.store = store
        self.products = store.collection(PRODUCTS)
        self.audit_service = audit_service

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self.products.get(product_id)

    def list_products(self) -> List[Dict[str, Any]]:
        """Productos ordenados por nombre."""
        return sorted(self.products.list(), key=lambda p: p.get('name', '').lower())

    def products_with_stock(self, branch_id: str) -> List[Dict[str, Any]]:
        """
        Productos con el stock de una sucursal.

        Args:
            branch_id: Sucursal a consultar

        Returns:
            Lista de productos con campo 'stock'
        """
        stock_by_sku: Dict[str, float] = defaultdict(float)
        for lot in self.store.collection(INVENTORY).where(branch_id=branch_id):
            stock_by_sku[lot.get('sku')] += float(lot.get('quantity', 0) or 0)

        result = []
        for product in self.list_products():
            product['stock'] = stock_by_sku.get(product.get('sku'), 0.0)
            result.append(product)
        return result

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def _ensure_unique_sku(self, sku: str, exclude_id: str = None) -> None:
        for product in self.products.where(sku=sku):
            if product['id'] != exclude_id:
                raise ValidationError(f"Ya existe un producto con el SKU {sku}.")

    @service_call('Alta de producto')
    def create_product(self, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        """
        Crea un producto.

        Returns:
            {'ok': True, 'id': ..., 'product': {...}} o error de validación
        """
        product = Product.from_dict(values)
        self._ensure_unique_sku(product.sku)
        product_id = self.products.add(product.to_dict())
        logger.info("Producto creado: %s (%s)", product.name, product.sku)
        if self.audit_service:
            self.audit_service.log(
                AuditService.TYPE_INVENTARIO, user,
                f"Producto creado: {product.name} (SKU: {product.sku}) por {user or 'sistema'}",
                product_id
            )
        return {'ok': True, 'id': product_id, 'product': self.products.get(product_id)}

    @service_call('Edición de producto')
    def update_product(self, product_id: str, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        current = self.products.get(product_id)
        if not current:
            raise NotFoundError('Producto', product_id)
        merged = dict(current)
        merged.update(values)
        product = Product.from_dict(merged)
        self._ensure_unique_sku(product.sku, exclude_id=product_id)
        self.products.set(product_id, product.to_dict())
        return {'ok': True, 'id': product_id, 'product': self.products.get(product_id)}

    @service_call('Baja de producto')
    def delete_product(self, product_id: str, user: str = None) -> Dict[str, Any]:
        removed = self.products.remove(product_id)
        if removed is None:
            raise NotFoundError('Producto', product_id)
        if self.audit_service:
            self.audit_service.log(
                AuditService.TYPE_INVENTARIO, user,
                f"Producto eliminado: {removed.get('name')} (SKU: {removed.get('sku')})",
                product_id
            )
        return {'ok': True, 'id': product_id}
