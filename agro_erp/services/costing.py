# ==============================================================================
# COSTEO DE COMPRAS - Prorrateo de gastos asociados
# ==============================================================================
# Reparte los gastos marcados como "prorratear" entre las partidas de la
# compra en proporción a su subtotal (cantidad × costo):
#
#   ratio_i     = subtotal_i / subtotal_productos     (0 si subtotal es 0)
#   adicional_i = total_prorrateable × ratio_i
#   real_i      = (subtotal_i + adicional_i) / cantidad_i   (4 decimales)
#
# El total de la orden suma TODOS los gastos (prorrateables o no).
# ==============================================================================

from typing import Any, Dict, Iterable, List

from agro_erp.errors import ValidationError
from agro_erp.models.entities import AssociatedCost, PurchaseItem

REAL_COST_DECIMALS = 4


def prorate_costs(
    items: Iterable[PurchaseItem],
    associated_costs: Iterable[AssociatedCost] = ()
) -> Dict[str, Any]:
    """
    Calcula costo adicional y costo real por partida.

    Args:
        items: Partidas (cantidad, costo unitario)
        associated_costs: Gastos de la compra

    Returns:
        {
            'items': [PurchaseItem con additional_cost y real_cost],
            'subtotal_products': float,
            'total_associated_costs': float,
            'total_prorated_costs': float,
            'total_order': float
        }

    Raises:
        ValidationError: Si una cantidad, costo o gasto es negativo
    """
    items = list(items)
    costs = list(associated_costs or ())

    for item in items:
        if item.quantity < 0 or item.cost < 0:
            raise ValidationError(f"Cantidad y costo de {item.product_name or item.product_id} no pueden ser negativos.")
    for cost in costs:
        if cost.amount < 0:
            raise ValidationError(f"El gasto '{cost.concept}' no puede ser negativo.")

    subtotal_products = sum(item.subtotal for item in items)
    total_associated = sum(cost.amount for cost in costs)
    total_prorated = sum(cost.amount for cost in costs if cost.prorate)

    result_items: List[PurchaseItem] = []
    for item in items:
        ratio = item.subtotal / subtotal_products if subtotal_products > 0 else 0.0
        additional = total_prorated * ratio
        if item.quantity > 0:
            real = (item.subtotal + additional) / item.quantity
        else:
            real = item.cost
        item.additional_cost = additional
        item.real_cost = max(0.0, round(real, REAL_COST_DECIMALS))
        result_items.append(item)

    return {
        'items': result_items,
        'subtotal_products': subtotal_products,
        'total_associated_costs': total_associated,
        'total_prorated_costs': total_prorated,
        'total_order': subtotal_products + total_associated,
    }
