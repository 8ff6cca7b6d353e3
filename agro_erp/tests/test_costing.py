import pytest

from agro_erp.errors import ValidationError
from agro_erp.models.entities import AssociatedCost, PurchaseItem
from agro_erp.services.costing import prorate_costs


def item(quantity, cost, product_id='p1'):
    return PurchaseItem(product_id=product_id, product_name=product_id, quantity=quantity, cost=cost)


def test_prorated_costs_split_by_subtotal_share():
    result = prorate_costs(
        [item(10, 100, 'a'), item(5, 200, 'b')],
        [AssociatedCost('Flete', 300, True), AssociatedCost('Seguro', 50, False)]
    )
    a, b = result['items']
    assert a.additional_cost == pytest.approx(150)
    assert b.additional_cost == pytest.approx(150)
    assert a.real_cost == 115.0
    assert b.real_cost == 230.0
    assert result['subtotal_products'] == 2000
    assert result['total_prorated_costs'] == 300
    assert result['total_associated_costs'] == 350
    assert result['total_order'] == 2350


def test_shares_add_up_to_prorated_total():
    items = [item(3, 17.35, 'a'), item(11, 4.2, 'b'), item(7, 99.99, 'c')]
    result = prorate_costs(items, [AssociatedCost('Flete', 123.45), AssociatedCost('Maniobras', 10)])
    assert sum(i.additional_cost for i in result['items']) == pytest.approx(133.45)


def test_real_cost_rounded_to_four_decimals():
    result = prorate_costs([item(3, 1)], [AssociatedCost('Flete', 1)])
    assert result['items'][0].real_cost == 1.3333


def test_zero_subtotal_gets_no_share():
    result = prorate_costs([item(5, 0, 'regalo'), item(0, 10, 'vacio')], [AssociatedCost('Flete', 100)])
    gift, empty = result['items']
    assert gift.additional_cost == 0
    assert gift.real_cost == 0
    # Sin cantidad el costo real es el unitario
    assert empty.real_cost == 10


def test_no_associated_costs_keeps_unit_cost():
    result = prorate_costs([item(4, 25.5)])
    assert result['items'][0].real_cost == 25.5
    assert result['total_order'] == 102


@pytest.mark.parametrize('items, costs', [
    ([item(-1, 10)], []),
    ([item(1, -10)], []),
    ([item(1, 10)], [AssociatedCost('Flete', -5)]),
])
def test_negative_values_rejected(items, costs):
    with pytest.raises(ValidationError):
        prorate_costs(items, costs)
