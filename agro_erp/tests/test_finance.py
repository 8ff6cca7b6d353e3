import pytest

from agro_erp.errors import ValidationError


def test_defaults_with_empty_store(container):
    report = container.finance_service.statements()

    income = report['income_statement']
    assert income['revenue'] == 0
    assert income['operating_expenses'] == 140000
    assert income['pre_tax_income'] == -147000
    # Sin utilidad no hay impuestos
    assert income['taxes'] == 0
    assert income['net_income'] == -147000

    balance = report['balance_sheet']
    assert balance['current_assets'] == 412000
    assert balance['total_liabilities'] == 250000
    assert balance['equity'] == 703000
    assert report['ratios']['current'] == 8.24
    assert report['ratios']['gross_margin_pct'] == 0
    assert report['cash_flow']['investing'] == -50000
    assert report['cash_flow']['financing'] == -20000


def test_sales_feed_income_statement(container, make_product, add_stock):
    product_id = make_product()
    add_stock('FERT-01', 10, 40)
    sales = container.sales_service
    kept = sales.create_sale({'branch_id': 'matriz',
                              'items': [{'product_id': product_id, 'quantity': 3}]})
    cancelled = sales.create_sale({'branch_id': 'matriz',
                                   'items': [{'product_id': product_id, 'quantity': 2}]})
    assert kept['ok'] and cancelled['ok']
    assert sales.cancel_sale(cancelled['id'])['ok']

    report = container.finance_service.statements({'selling_expenses': 0, 'admin_expenses': 0,
                                                    'other_income': 0, 'financial_expenses': 0})

    real = report['real_data']
    assert real['revenue'] == 300
    assert real['cogs'] == 120
    # 7 unidades restantes a 40
    assert real['inventory'] == 280
    income = report['income_statement']
    assert income['gross_profit'] == 180
    assert income['taxes'] == 54
    assert income['net_income'] == 126
    assert report['ratios']['gross_margin_pct'] == 60


def test_overrides_are_applied(container):
    report = container.finance_service.statements({'cash': '1000', 'banks': 0, 'tax_rate': 0.5})
    assert report['inputs']['cash'] == 1000
    assert report['inputs']['tax_rate'] == 0.5
    assert report['balance_sheet']['current_assets'] == 13000


@pytest.mark.parametrize('overrides', [
    {'cash_on_hand': 10},
    {'tax_rate': 1.5},
    {'tax_rate': -0.1},
    {'capital': 'mucho'},
])
def test_invalid_overrides_rejected(container, overrides):
    with pytest.raises(ValidationError):
        container.finance_service.statements(overrides)
