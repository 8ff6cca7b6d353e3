# ==============================================================================
# SERVICIO DE FINANZAS
# ==============================================================================
# Estados financieros a partir de los datos guardados más supuestos
# capturados a mano (efectivo, préstamos, capital, gastos...).
#
# Datos reales:
#   cuentas por cobrar = Σ crédito usado de clientes
#   inventarios        = Σ cantidad × costo de lotes
#   propiedades        = Σ valor actual de activos
#   depreciación       = Σ depreciación mensual de activos
#   cuentas por pagar  = Σ crédito usado con proveedores
#   ingresos / costo   = Σ total / costo de ventas no canceladas
# ==============================================================================

import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict

from agro_erp.errors import ValidationError
from agro_erp.models.entities import SaleStatus
from agro_erp.repositories.document_store import DocumentStore
from agro_erp.services.common import CLIENTS, FIXED_ASSETS, INVENTORY, SALES, SUPPLIERS
from agro_erp.utils import money, to_float

logger = logging.getLogger(__name__)


@dataclass
class FinancialInputs:
    """Supuestos capturados por el usuario (con valores iniciales)."""
    cash: float = 150000.0
    banks: float = 250000.0
    other_current_assets: float = 12000.0
    intangibles: float = 0.0
    other_non_current_assets: float = 0.0
    short_term_loans: float = 50000.0
    labor_liabilities: float = 0.0
    other_current_liabilities: float = 0.0
    long_term_debt: float = 200000.0
    other_non_current_liabilities: float = 0.0
    capital: float = 800000.0
    reserves: float = 0.0
    retained_earnings: float = 50000.0
    selling_expenses: float = 45000.0
    admin_expenses: float = 95000.0
    other_income: float = 5000.0
    financial_expenses: float = 12000.0
    tax_rate: float = 0.30
    asset_purchases: float = 50000.0
    asset_sales: float = 0.0
    debt_issued: float = 0.0
    debt_payments: float = 20000.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any] = None) -> 'FinancialInputs':
        data = data or {}
        unknown = set(data) - {f.name for f in fields(cls)}
        if unknown:
            raise ValidationError(f"Supuestos desconocidos: {', '.join(sorted(unknown))}.")
        values = {k: to_float(v, k) for k, v in data.items() if v is not None and v != ''}
        if not 0 <= values.get('tax_rate', 0.30) <= 1:
            raise ValidationError("La tasa de impuestos debe estar entre 0 y 1.")
        return cls(**values)


def _ratio(numerator: float, denominator: float, pct: bool = False) -> float:
    if denominator <= 0:
        return 0.0
    value = numerator / denominator
    return round(value * 100 if pct else value, 4)


class FinanceService:
    """Estado de resultados, balance general, flujo de efectivo y razones."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def real_data(self) -> Dict[str, float]:
        """Cifras calculadas desde las colecciones."""
        def total(collection: str, key: str) -> float:
            return sum(float(d.get(key, 0) or 0) for d in self.store.collection(collection).list())

        sales = [s for s in self.store.collection(SALES).list()
                 if s.get('status') != SaleStatus.CANCELADA.value]
        inventory = sum(
            float(l.get('quantity', 0) or 0) * float(l.get('unit_price', 0) or 0)
            for l in self.store.collection(INVENTORY).list()
        )
        return {
            'receivables': total(CLIENTS, 'credit_used'),
            'inventory': inventory,
            'property': total(FIXED_ASSETS, 'current_value'),
            'depreciation': total(FIXED_ASSETS, 'monthly_depreciation'),
            'payables': total(SUPPLIERS, 'credit_used'),
            'revenue': sum(float(s.get('total', 0) or 0) for s in sales),
            'cogs': sum(float(s.get('total_cost', 0) or 0) for s in sales),
        }

    def statements(self, overrides: Dict[str, Any] = None) -> Dict[str, Any]:
        """
        Calcula los tres estados y las razones financieras.

        Args:
            overrides: Supuestos a reemplazar (ver FinancialInputs)

        Returns:
            {'real_data', 'inputs', 'income_statement', 'balance_sheet',
             'cash_flow', 'ratios'}
        """
        inputs = FinancialInputs.from_dict(overrides)
        real = self.real_data()

        # Estado de resultados
        gross_profit = real['revenue'] - real['cogs']
        operating_expenses = inputs.selling_expenses + inputs.admin_expenses
        operating_income = gross_profit - operating_expenses
        pre_tax_income = operating_income + inputs.other_income - inputs.financial_expenses
        taxes = pre_tax_income * inputs.tax_rate if pre_tax_income > 0 else 0.0
        net_income = pre_tax_income - taxes

        # Balance general
        current_assets = (inputs.cash + inputs.banks + real['receivables']
                          + real['inventory'] + inputs.other_current_assets)
        non_current_assets = real['property'] + inputs.intangibles + inputs.other_non_current_assets
        total_assets = current_assets + non_current_assets
        current_liabilities = (real['payables'] + inputs.short_term_loans
                               + inputs.labor_liabilities + inputs.other_current_liabilities)
        non_current_liabilities = inputs.long_term_debt + inputs.other_non_current_liabilities
        total_liabilities = current_liabilities + non_current_liabilities
        equity = inputs.capital + inputs.reserves + inputs.retained_earnings + net_income

        # Flujo de efectivo (los saldos actuales se toman como el cambio del periodo)
        operating_flow = (net_income + real['depreciation'] - real['receivables']
                          - real['inventory'] + real['payables'])
        investing_flow = inputs.asset_sales - inputs.asset_purchases
        financing_flow = inputs.debt_issued - inputs.debt_payments

        return {
            'real_data': {k: money(v) for k, v in real.items()},
            'inputs': asdict(inputs),
            'income_statement': {
                'revenue': money(real['revenue']),
                'cogs': money(real['cogs']),
                'gross_profit': money(gross_profit),
                'operating_expenses': money(operating_expenses),
                'operating_income': money(operating_income),
                'pre_tax_income': money(pre_tax_income),
                'taxes': money(taxes),
                'net_income': money(net_income),
            },
            'balance_sheet': {
                'current_assets': money(current_assets),
                'non_current_assets': money(non_current_assets),
                'total_assets': money(total_assets),
                'current_liabilities': money(current_liabilities),
                'non_current_liabilities': money(non_current_liabilities),
                'total_liabilities': money(total_liabilities),
                'equity': money(equity),
                'liabilities_and_equity': money(total_liabilities + equity),
                'difference': money(total_assets - total_liabilities - equity),
            },
            'cash_flow': {
                'operating': money(operating_flow),
                'investing': money(investing_flow),
                'financing': money(financing_flow),
                'net_change': money(operating_flow + investing_flow + financing_flow),
            },
            'ratios': {
                'current': _ratio(current_assets, current_liabilities),
                'quick': _ratio(current_assets - real['inventory'], current_liabilities),
                'debt_to_equity': _ratio(total_liabilities, equity),
                'leverage': _ratio(total_assets, equity),
                'gross_margin_pct': _ratio(gross_profit, real['revenue'], pct=True),
                'net_margin_pct': _ratio(net_income, real['revenue'], pct=True),
                'roa_pct': _ratio(net_income, total_assets, pct=True),
                'roe_pct': _ratio(net_income, equity, pct=True),
            },
        }
