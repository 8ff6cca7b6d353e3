# ==============================================================================
# AGRO ERP - Sistema de gestión para distribuidora agrícola
# ==============================================================================
# Inventario por lotes, compras con prorrateo de costos, ventas, crédito de
# clientes y proveedores, activos fijos, logística y estados financieros.
# ==============================================================================

__version__ = '1.4.0'
