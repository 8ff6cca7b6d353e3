# ==============================================================================
# UTILIDADES COMPARTIDAS
# ==============================================================================

import math
from datetime import date, datetime
from typing import Any, Optional

from dateutil import parser as date_parser

from agro_erp.errors import ValidationError


def now_iso() -> str:
    """Marca de tiempo local en formato ISO (segundos)."""
    return datetime.now().isoformat(timespec='seconds')


def today() -> date:
    return date.today()


def folio(prefix: str, doc_id: str) -> str:
    """
    Folio legible a partir del ID del documento.

    Ejemplo:
        folio('REC', 'a1b2c3d4...') -> 'REC-A1B2C3'
    """
    return f"{prefix}-{str(doc_id)[:6].upper()}"


def to_float(value: Any, label: str = 'valor') -> float:
    """
    Convierte a float aceptando cadenas vacías como 0.

    Raises:
        ValidationError: Si el valor no es numérico o no es finito (nan, inf)
    """
    if value is None or value == '':
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"El campo '{label}' debe ser numérico.")
    if not math.isfinite(number):
        raise ValidationError(f"El campo '{label}' debe ser un número finito.")
    return number


def money(value: float) -> float:
    return round(float(value or 0), 2)


def parse_date(value: Any, label: str = 'fecha') -> Optional[date]:
    """
    Interpreta fechas ISO ('2024-03-15', '2024-03-15T10:00:00') o date.

    Raises:
        ValidationError: Si el texto no es una fecha
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.isoparse(str(value)).date()
    except (TypeError, ValueError):
        raise ValidationError(f"El campo '{label}' no es una fecha válida.")
