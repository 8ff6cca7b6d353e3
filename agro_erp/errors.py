# ==============================================================================
# ERRORES DE NEGOCIO
# ==============================================================================
# Jerarquía única de excepciones. Dentro de una transacción se lanzan y
# abortan todo; en la frontera del servicio se convierten a dict
# {'ok': False, 'error': ..., 'code': ...} y las rutas usan http_status.
# ==============================================================================

from typing import Any, Dict, Optional


class ErpError(Exception):
    """Error base del sistema."""

    code = 'ERROR'
    http_status = 400

    def __init__(self, message: str, code: str = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}

    def to_result(self) -> Dict[str, Any]:
        """Resultado estándar de servicio para este error."""
        result = {'ok': False, 'error': self.message, 'code': self.code}
        if self.details:
            result['details'] = self.details
        return result


class ValidationError(ErpError):
    """Datos de entrada inválidos."""
    code = 'VALIDACION'
    http_status = 400


class NotFoundError(ErpError):
    """Documento inexistente."""
    code = 'NO_ENCONTRADO'
    http_status = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} '{identifier}' no encontrado",
            details={'resource': resource, 'id': identifier}
        )


class InsufficientCreditError(ErpError):
    """El monto excede el crédito disponible de la contraparte."""
    code = 'CREDITO_INSUFICIENTE'
    http_status = 409


class InsufficientStockError(ErpError):
    """No hay lotes suficientes para surtir una partida."""
    code = 'STOCK_INSUFICIENTE'
    http_status = 409


class InvalidTransitionError(ErpError):
    """Cambio de estado no permitido."""
    code = 'TRANSICION_INVALIDA'
    http_status = 409


class TransactionConflictError(ErpError):
    """Se agotaron los reintentos de una transacción optimista."""
    code = 'CONFLICTO_TRANSACCION'
    http_status = 409


class AuthError(ErpError):
    """Credenciales inválidas o sesión ausente."""
    code = 'NO_AUTORIZADO'
    http_status = 401


# Código para fallos inesperados de escritura
WRITE_ERROR_CODE = 'ERROR_ESCRITURA'


def write_failure(message: str = 'No se pudo guardar la información.') -> Dict[str, Any]:
    """Resultado estándar para un fallo genérico de escritura."""
    return {'ok': False, 'error': message, 'code': WRITE_ERROR_CODE}
