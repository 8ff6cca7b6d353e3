# ==============================================================================
# SISTEMA DE PROFILING INTERNO
# ==============================================================================
# Mide el rendimiento de rutas y funciones sin afectar la respuesta.
# Las mediciones van al logger 'agro_erp.performance' (el archivo rotativo
# lo define logging_config) y se acumulan estadísticas en memoria.
#
# Umbrales (ms): SLOW_REQUEST_MS -> WARNING, CRITICAL_REQUEST_MS -> CRITICAL
# ==============================================================================

import logging
import threading
import time
from collections import defaultdict
from functools import wraps
from typing import Any, Dict

from flask import Flask, g, request, session

logger = logging.getLogger('agro_erp.performance')

# Umbrales por defecto (init_profiling los toma de app.config)
THRESHOLDS = {'warning': 300, 'critical': 700}

# Mapeo de reglas a nombres legibles (para logs más humanos)
ROUTE_NAMES = {
    'POST /api/auth/login': 'Iniciar sesión',
    'POST /api/auth/logout': 'Cerrar sesión',
    'POST /api/sales': 'Registrar venta',
    'POST /api/sales/<sale_id>/cancel': 'Cancelar venta',
    'POST /api/purchases': 'Crear compra',
    'PUT /api/purchases/<purchase_id>': 'Editar compra',
    'POST /api/purchases/<purchase_id>/logistics': 'Solicitar recolección',
    'POST /api/purchases/<purchase_id>/reception': 'Recibir compra',
    'POST /api/<any(clients, suppliers):collection>/<counterparty_id>/payments': 'Registrar abono',
    'GET /api/finance/statements': 'Ver estados financieros',
}

# Estructura: {nombre: {calls, total_time, max_time}}
_route_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_function_stats = defaultdict(lambda: {'calls': 0, 'total_time': 0.0, 'max_time': 0.0})
_stats_lock = threading.Lock()


def _record(table: Dict[str, Dict[str, float]], name: str, elapsed_ms: float) -> None:
    with _stats_lock:
        stats = table[name]
        stats['calls'] += 1
        stats['total_time'] += elapsed_ms
        if elapsed_ms > stats['max_time']:
            stats['max_time'] = elapsed_ms


def _severity(elapsed_ms: float) -> int:
    if elapsed_ms >= THRESHOLDS['critical']:
        return logging.CRITICAL
    if elapsed_ms >= THRESHOLDS['warning']:
        return logging.WARNING
    return logging.DEBUG


def route_name(method: str, rule: str) -> str:
    """Nombre legible de una ruta (o 'MÉTODO regla' si no está mapeada)."""
    key = f"{method} {rule}"
    return ROUTE_NAMES.get(key, key)


# ═══════════════════════════════════════════════════════════════════════════
# HOOKS PARA FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app: Flask) -> None:
    """
    Registra hooks before_request y after_request en la app.

    Uso:
        from agro_erp.performance_logger import init_profiling
        init_profiling(app)
    """
    THRESHOLDS['warning'] = app.config.get('SLOW_REQUEST_MS', THRESHOLDS['warning'])
    THRESHOLDS['critical'] = app.config.get('CRITICAL_REQUEST_MS', THRESHOLDS['critical'])

    @app.before_request
    def _start_timer():
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        if not hasattr(g, 'start_time'):
            return response
        elapsed = (time.perf_counter() - g.start_time) * 1000
        rule = str(request.url_rule) if request.url_rule else request.path
        name = route_name(request.method, rule)
        _record(_route_stats, name, elapsed)

        level = _severity(elapsed)
        if level > logging.DEBUG:
            logger.log(
                level, "Ruta %s: %s (%s %s) %.0f ms, usuario %s",
                'MUY LENTA' if level == logging.CRITICAL else 'LENTA',
                name, request.method, request.path, elapsed, session.get('user') or 'anónimo'
            )
        else:
            logger.debug("%s %s %.0f ms", request.method, request.path, elapsed)
        return response


# ═══════════════════════════════════════════════════════════════════════════
# DECORADOR PARA FUNCIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name: str = None):
    """
    Decorador para medir rendimiento de funciones críticas.

    Uso:
        @profile_function
        def mi_funcion(): ...

        @profile_function(name="Registrar venta")
        def create_sale(): ...
    """
    def decorator(fn):
        func_name = name or fn.__qualname__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                _record(_function_stats, func_name, elapsed_ms)
                level = _severity(elapsed_ms)
                if level > logging.DEBUG:
                    logger.log(level, "Función lenta: %s %.0f ms", func_name, elapsed_ms)
        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


# ═══════════════════════════════════════════════════════════════════════════
# REPORTE DE ESTADÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def _summarize(table: Dict[str, Dict[str, float]]) -> Dict[str, Dict[str, Any]]:
    with _stats_lock:
        result = {}
        for item_name, stats in table.items():
            calls = stats['calls']
            result[item_name] = {
                'calls': calls,
                'avg_time': round(stats['total_time'] / calls, 2) if calls else 0.0,
                'max_time': round(stats['max_time'], 2),
            }
        return result


def get_route_stats() -> Dict[str, Dict[str, Any]]:
    """{ruta: {calls, avg_time, max_time}} en ms."""
    return _summarize(_route_stats)


def get_function_stats() -> Dict[str, Dict[str, Any]]:
    return _summarize(_function_stats)


def reset_stats() -> None:
    """Reinicia todas las estadísticas (útil para testing)."""
    with _stats_lock:
        _route_stats.clear()
        _function_stats.clear()


__all__ = [
    'init_profiling',
    'profile_function',
    'route_name',
    'get_route_stats',
    'get_function_stats',
    'reset_stats',
]
