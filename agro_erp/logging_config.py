# ==============================================================================
# CONFIGURACIÓN DE LOGGING
# ==============================================================================
# Consola + archivo rotativo en LOG_DIR/agro_erp.log
# Cada módulo usa logging.getLogger(__name__).
# ==============================================================================

import logging
import logging.config
import os
from typing import Any, Dict


def build_logging_config(
    level: str = 'INFO',
    log_dir: str = None,
    to_file: bool = True
) -> Dict[str, Any]:
    """
    Construye el diccionario para logging.config.dictConfig.

    Args:
        level: Nivel mínimo para los loggers de la aplicación
        log_dir: Carpeta de logs (se crea si no existe)
        to_file: Si False, solo se registra en consola

    Returns:
        Diccionario de configuración
    """
    handlers: Dict[str, Any] = {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
            'level': level,
        },
    }

    if to_file and log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers['file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'detailed',
            'filename': os.path.join(log_dir, 'agro_erp.log'),
            'maxBytes': 5 * 1024 * 1024,
            'backupCount': 5,
            'encoding': 'utf-8',
            'level': level,
        }

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S',
            },
            'detailed': {
                'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(funcName)s(): %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S',
            },
        },
        'handlers': handlers,
        'loggers': {
            'agro_erp': {
                'handlers': list(handlers.keys()),
                'level': level,
                'propagate': False,
            },
            'werkzeug': {
                'handlers': ['console'],
                'level': 'WARNING',
                'propagate': False,
            },
        },
    }


def setup_logging(level: str = 'INFO', log_dir: str = None, to_file: bool = True) -> None:
    """Aplica la configuración de logging del proceso."""
    logging.config.dictConfig(build_logging_config(level, log_dir, to_file))
    logging.getLogger(__name__).debug(
        "Logging configurado (nivel=%s, archivo=%s)", level, bool(to_file and log_dir)
    )
