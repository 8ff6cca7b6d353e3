# ==============================================================================
# CONFIGURACIÓN DE LA APLICACIÓN
# ==============================================================================
# Todos los valores se leen de variables de entorno con prefijo AGRO_.
# Ejemplo:
#   export AGRO_SECRET_KEY="clave_larga_y_aleatoria"
#   export AGRO_DATA_DIR="/srv/agro/data"
# ==============================================================================

import os
from typing import Any, Dict


def _env_bool(name: str, default: bool) -> bool:
    """Lee una variable de entorno booleana ('1', 'true', 'si')."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'si', 'sí', 'on')


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


_BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Clave de desarrollo: en producción DEBE definirse AGRO_SECRET_KEY
DEFAULT_SECRET = 'agro_erp_dev_secret_key_change_in_production'


class Config:
    """
    Configuración base.

    Se instancia en create_app(); las subclases solo sobrescriben atributos.
    """

    SECRET_KEY = os.environ.get('AGRO_SECRET_KEY')
    PRODUCTION_MODE = _env_bool('AGRO_PRODUCTION_MODE', False)
    TESTING = False

    # Persistencia (un archivo JSON por colección)
    DATA_DIR = os.environ.get('AGRO_DATA_DIR', os.path.join(_BASE_DIR, 'data'))

    # Transacciones optimistas: intentos antes de abortar por conflicto
    TX_MAX_ATTEMPTS = _env_int('AGRO_TX_MAX_ATTEMPTS', 5)

    # Logging
    LOG_LEVEL = os.environ.get('AGRO_LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('AGRO_LOG_DIR', os.path.join(_BASE_DIR, 'logs'))
    LOG_TO_FILE = _env_bool('AGRO_LOG_TO_FILE', True)

    # Umbrales de rendimiento (ms)
    SLOW_REQUEST_MS = _env_int('AGRO_SLOW_REQUEST_MS', 300)
    CRITICAL_REQUEST_MS = _env_int('AGRO_CRITICAL_REQUEST_MS', 700)

    # Backups
    BACKUP_ON_STARTUP = _env_bool('AGRO_BACKUP_ON_STARTUP', True)
    MAX_BACKUPS = _env_int('AGRO_MAX_BACKUPS', 7)

    # Usuario administrador inicial (solo si no existe ningún usuario)
    ADMIN_EMAIL = os.environ.get('AGRO_ADMIN_EMAIL', 'admin@agro.local')
    ADMIN_PASSWORD = os.environ.get('AGRO_ADMIN_PASSWORD', 'cambiar123')

    # Teléfono de logística para avisos por WhatsApp
    LOGISTICS_PHONE = os.environ.get('AGRO_LOGISTICS_PHONE', '')

    # Sesiones
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = False
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 86400  # 24 horas

    def to_flask(self) -> Dict[str, Any]:
        """Exporta los atributos en mayúsculas para app.config."""
        return {
            key: getattr(self, key)
            for key in dir(self)
            if key.isupper()
        }


class TestingConfig(Config):
    """Configuración para pytest: sin backups ni archivos de log."""

    TESTING = True
    SECRET_KEY = 'testing-secret'
    BACKUP_ON_STARTUP = False
    LOG_TO_FILE = False
    LOG_LEVEL = 'DEBUG'
    ADMIN_EMAIL = 'admin@agro.test'
    ADMIN_PASSWORD = 'admin123'

    def __init__(self, data_dir: str = None):
        if data_dir:
            self.DATA_DIR = data_dir
            self.LOG_DIR = os.path.join(data_dir, 'logs')
