# ==============================================================================
# REPOSITORIO BASE - Acceso a archivos JSON
# ==============================================================================
# Cada colección vive en su propio archivo JSON dentro de DATA_DIR.
# Escritura atómica (archivo temporal + os.replace) y un lock de proceso
# compartido por todos los repositorios; el DocumentStore usa ese mismo
# lock para confirmar transacciones.
# ==============================================================================

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class BaseRepository(ABC):
    """
    Clase base abstracta para todos los repositorios JSON.

    Al migrar a una base de datos real:
    - Los métodos _read_raw/_write_raw se convierten en consultas
    - El lock se reemplaza por las transacciones del motor
    """

    # Lock global: ninguna escritura se intercala con la confirmación
    # de una transacción
    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        """
        Args:
            file_path: Ruta absoluta al archivo JSON de datos
        """
        self.file_path = file_path
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._ensure_file_exists()

    def _ensure_file_exists(self) -> None:
        """Crea el archivo con datos vacíos si no existe."""
        if not os.path.exists(self.file_path):
            self._write_raw(self._empty_data())

    @abstractmethod
    def _empty_data(self) -> Any:
        """Estructura vacía del repositorio (dict o list)."""

    def _read_raw(self) -> Any:
        """
        Lee los datos crudos del archivo JSON.

        Returns:
            Datos parseados; si el archivo está corrupto o no existe,
            la estructura vacía
        """
        with self._file_lock:
            try:
                with open(self.file_path, 'r', encoding='utf-8') as f:
                    return json.load(f)
            except FileNotFoundError:
                return self._empty_data()
            except json.JSONDecodeError:
                logger.warning("Archivo JSON corrupto, se usa vacío: %s", self.file_path)
                return self._empty_data()

    def _write_raw(self, data: Any) -> None:
        """
        Escribe datos al archivo JSON de forma atómica.

        Raises:
            OSError: Si hay error de escritura (el original queda intacto)
        """
        with self._file_lock:
            temp_path = self.file_path + '.tmp'
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False, default=str)
                os.replace(temp_path, self.file_path)
            except Exception:
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                logger.exception("Error escribiendo %s", self.file_path)
                raise

    @classmethod
    def lock(cls) -> threading.RLock:
        """Lock compartido de persistencia."""
        return cls._file_lock


class DictRepository(BaseRepository):
    """
    Repositorio base para datos almacenados como diccionario.
    La clave del diccionario es el ID del registro.

    Ejemplo: products.json -> {"a1b2...": {...}, "c3d4...": {...}}
    """

    def _empty_data(self) -> Dict:
        return {}

    def get_all(self) -> Dict[str, Any]:
        data = self._read_raw()
        return data if isinstance(data, dict) else {}

    def get_by_id(self, record_id: Any) -> Optional[Dict[str, Any]]:
        return self.get_all().get(str(record_id))

    def save_all(self, data: Dict[str, Any]) -> None:
        self._write_raw(data)

    def update(self, record_id: Any, record_data: Dict[str, Any]) -> None:
        """Reemplaza un registro completo."""
        with self._file_lock:
            data = self.get_all()
            data[str(record_id)] = record_data
            self._write_raw(data)

    def delete(self, record_id: Any) -> Optional[Dict[str, Any]]:
        """
        Elimina un registro.

        Returns:
            Datos del registro eliminado o None si no existía
        """
        with self._file_lock:
            data = self.get_all()
            removed = data.pop(str(record_id), None)
            if removed is not None:
                self._write_raw(data)
            return removed


class ListRepository(BaseRepository):
    """
    Repositorio base para datos almacenados como lista.

    Ejemplo: audit.json -> [{...}, {...}]
    """

    def _empty_data(self) -> List:
        return []

    def get_all(self) -> List[Dict[str, Any]]:
        data = self._read_raw()
        return data if isinstance(data, list) else []

    def save_all(self, data: List[Dict[str, Any]]) -> None:
        self._write_raw(data)

    def append(self, record: Dict[str, Any]) -> None:
        with self._file_lock:
            data = self.get_all()
            data.append(record)
            self._write_raw(data)
