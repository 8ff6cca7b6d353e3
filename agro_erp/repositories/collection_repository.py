# ==============================================================================
# REPOSITORIO DE COLECCIÓN DE DOCUMENTOS
# ==============================================================================
# Una colección = un archivo JSON {doc_id: documento}.
# Los documentos se guardan SIN el campo 'id'; las lecturas devuelven copias
# con 'id' incluido para que el llamador no modifique el almacenamiento.
# ==============================================================================

import copy
import os
import re
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional

from agro_erp.repositories.base import DictRepository

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9@._-]')


def new_document_id() -> str:
    """ID aleatorio de 20 caracteres para documentos nuevos."""
    return uuid.uuid4().hex[:20]


def collection_file_name(collection: str) -> str:
    """
    Nombre de archivo para una colección.
    Las subcolecciones 'users/<uid>/notifications' se aplanan con '__'.
    """
    parts = [_UNSAFE_CHARS.sub('_', part) for part in collection.strip('/').split('/')]
    return '__'.join(parts) + '.json'


def matches(document: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    """True si el documento cumple todos los filtros de igualdad."""
    for field, value in filters.items():
        if document.get(field) != value:
            return False
    return True


def with_id(doc_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(document)
    result['id'] = doc_id
    return result


def strip_id(document: Dict[str, Any]) -> Dict[str, Any]:
    data = copy.deepcopy(document)
    data.pop('id', None)
    return data


class CollectionRepository(DictRepository):
    """
    Repositorio para una colección del almacén de documentos.

    Cada escritura notifica al DocumentStore (on_write) para que incremente
    la versión del documento; así una transacción que leyó ese documento
    detecta el conflicto y se reintenta.
    """

    def __init__(
        self,
        data_dir: str,
        name: str,
        on_write: Callable[[str, Iterable[str]], None] = None
    ):
        """
        Args:
            data_dir: Carpeta de datos
            name: Nombre de la colección (ej: 'products')
            on_write: Callback (colección, ids) tras cada escritura
        """
        self.name = name
        self._on_write = on_write
        super().__init__(os.path.join(data_dir, collection_file_name(name)))

    def _touched(self, doc_ids: Iterable[str]) -> None:
        if self._on_write:
            self._on_write(self.name, list(doc_ids))

    # =========================================================================
    # LECTURA
    # =========================================================================

    def get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """Documento con 'id' o None."""
        if not doc_id:
            return None
        raw = self.get_by_id(doc_id)
        return with_id(str(doc_id), raw) if raw is not None else None

    def exists(self, doc_id: str) -> bool:
        return bool(doc_id) and str(doc_id) in self.get_all()

    def list(self) -> List[Dict[str, Any]]:
        return [with_id(doc_id, doc) for doc_id, doc in self.get_all().items()]

    def where(self, **filters: Any) -> List[Dict[str, Any]]:
        """
        Consulta por igualdad de campos.

        Ejemplo:
            repo.where(sku='P-001', branch_id='matriz')
        """
        return [
            with_id(doc_id, doc)
            for doc_id, doc in self.get_all().items()
            if matches(doc, filters)
        ]

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    def add(self, document: Dict[str, Any]) -> str:
        """
        Crea un documento con ID generado.

        Returns:
            ID asignado
        """
        doc_id = new_document_id()
        self.set(doc_id, document)
        return doc_id

    def set(self, doc_id: str, document: Dict[str, Any], merge: bool = False) -> None:
        """Crea o reemplaza un documento (merge=True mezcla campos)."""
        with self._file_lock:
            data = self.get_all()
            payload = strip_id(document)
            if merge and str(doc_id) in data:
                data[str(doc_id)].update(payload)
            else:
                data[str(doc_id)] = payload
            self._write_raw(data)
            self._touched([str(doc_id)])

    def update_fields(self, doc_id: str, fields: Dict[str, Any]) -> bool:
        """
        Actualiza campos de un documento existente.

        Returns:
            False si el documento no existe
        """
        with self._file_lock:
            data = self.get_all()
            if str(doc_id) not in data:
                return False
            data[str(doc_id)].update(strip_id(fields))
            self._write_raw(data)
            self._touched([str(doc_id)])
            return True

    def remove(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """Elimina un documento y devuelve su contenido previo."""
        with self._file_lock:
            removed = self.delete(doc_id)
            if removed is not None:
                self._touched([str(doc_id)])
            return with_id(str(doc_id), removed) if removed is not None else None
