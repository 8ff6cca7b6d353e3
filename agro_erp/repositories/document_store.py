# ==============================================================================
# ALMACÉN DE DOCUMENTOS CON TRANSACCIONES OPTIMISTAS
# ==============================================================================
# Cada documento tiene una versión en memoria que sube con cada escritura.
# Una transacción registra la versión de todo lo que lee y acumula sus
# escrituras; al confirmar, bajo el lock de persistencia:
#   1. Si alguna versión leída cambió -> conflicto, se re-ejecuta la función
#   2. Si no, se aplican TODAS las escrituras (todas las colecciones o ninguna)
#
# Uso:
#   def mover_credito(tx):
#       client = tx.get('clients', client_id)
#       tx.update('clients', client_id, {'credit_used': client['credit_used'] + 10})
#   store.run_transaction(mover_credito)
#
# Las versiones viven en memoria: el almacén asume un solo proceso escritor.
# ==============================================================================

import logging
import os
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from agro_erp.errors import NotFoundError, TransactionConflictError
from agro_erp.repositories.base import BaseRepository
from agro_erp.repositories.collection_repository import (
    CollectionRepository,
    matches,
    new_document_id,
    strip_id,
    with_id,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

DocKey = Tuple[str, str]

# Tipos de operación acumulados por la transacción
OP_SET = 'set'
OP_MERGE = 'merge'
OP_UPDATE = 'update'
OP_DELETE = 'delete'


class Transaction:
    """
    Contexto de una ejecución de run_transaction.

    Las lecturas ven las escrituras previas de la misma transacción.
    Nada se persiste hasta que el almacén confirma.
    """

    def __init__(self, store: 'DocumentStore'):
        self._store = store
        self.reads: Dict[DocKey, int] = {}
        self.operations: List[Tuple[str, str, str, Optional[Dict[str, Any]]]] = []
        # Vista local de documentos escritos (None = eliminado)
        self._pending: Dict[DocKey, Optional[Dict[str, Any]]] = {}

    # =========================================================================
    # LECTURA
    # =========================================================================

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Lee un documento registrando su versión."""
        if not doc_id:
            return None
        key = (collection, str(doc_id))
        if key in self._pending:
            doc = self._pending[key]
            return with_id(key[1], doc) if doc is not None else None

        raw, version = self._store.read_versioned(collection, key[1])
        self.reads.setdefault(key, version)
        return with_id(key[1], raw) if raw is not None else None

    def where(self, collection: str, **filters: Any) -> List[Dict[str, Any]]:
        """Consulta por igualdad registrando la versión de cada resultado."""
        results: Dict[str, Dict[str, Any]] = {}
        for doc_id, raw, version in self._store.query_versioned(collection, filters):
            key = (collection, doc_id)
            if key in self._pending:
                continue
            self.reads.setdefault(key, version)
            results[doc_id] = with_id(doc_id, raw)

        for (col, doc_id), doc in self._pending.items():
            if col == collection and doc is not None and matches(doc, filters):
                results[doc_id] = with_id(doc_id, doc)
        return list(results.values())

    def _current(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        key = (collection, doc_id)
        if key in self._pending:
            return self._pending[key]
        raw, _version = self._store.read_versioned(collection, doc_id)
        return raw

    # =========================================================================
    # ESCRITURA (en buffer)
    # =========================================================================

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        doc_id = str(doc_id)
        payload = strip_id(data)
        if merge:
            base = dict(self._current(collection, doc_id) or {})
            base.update(payload)
            self._pending[(collection, doc_id)] = base
            self.operations.append((OP_MERGE, collection, doc_id, payload))
        else:
            self._pending[(collection, doc_id)] = payload
            self.operations.append((OP_SET, collection, doc_id, payload))

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Crea un documento con ID nuevo y devuelve el ID."""
        doc_id = new_document_id()
        self.set(collection, doc_id, data)
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """
        Actualiza campos de un documento existente.

        Raises:
            NotFoundError: Si el documento no existe
        """
        doc_id = str(doc_id)
        base = self._current(collection, doc_id)
        if base is None:
            raise NotFoundError(collection, doc_id)
        payload = strip_id(fields)
        merged = dict(base)
        merged.update(payload)
        self._pending[(collection, doc_id)] = merged
        self.operations.append((OP_UPDATE, collection, doc_id, payload))

    def delete(self, collection: str, doc_id: str) -> None:
        doc_id = str(doc_id)
        self._pending[(collection, doc_id)] = None
        self.operations.append((OP_DELETE, collection, doc_id, None))


class DocumentStore:
    """
    Almacén de colecciones JSON con control de versiones por documento.

    Uso:
        store = DocumentStore('/srv/agro/data', max_attempts=5)
        products = store.collection('products')
        result = store.run_transaction(lambda tx: ...)
    """

    def __init__(self, data_dir: str, max_attempts: int = 5):
        """
        Args:
            data_dir: Carpeta donde viven los archivos de colección
            max_attempts: Intentos de una transacción antes de abortar
        """
        self.data_dir = data_dir
        self.max_attempts = max(1, int(max_attempts))
        os.makedirs(data_dir, exist_ok=True)
        self._lock = BaseRepository.lock()
        self._collections: Dict[str, CollectionRepository] = {}
        self._versions: Dict[DocKey, int] = {}

    # =========================================================================
    # COLECCIONES Y VERSIONES
    # =========================================================================

    def collection(self, name: str) -> CollectionRepository:
        """Repositorio de una colección (creado bajo demanda)."""
        with self._lock:
            repo = self._collections.get(name)
            if repo is None:
                repo = CollectionRepository(self.data_dir, name, on_write=self._bump)
                self._collections[name] = repo
            return repo

    def _bump(self, collection: str, doc_ids: List[str]) -> None:
        with self._lock:
            for doc_id in doc_ids:
                key = (collection, str(doc_id))
                self._versions[key] = self._versions.get(key, 0) + 1

    def version(self, collection: str, doc_id: str) -> int:
        return self._versions.get((collection, str(doc_id)), 0)

    def read_versioned(self, collection: str, doc_id: str) -> Tuple[Optional[Dict[str, Any]], int]:
        """Documento crudo y su versión, leídos de forma consistente."""
        repo = self.collection(collection)
        with self._lock:
            return repo.get_by_id(doc_id), self.version(collection, doc_id)

    def query_versioned(
        self,
        collection: str,
        filters: Dict[str, Any]
    ) -> List[Tuple[str, Dict[str, Any], int]]:
        repo = self.collection(collection)
        with self._lock:
            return [
                (doc_id, doc, self.version(collection, doc_id))
                for doc_id, doc in repo.get_all().items()
                if matches(doc, filters)
            ]

    # =========================================================================
    # TRANSACCIONES
    # =========================================================================

    def run_transaction(self, fn: Callable[[Transaction], T], max_attempts: int = None) -> T:
        """
        Ejecuta fn(tx) con reintentos optimistas.

        Args:
            fn: Función de negocio; puede ejecutarse más de una vez
            max_attempts: Sobrescribe el límite del almacén

        Returns:
            Lo que devuelva fn en el intento confirmado

        Raises:
            TransactionConflictError: Si todos los intentos chocaron
            Cualquier excepción de fn (la transacción se aborta sin escrituras)
        """
        attempts = max_attempts or self.max_attempts
        for attempt in range(1, attempts + 1):
            tx = Transaction(self)
            result = fn(tx)
            if self._commit(tx):
                if attempt > 1:
                    logger.info("Transacción confirmada en el intento %d", attempt)
                return result
            logger.warning("Conflicto de transacción (intento %d/%d)", attempt, attempts)

        raise TransactionConflictError(
            f"La operación no pudo completarse tras {attempts} intentos por escrituras concurrentes."
        )

    def _commit(self, tx: Transaction) -> bool:
        """
        Valida versiones leídas y aplica las escrituras.

        Returns:
            False si hubo conflicto (no se escribió nada)
        """
        with self._lock:
            for (collection, doc_id), version in tx.reads.items():
                if self.version(collection, doc_id) != version:
                    return False

            if not tx.operations:
                return True

            staged: Dict[str, Dict[str, Any]] = {}
            for kind, collection, doc_id, payload in tx.operations:
                if collection not in staged:
                    staged[collection] = self.collection(collection).get_all()
                docs = staged[collection]
                if kind == OP_SET:
                    docs[doc_id] = dict(payload)
                elif kind == OP_MERGE:
                    docs.setdefault(doc_id, {}).update(payload)
                elif kind == OP_UPDATE:
                    if doc_id not in docs:
                        raise NotFoundError(collection, doc_id)
                    docs[doc_id].update(payload)
                elif kind == OP_DELETE:
                    docs.pop(doc_id, None)

            self._write_all(staged)

            for _kind, collection, doc_id, _payload in tx.operations:
                key = (collection, doc_id)
                self._versions[key] = self._versions.get(key, 0) + 1
            return True

    def _write_all(self, staged: Dict[str, Dict[str, Any]]) -> None:
        """Escribe cada colección; si una falla, restaura las ya escritas."""
        written: Dict[str, Dict[str, Any]] = {}
        try:
            for collection, docs in staged.items():
                repo = self.collection(collection)
                original = repo.get_all()
                repo.save_all(docs)
                written[collection] = original
        except Exception:
            logger.error("Fallo al confirmar transacción; restaurando %d colecciones", len(written))
            for collection, original in written.items():
                self.collection(collection).save_all(original)
            raise
