# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la persistencia (archivos JSON).
#
# ESTRUCTURA:
# ├── base.py                  → Clases base (DictRepository, ListRepository)
# ├── collection_repository.py → Una colección de documentos por archivo
# ├── document_store.py        → Colecciones + transacciones optimistas
# ├── user_repository.py       → Acceso a users.json
# └── audit_repository.py      → Acceso a audit.json
# ==============================================================================

from .base import BaseRepository, DictRepository, ListRepository
from .collection_repository import CollectionRepository
from .document_store import DocumentStore, Transaction
from .user_repository import UserRepository
from .audit_repository import AuditRepository

__all__ = [
    'BaseRepository',
    'DictRepository',
    'ListRepository',
    'CollectionRepository',
    'DocumentStore',
    'Transaction',
    'UserRepository',
    'AuditRepository',
]
