# ==============================================================================
# REPOSITORIO DE AUDITORÍA
# ==============================================================================
# Encapsula todo el acceso a audit.json
# La auditoría se almacena como lista: [{log1}, {log2}, ...] (más reciente primero)
# ==============================================================================

import os
from datetime import datetime
from typing import Any, Dict, List

from agro_erp.repositories.base import ListRepository


class AuditRepository(ListRepository):
    """
    Repositorio para el log de auditoría.

    Formato de datos en audit.json:
    [
        {
            "type": "VENTA",
            "user": "admin@agro.local",
            "message": "Venta a Juan Pérez por $1,160.00 (Efectivo)",
            "timestamp": "2024-01-01 10:00:00",
            "related_id": "a1b2c3...",
            "details": {...}
        }
    ]
    """

    # Límite de registros para evitar archivos muy grandes
    MAX_LOGS = 10000

    def __init__(self, data_dir: str):
        super().__init__(os.path.join(data_dir, 'audit.json'))

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """
        Registra un nuevo evento de auditoría.

        Args:
            log_type: Tipo de evento (COMPRA, VENTA, CREDITO, ...)
            user: Usuario que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID del documento relacionado
            details: Detalles adicionales
        """
        entry = {
            'type': log_type,
            'user': user or 'sistema',
            'message': message,
            'timestamp': datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            'related_id': related_id or '',
            'details': details or {},
        }
        with self._file_lock:
            logs = self.get_all()
            logs.insert(0, entry)
            self.save_all(logs[:self.MAX_LOGS])

    def get_recent_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self.get_all()[:limit]

    def search_logs(
        self,
        query: str = '',
        log_type: str = None,
        user: str = None
    ) -> List[Dict[str, Any]]:
        """Búsqueda por texto, tipo y usuario."""
        query = (query or '').lower()
        results = []
        for entry in self.get_all():
            if log_type and entry.get('type') != log_type:
                continue
            if user and entry.get('user') != user:
                continue
            if query and query not in entry.get('message', '').lower() \
                    and query not in str(entry.get('related_id', '')).lower():
                continue
            results.append(entry)
        return results
