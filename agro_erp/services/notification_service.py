# ==============================================================================
# SERVICIO DE NOTIFICACIONES
# ==============================================================================
# Notificaciones por usuario en la subcolección users/<uid>/notifications.
# notify() es "dispara y olvida": un fallo de almacenamiento se registra en
# el log y nunca interrumpe la operación que lo originó.
# ==============================================================================

import logging
from typing import Any, Dict, List, Optional

from agro_erp.repositories.document_store import DocumentStore
from agro_erp.services.common import notifications_collection
from agro_erp.utils import now_iso

logger = logging.getLogger(__name__)

# Íconos que la interfaz sabe dibujar
ICONS = frozenset(['ShoppingCart', 'Users', 'TrendingUp', 'Truck', 'Package'])
DEFAULT_ICON = 'Package'


class NotificationService:
    """Creación y lectura de notificaciones de usuario."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def notify(
        self,
        user_id: str,
        title: str,
        description: str,
        link: str = '',
        icon: str = DEFAULT_ICON,
        notification_id: str = None
    ) -> Optional[str]:
        """
        Crea (o sobrescribe, si se da notification_id) una notificación.

        Args:
            user_id: Destinatario
            title: Título corto
            description: Texto de la notificación
            link: Ruta de la interfaz a abrir
            icon: Nombre del ícono
            notification_id: ID fijo para evitar duplicados (ej: 'welcome')

        Returns:
            ID de la notificación o None si no se pudo guardar
        """
        if not user_id:
            logger.error("No se indicó usuario para la notificación '%s'", title)
            return None

        payload = {
            'title': title,
            'description': description,
            'link': link or '',
            'icon_name': icon if icon in ICONS else DEFAULT_ICON,
            'created_at': now_iso(),
            'is_read': False,
        }
        try:
            repo = self.store.collection(notifications_collection(user_id))
            if notification_id:
                repo.set(notification_id, payload, merge=True)
                return notification_id
            return repo.add(payload)
        except (OSError, TypeError, ValueError):
            logger.exception("Error creando notificación para %s", user_id)
            return None

    def list_for(self, user_id: str, unread_only: bool = False) -> List[Dict[str, Any]]:
        """Notificaciones de un usuario, más recientes primero."""
        repo = self.store.collection(notifications_collection(user_id))
        items = repo.where(is_read=False) if unread_only else repo.list()
        return sorted(items, key=lambda n: n.get('created_at', ''), reverse=True)

    def unread_count(self, user_id: str) -> int:
        return len(self.list_for(user_id, unread_only=True))

    def mark_read(self, user_id: str, notification_id: str) -> bool:
        repo = self.store.collection(notifications_collection(user_id))
        return repo.update_fields(notification_id, {'is_read': True})

    def mark_all_read(self, user_id: str) -> int:
        """
        Marca todas como leídas.

        Returns:
            Número de notificaciones actualizadas
        """
        repo = self.store.collection(notifications_collection(user_id))
        unread = repo.where(is_read=False)
        for notification in unread:
            repo.update_fields(notification['id'], {'is_read': True})
        return len(unread)
