# ==============================================================================
# SERVICIO RPA
# ==============================================================================
# Registro de bots de automatización. Solo se guarda su configuración y
# estatus; la ejecución ocurre fuera del sistema.
# ==============================================================================

import logging
from typing import Any, Dict, List

from agro_erp.errors import InvalidTransitionError, NotFoundError
from agro_erp.models.entities import BotStatus, RpaBot
from agro_erp.repositories.document_store import DocumentStore
from agro_erp.services.common import RPA_BOTS, service_call
from agro_erp.utils import now_iso

logger = logging.getLogger(__name__)

NEVER_RUN = 'N/A'


class RpaService:

    def __init__(self, store: DocumentStore):
        self.bots = store.collection(RPA_BOTS)

    def list_bots(self) -> List[Dict[str, Any]]:
        return sorted(self.bots.list(), key=lambda b: b.get('name', '').lower())

    def status_counts(self) -> Dict[str, int]:
        counts = {'active': 0, 'inactive': 0, 'error': 0}
        keys = {BotStatus.ACTIVO.value: 'active', BotStatus.INACTIVO.value: 'inactive',
                BotStatus.ERROR.value: 'error'}
        for bot in self.bots.list():
            key = keys.get(bot.get('status'))
            if key:
                counts[key] += 1
        return counts

    @service_call('Alta de bot')
    def create_bot(self, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        """Registra un bot; siempre inicia Inactivo y sin ejecuciones."""
        bot = RpaBot.from_dict(values)
        doc = {
            'name': bot.name,
            'description': bot.description,
            'trigger': bot.trigger,
            'frequency': bot.frequency,
            'status': BotStatus.INACTIVO.value,
            'last_run': NEVER_RUN,
            'next_run': bot.next_run,
            'created_at': now_iso(),
        }
        bot_id = self.bots.add(doc)
        logger.info("Bot RPA registrado: %s (%s)", bot.name, bot.trigger)
        return {'ok': True, 'id': bot_id, 'bot': self.bots.get(bot_id)}

    @service_call('Edición de bot')
    def update_bot(self, bot_id: str, values: Dict[str, Any], user: str = None) -> Dict[str, Any]:
        current = self.bots.get(bot_id)
        if not current:
            raise NotFoundError('Bot', bot_id)
        merged = dict(current)
        merged.update(values)
        bot = RpaBot.from_dict(merged)
        self.bots.update_fields(bot_id, {
            'name': bot.name,
            'description': bot.description,
            'trigger': bot.trigger,
            'frequency': bot.frequency,
            'next_run': bot.next_run,
        })
        return {'ok': True, 'id': bot_id, 'bot': self.bots.get(bot_id)}

    @service_call('Baja de bot')
    def delete_bot(self, bot_id: str, user: str = None) -> Dict[str, Any]:
        if self.bots.remove(bot_id) is None:
            raise NotFoundError('Bot', bot_id)
        return {'ok': True, 'id': bot_id}

    @service_call('Cambio de estatus de bot')
    def toggle(self, bot_id: str, user: str = None) -> Dict[str, Any]:
        """Activo <-> Inactivo. Un bot en Error no se puede alternar."""
        bot = self.bots.get(bot_id)
        if not bot:
            raise NotFoundError('Bot', bot_id)
        if bot.get('status') == BotStatus.ERROR.value:
            raise InvalidTransitionError(f"El bot {bot.get('name')} está en Error; revísalo antes de activarlo.")
        new_status = (BotStatus.INACTIVO.value if bot.get('status') == BotStatus.ACTIVO.value
                      else BotStatus.ACTIVO.value)
        self.bots.update_fields(bot_id, {'status': new_status})
        return {'ok': True, 'id': bot_id, 'status': new_status}
