# ==============================================================================
# REPOSITORIO DE USUARIOS
# ==============================================================================
# Encapsula todo el acceso a users.json
# Los usuarios se almacenan como diccionario: {email: {password, role, name}}
# ==============================================================================

import os
from typing import Any, Dict, List, Optional

from agro_erp.repositories.base import DictRepository


class UserRepository(DictRepository):
    """
    Repositorio para gestión de usuarios.

    Formato de datos en users.json:
    {
        "admin@agro.local": {"password": "hashed_pwd", "role": "admin", "name": "Admin"}
    }
    """

    def __init__(self, data_dir: str):
        """
        Args:
            data_dir: Carpeta de datos
        """
        super().__init__(os.path.join(data_dir, 'users.json'))

    @staticmethod
    def _key(email: str) -> str:
        return (email or '').strip().lower()

    def get_user(self, email: str) -> Optional[Dict[str, Any]]:
        return self.get_all().get(self._key(email))

    def create_user(self, email: str, password_hash: str, role: str = 'operador', name: str = '') -> bool:
        """
        Crea un nuevo usuario.

        Returns:
            True si se creó, False si ya existía
        """
        with self._file_lock:
            users = self.get_all()
            key = self._key(email)
            if key in users:
                return False
            users[key] = {'password': password_hash, 'role': role, 'name': name}
            self.save_all(users)
            return True

    def update_password(self, email: str, password_hash: str) -> bool:
        with self._file_lock:
            users = self.get_all()
            key = self._key(email)
            if key not in users:
                return False
            users[key]['password'] = password_hash
            self.save_all(users)
            return True

    def count(self) -> int:
        return len(self.get_all())

    def get_all_emails(self) -> List[str]:
        return sorted(self.get_all().keys())
