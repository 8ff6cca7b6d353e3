# ==============================================================================
# SERVICIO DE USUARIOS
# ==============================================================================
# Autenticación por e-mail y contraseña con hashes werkzeug.
# Toda la lógica de roles y validaciones está aquí, NO en rutas.
# ==============================================================================

import logging
import re
from typing import Any, Dict, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from agro_erp.errors import AuthError, NotFoundError, ValidationError
from agro_erp.models.entities import User, UserRole
from agro_erp.repositories.user_repository import UserRepository
from agro_erp.services.audit_service import AuditService
from agro_erp.services.common import service_call

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
_EMAIL = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class UserService:
    """
    Servicio para gestión de usuarios.

    Responsabilidades:
    - Autenticación (login/logout)
    - Alta de usuarios y cambio de contraseña
    - Usuario administrador inicial
    """

    VALID_ROLES = frozenset(r.value for r in UserRole)

    def __init__(self, user_repo: UserRepository, audit_service: AuditService = None):
        self.user_repo = user_repo
        self.audit_service = audit_service

    @staticmethod
    def normalize_role(role: str) -> str:
        role = (role or '').strip().lower()
        return role if role in UserService.VALID_ROLES else UserRole.OPERADOR.value

    @staticmethod
    def _check_password(password: str) -> None:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres."
            )

    # =========================================================================
    # AUTENTICACIÓN
    # =========================================================================

    def authenticate(self, email: str, password: str) -> Dict[str, Any]:
        """
        Autentica un usuario.

        Returns:
            {'ok': True, 'email', 'role', 'name'} o error NO_AUTORIZADO
        """
        data = self.user_repo.get_user(email)
        if not data or not password:
            return AuthError("Correo o contraseña incorrectos.").to_result()
        user = User.from_dict(email.strip().lower(), data)
        if not check_password_hash(user.password_hash, password):
            logger.info("Intento de acceso fallido para %s", user.email)
            return AuthError("Correo o contraseña incorrectos.").to_result()

        if self.audit_service:
            self.audit_service.log_user_login(user.email)
        return {'ok': True, 'email': user.email, 'role': user.role.value, 'name': user.name}

    def logout(self, email: str) -> None:
        if self.audit_service:
            self.audit_service.log_user_logout(email)

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_user(self, email: str) -> Optional[Dict[str, Any]]:
        """Datos del usuario sin contraseña."""
        data = self.user_repo.get_user(email)
        if not data:
            return None
        user = User.from_dict(email.strip().lower(), data)
        return {'email': user.email, 'role': user.role.value, 'name': user.name}

    def list_users(self) -> List[Dict[str, Any]]:
        return [self.get_user(email) for email in self.user_repo.get_all_emails()]

    # =========================================================================
    # ESCRITURA
    # =========================================================================

    @service_call('Alta de usuario')
    def create_user(
        self,
        email: str,
        password: str,
        role: str = UserRole.OPERADOR.value,
        name: str = '',
        admin_user: str = None
    ) -> Dict[str, Any]:
        email = (email or '').strip().lower()
        if not _EMAIL.match(email):
            raise ValidationError("Correo electrónico inválido.")
        self._check_password(password)
        role = self.normalize_role(role)

        if not self.user_repo.create_user(email, generate_password_hash(password), role, name or ''):
            raise ValidationError("El usuario ya existe.")
        if self.audit_service:
            self.audit_service.log(
                AuditService.TYPE_SISTEMA, admin_user or 'sistema',
                f"Usuario creado: {email} ({role})"
            )
        return {'ok': True, 'email': email, 'role': role}

    @service_call('Cambio de contraseña')
    def change_password(
        self,
        email: str,
        new_password: str,
        current_password: str = None,
        admin_user: str = None
    ) -> Dict[str, Any]:
        """
        Cambia la contraseña. Si se da current_password debe coincidir
        (cambio hecho por el propio usuario).
        """
        data = self.user_repo.get_user(email)
        if not data:
            raise NotFoundError('Usuario', email)
        if current_password is not None and not check_password_hash(data.get('password', ''), current_password):
            raise AuthError("La contraseña actual es incorrecta.")
        self._check_password(new_password)

        self.user_repo.update_password(email, generate_password_hash(new_password))
        if self.audit_service:
            self.audit_service.log(
                AuditService.TYPE_SISTEMA, admin_user or email,
                f"Contraseña actualizada para {email.strip().lower()}"
            )
        return {'ok': True}

    def seed_admin(self, email: str, password: str) -> bool:
        """
        Crea el administrador inicial si no hay usuarios.

        Returns:
            True si se creó
        """
        if self.user_repo.count() > 0:
            return False
        if not email or not password:
            logger.warning("No hay usuarios y no se configuró el administrador inicial")
            return False
        result = self.create_user(email, password, UserRole.ADMIN.value, 'Administrador')
        if result['ok']:
            logger.info("Administrador inicial creado: %s", result['email'])
            return True
        logger.error("No se pudo crear el administrador inicial: %s", result['error'])
        return False
