# ==============================================================================
# SERVICIO DE BACKUPS AUTOMÁTICOS
# ==============================================================================
# Crea backups diarios de los archivos de datos en formato ZIP y mantiene
# solo los últimos N (rotación automática).
#
# FORMATO: <data_dir>/backups/backup_YYYY-MM-DD.zip
# ==============================================================================

import logging
import os
import zipfile
from datetime import datetime
from typing import Any, Dict, List, Tuple

from agro_erp.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class BackupService:
    """
    Servicio para gestión de backups automáticos.

    Responsabilidades:
    - Crear backups diarios en formato ZIP (todas las colecciones)
    - Rotar backups antiguos (mantener solo los últimos N)
    - Reportar el estado de los backups

    Uso:
        backup_service = BackupService(data_dir='/srv/agro/data')
        backup_service.run_daily_backup()
    """

    BACKUP_DIR_NAME = 'backups'

    def __init__(self, data_dir: str, max_backups: int = 7):
        """
        Args:
            data_dir: Carpeta donde están los JSON
            max_backups: Cantidad de backups a conservar
        """
        self.data_dir = data_dir
        self.max_backups = max_backups
        self.backup_root = os.path.join(data_dir, self.BACKUP_DIR_NAME)
        os.makedirs(self.backup_root, exist_ok=True)

    def _today_zip_path(self) -> str:
        return os.path.join(self.backup_root, f"backup_{datetime.now().strftime('%Y-%m-%d')}.zip")

    def _backup_exists_today(self) -> bool:
        zip_path = self._today_zip_path()
        return os.path.exists(zip_path) and os.path.getsize(zip_path) > 0

    def _data_files(self) -> List[str]:
        return sorted(
            name for name in os.listdir(self.data_dir)
            if name.endswith('.json') and os.path.isfile(os.path.join(self.data_dir, name))
        )

    def existing_backups(self) -> List[str]:
        """
        Nombres backup_YYYY-MM-DD.zip, más reciente primero.
        Se ignoran archivos con otro formato.
        """
        backups = []
        for item in os.listdir(self.backup_root):
            if not (item.startswith('backup_') and item.endswith('.zip')):
                continue
            if not os.path.isfile(os.path.join(self.backup_root, item)):
                continue
            try:
                datetime.strptime(item[7:-4], '%Y-%m-%d')
            except ValueError:
                continue
            backups.append(item)
        backups.sort(reverse=True)
        return backups

    def _zip_data_files(self, zip_path: str) -> Tuple[int, List[str]]:
        """
        Returns:
            Tupla (archivos_agregados, lista_de_errores)
        """
        added = 0
        errors = []
        # Ninguna transacción escribe mientras se copia
        with BaseRepository.lock():
            try:
                with zipfile.ZipFile(zip_path, 'w', zipfile.ZIP_DEFLATED) as zf:
                    for filename in self._data_files():
                        try:
                            zf.write(os.path.join(self.data_dir, filename), filename)
                            added += 1
                        except OSError as e:
                            errors.append(f"{filename}: {e}")
            except (OSError, zipfile.BadZipFile) as e:
                errors.append(f"Error creando ZIP: {e}")
                if os.path.exists(zip_path):
                    os.remove(zip_path)
        return added, errors

    def create_backup(self, force: bool = False) -> Dict[str, Any]:
        """
        Crea el backup del día.

        Args:
            force: Si True, lo crea aunque ya exista uno hoy

        Returns:
            {'success', 'message', 'files_added', 'errors', 'backup_path'}
        """
        zip_path = self._today_zip_path()
        if not force and self._backup_exists_today():
            logger.info("Backup ya existe hoy: %s", os.path.basename(zip_path))
            return {'success': True, 'message': 'Backup del día ya existe',
                    'files_added': 0, 'errors': [], 'backup_path': zip_path}

        added, errors = self._zip_data_files(zip_path)
        result = {'success': added > 0, 'files_added': added, 'errors': errors,
                  'backup_path': zip_path if added > 0 else None}
        if added > 0:
            size_kb = round(os.path.getsize(zip_path) / 1024, 2)
            result['message'] = f'Backup creado: {added} archivos ({size_kb} KB)'
            logger.info("Backup creado: %s (%d archivos, %s KB)", os.path.basename(zip_path), added, size_kb)
        else:
            result['message'] = 'No se encontraron archivos para respaldar'
            if os.path.exists(zip_path):
                os.remove(zip_path)
        for error in errors:
            logger.error("Backup: %s", error)
        return result

    def rotate_backups(self) -> Dict[str, int]:
        """Elimina los backups más antiguos que excedan max_backups."""
        deleted = 0
        for backup_name in self.existing_backups()[self.max_backups:]:
            try:
                os.remove(os.path.join(self.backup_root, backup_name))
                deleted += 1
                logger.info("Eliminado backup antiguo: %s", backup_name)
            except OSError:
                logger.exception("No se pudo eliminar %s", backup_name)
        return {'deleted_count': deleted, 'remaining_count': len(self.existing_backups())}

    def run_daily_backup(self) -> Dict[str, Any]:
        """Backup del día (si falta) y rotación."""
        return {'backup': self.create_backup(), 'rotation': self.rotate_backups()}

    def get_backup_status(self) -> Dict[str, Any]:
        backups = []
        for name in self.existing_backups():
            path = os.path.join(self.backup_root, name)
            try:
                with zipfile.ZipFile(path, 'r') as zf:
                    file_count = len(zf.namelist())
            except (OSError, zipfile.BadZipFile):
                file_count = 0
            size_bytes = os.path.getsize(path)
            backups.append({
                'filename': name,
                'date': name[7:-4],
                'files': file_count,
                'size_bytes': size_bytes,
                'size_kb': round(size_bytes / 1024, 2),
            })
        return {
            'total_backups': len(backups),
            'max_backups': self.max_backups,
            'backups': backups,
            'today_exists': self._backup_exists_today(),
        }


def run_startup_backup(data_dir: str, max_backups: int = 7) -> None:
    """
    Backup al iniciar la aplicación. Un fallo se registra en el log y
    nunca impide el arranque.
    """
    try:
        result = BackupService(data_dir, max_backups).run_daily_backup()
    except OSError:
        logger.exception("No se pudo ejecutar el backup de inicio")
        return
    if not result['backup']['success'] and result['backup']['errors']:
        logger.warning("Backup con errores: %s", result['backup']['errors'])
