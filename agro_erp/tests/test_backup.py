import os
import zipfile

import pytest

from agro_erp.services import BackupService


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / 'data'
    path.mkdir()
    (path / 'sales.json').write_text('{}', encoding='utf-8')
    (path / 'clients.json').write_text('{}', encoding='utf-8')
    (path / 'notas.txt').write_text('no se respalda', encoding='utf-8')
    return path


def test_create_backup_zips_json_files(data_dir):
    service = BackupService(str(data_dir))

    result = service.create_backup()

    assert result['success'] is True
    assert result['files_added'] == 2
    with zipfile.ZipFile(result['backup_path']) as zf:
        assert sorted(zf.namelist()) == ['clients.json', 'sales.json']

    again = service.create_backup()
    assert again['files_added'] == 0
    assert again['message'] == 'Backup del día ya existe'
    assert service.create_backup(force=True)['files_added'] == 2


def test_empty_data_dir_creates_nothing(tmp_path):
    service = BackupService(str(tmp_path))
    result = service.create_backup()
    assert result['success'] is False
    assert result['backup_path'] is None
    assert service.existing_backups() == []


def test_rotation_keeps_newest(data_dir):
    service = BackupService(str(data_dir), max_backups=2)
    for day in ('2024-01-01', '2024-01-02', '2024-01-03'):
        with zipfile.ZipFile(os.path.join(service.backup_root, f'backup_{day}.zip'), 'w') as zf:
            zf.writestr('sales.json', '{}')
    # Nombres con otro formato no cuentan
    open(os.path.join(service.backup_root, 'backup_manual.zip'), 'w').close()

    result = service.rotate_backups()

    assert result == {'deleted_count': 1, 'remaining_count': 2}
    assert service.existing_backups() == ['backup_2024-01-03.zip', 'backup_2024-01-02.zip']


def test_backup_status(data_dir):
    service = BackupService(str(data_dir), max_backups=5)
    service.run_daily_backup()

    status = service.get_backup_status()

    assert status['total_backups'] == 1
    assert status['max_backups'] == 5
    assert status['today_exists'] is True
    assert status['backups'][0]['files'] == 2
