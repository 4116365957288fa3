import os

import pytest

from fakes.sample_files import HEALTHY_INTERFACES, HEALTHY_SYSCTL
from natbridge.backup import BackupManager
from natbridge.errors import NatBridgeError


def read(path):
    with open(path) as f:
        return f.read()


def test_backup_copies_every_artifact(gateway, settings, logger):
    backup = BackupManager(gateway, settings, logger).create()

    assert backup.directory == settings.backup_dir
    assert sorted(backup.files) == ['interfaces', 'iptables', 'sysctl']
    assert read(backup.files['interfaces']) == HEALTHY_INTERFACES
    assert read(backup.files['sysctl']) == HEALTHY_SYSCTL
    assert 'MASQUERADE' in read(backup.files['iptables'])
    assert os.path.basename(backup.files['interfaces']) == f"interfaces.{backup.timestamp}"


def test_backup_directory_is_private(gateway, settings, logger):
    BackupManager(gateway, settings, logger).create()
    assert os.stat(settings.backup_dir).st_mode & 0o077 == 0


def test_missing_source_is_skipped(gateway, settings, logger):
    os.remove(settings.sysctl_file)

    backup = BackupManager(gateway, settings, logger).create()

    assert 'sysctl' not in backup.files
    assert 'interfaces' in backup.files


def test_undumpable_firewall_only_warns(gateway, settings, logger):
    gateway.dump_rules = lambda: None

    backup = BackupManager(gateway, settings, logger).create()

    assert 'iptables' not in backup.files
    assert logger.messages('warning')


def test_unwritable_backup_dir_is_fatal(gateway, settings, logger, tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    settings.backup_dir = str(blocker)

    with pytest.raises(NatBridgeError):
        BackupManager(gateway, settings, logger).create()


def test_backups_in_the_same_second_do_not_overwrite(gateway, settings, logger, monkeypatch):
    monkeypatch.setattr('natbridge.backup.timestamp', lambda: '20260101-120000')
    manager = BackupManager(gateway, settings, logger)

    first = manager.create()
    with open(settings.interfaces_file, 'w') as f:
        f.write("auto lo\niface lo inet loopback\n")
    second = manager.create()
    third = manager.create()

    assert first.timestamp == '20260101-120000'
    assert second.timestamp == '20260101-120000-1'
    assert third.timestamp == '20260101-120000-2'
    assert read(first.files['interfaces']) == HEALTHY_INTERFACES
    assert read(second.files['interfaces']) == "auto lo\niface lo inet loopback\n"
    assert len(set(first.files.values()) | set(second.files.values())) == 6
