"""
Pre-change backups.

Every run copies the interfaces file, the sysctl file and a dump of the
firewall table into the backup directory before anything is changed. The
copies share one timestamp so a set can be restored together.
"""

import logging
import os
import shutil
from typing import Optional

from .config import Settings
from .errors import NatBridgeError
from .files import safe_write_file, timestamp
from .gateway import SystemGateway
from .models import BackupSet


class BackupManager:
    """Writes timestamped copies of every file the remediator may touch"""

    def __init__(self, gateway: SystemGateway, settings: Settings,
                 logger: Optional[logging.Logger] = None):
        self.gateway = gateway
        self.settings = settings
        self.logger = logger or logging.getLogger('natbridge')

    def _backup_path(self, source: str, stamp: str) -> str:
        return os.path.join(self.settings.backup_dir, f"{os.path.basename(source)}.{stamp}")

    def _unique_stamp(self, stamp: str) -> str:
        """``stamp``, suffixed with -N if an earlier run already used it"""
        sources = (self.settings.interfaces_file, self.settings.sysctl_file, 'iptables')
        candidate = stamp
        counter = 1
        while any(os.path.exists(self._backup_path(source, candidate)) for source in sources):
            candidate = f"{stamp}-{counter}"
            counter += 1
        return candidate

    def _copy(self, backup: BackupSet, label: str, source: str):
        if not os.path.exists(source):
            self.logger.debug(f"File {source} does not exist, no backup needed")
            return
        target = self._backup_path(source, backup.timestamp)
        shutil.copy2(source, target)
        backup.files[label] = target
        self.logger.debug(f"Backed up {source} to {target}")

    def create(self) -> BackupSet:
        """Snapshot all three artifacts; raises NatBridgeError if a copy cannot be written"""
        try:
            os.makedirs(self.settings.backup_dir, mode=0o700, exist_ok=True)
            stamp = self._unique_stamp(timestamp())
            backup = BackupSet(directory=self.settings.backup_dir, timestamp=stamp)
            self._copy(backup, 'interfaces', self.settings.interfaces_file)
            self._copy(backup, 'sysctl', self.settings.sysctl_file)
        except OSError as e:
            raise NatBridgeError(f"Backup to {self.settings.backup_dir} failed: {e}") from e

        dump = self.gateway.dump_rules()
        if dump is not None:
            target = os.path.join(self.settings.backup_dir, f"iptables.{stamp}")
            if not safe_write_file(target, dump, logger=self.logger):
                raise NatBridgeError(f"Could not write firewall backup {target}")
            backup.files['iptables'] = target
        else:
            self.logger.warning("Firewall rule table could not be dumped; no firewall backup")

        return backup
