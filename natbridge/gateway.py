"""
Access to the live system.

``SystemGateway`` is everything the engine needs from the host: link and
address tables, routes, the forwarding flag, iptables, packages, the
network service and a reachability probe. ``LinuxGateway`` implements it
with ``ip``, ``iptables``, ``sysctl``, ``systemctl`` and ``apt-get``. Tests
substitute a fake.
"""

import logging
import os
import re
import shutil
import socket
import subprocess
from typing import Dict, List, Optional, Tuple, Union

from .errors import CommandError
from .models import FirewallRule, LinkInfo

IP_FORWARD_PROC = '/proc/sys/net/ipv4/ip_forward'


class SystemGateway:
    """Operations the engine performs against the host"""

    def is_root(self) -> bool:
        raise NotImplementedError

    # Links and addresses
    def link_exists(self, name: str) -> bool:
        raise NotImplementedError

    def link_is_up(self, name: str) -> bool:
        raise NotImplementedError

    def ipv4_cidr(self, name: str) -> Optional[str]:
        raise NotImplementedError

    def list_links(self) -> List[LinkInfo]:
        raise NotImplementedError

    def egress_interface(self, probe_address: str) -> Optional[str]:
        raise NotImplementedError

    def set_link_state(self, name: str, up: bool) -> bool:
        raise NotImplementedError

    def add_address(self, name: str, cidr: str) -> bool:
        raise NotImplementedError

    def set_link_mac(self, name: str, mac: str) -> bool:
        raise NotImplementedError

    # Kernel forwarding
    def read_ip_forward(self) -> bool:
        raise NotImplementedError

    def write_ip_forward(self, enabled: bool) -> bool:
        raise NotImplementedError

    def reload_sysctl(self, file_path: str) -> bool:
        raise NotImplementedError

    # Firewall
    def rule_exists(self, rule: FirewallRule) -> bool:
        raise NotImplementedError

    def insert_rule(self, rule: FirewallRule) -> bool:
        raise NotImplementedError

    def delete_rule(self, rule: FirewallRule) -> bool:
        raise NotImplementedError

    def dump_rules(self) -> Optional[str]:
        raise NotImplementedError

    def save_rules_with_helper(self) -> Optional[bool]:
        """Persist rules with a dedicated helper. None when no helper is installed."""
        raise NotImplementedError

    # Packages and services
    def package_installed(self, package: str) -> bool:
        raise NotImplementedError

    def install_package(self, package: str) -> bool:
        """Install ``package``; raises CommandError when the package manager fails"""
        raise NotImplementedError

    def restart_networking(self) -> bool:
        raise NotImplementedError

    def is_reachable(self, address: str, timeout: int) -> bool:
        raise NotImplementedError


class LinuxGateway(SystemGateway):
    """SystemGateway backed by iproute2, iptables and the Debian tooling"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('natbridge')

    def run_command(self, cmd: Union[str, List[str]],
                    timeout: int = 30,
                    env: Optional[Dict[str, str]] = None,
                    input_text: Optional[str] = None) -> Tuple[int, str, str]:
        """Execute system command with timeout and error handling"""
        if isinstance(cmd, str):
            cmd = cmd.split()

        self.logger.debug(f"Executing command: {' '.join(cmd)}")

        run_env = None
        if env:
            run_env = dict(os.environ)
            run_env.update(env)

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=run_env,
                input=input_text
            )
        except subprocess.TimeoutExpired:
            self.logger.error(f"Command timed out after {timeout}s: {' '.join(cmd)}")
            return -1, "", f"Command timed out after {timeout}s"
        except FileNotFoundError as e:
            self.logger.debug(f"Command not found: {cmd[0]}")
            return -1, "", str(e)

        self.logger.debug(f"Command exit code: {result.returncode}")
        if result.stdout:
            self.logger.debug(f"Command stdout: {result.stdout[:500]}")
        if result.stderr:
            self.logger.debug(f"Command stderr: {result.stderr[:500]}")

        return result.returncode, result.stdout, result.stderr

    def is_root(self) -> bool:
        return os.geteuid() == 0

    def link_exists(self, name: str) -> bool:
        code, _, _ = self.run_command(['ip', 'link', 'show', 'dev', name])
        return code == 0

    def link_is_up(self, name: str) -> bool:
        code, stdout, _ = self.run_command(['ip', '-o', 'link', 'show', 'dev', name])
        if code != 0:
            return False
        match = re.search(r'<([^>]*)>', stdout)
        return bool(match) and 'UP' in match.group(1).split(',')

    def ipv4_cidr(self, name: str) -> Optional[str]:
        code, stdout, _ = self.run_command(['ip', '-o', '-4', 'addr', 'show', 'dev', name])
        if code != 0:
            return None
        match = re.search(r'\binet\s+(\d+\.\d+\.\d+\.\d+/\d+)', stdout)
        return match.group(1) if match else None

    def list_links(self) -> List[LinkInfo]:
        links = []
        code, stdout, _ = self.run_command(['ip', '-o', 'link', 'show'])
        if code != 0:
            return links

        for line in stdout.splitlines():
            # 3: vmbr0: <BROADCAST,MULTICAST,UP> mtu 1500 ... master br0 ... link/ether aa:bb:.. brd ..
            match = re.match(r'^\d+:\s+([^:@\s]+)(?:@\S+)?:', line)
            if not match:
                continue
            mac_match = re.search(r'link/ether\s+([0-9a-fA-F:]{17})', line)
            if not mac_match:
                continue
            master_match = re.search(r'\bmaster\s+(\S+)', line)
            links.append(LinkInfo(
                name=match.group(1),
                mac=mac_match.group(1).lower(),
                master=master_match.group(1) if master_match else None
            ))

        return links

    def egress_interface(self, probe_address: str) -> Optional[str]:
        code, stdout, _ = self.run_command(['ip', 'route', 'get', probe_address])
        if code != 0:
            return None
        match = re.search(r'\bdev\s+(\S+)', stdout)
        return match.group(1) if match else None

    def set_link_state(self, name: str, up: bool) -> bool:
        code, _, _ = self.run_command(['ip', 'link', 'set', 'dev', name, 'up' if up else 'down'])
        return code == 0

    def add_address(self, name: str, cidr: str) -> bool:
        # replace is a no-op when the address is already assigned
        code, _, _ = self.run_command(['ip', 'addr', 'replace', cidr, 'dev', name])
        return code == 0

    def set_link_mac(self, name: str, mac: str) -> bool:
        code, _, _ = self.run_command(['ip', 'link', 'set', 'dev', name, 'address', mac])
        return code == 0

    def read_ip_forward(self) -> bool:
        try:
            with open(IP_FORWARD_PROC, 'r') as f:
                return f.read().strip() == '1'
        except OSError as e:
            self.logger.debug(f"Could not read {IP_FORWARD_PROC}: {e}")
            return False

    def write_ip_forward(self, enabled: bool) -> bool:
        try:
            with open(IP_FORWARD_PROC, 'w') as f:
                f.write('1\n' if enabled else '0\n')
            return True
        except OSError as e:
            self.logger.error(f"Could not write {IP_FORWARD_PROC}: {e}")
            return False

    def reload_sysctl(self, file_path: str) -> bool:
        code, _, stderr = self.run_command(['sysctl', '-p', file_path])
        if code != 0:
            self.logger.warning(f"sysctl -p {file_path} failed: {stderr.strip()}")
        return code == 0

    def rule_exists(self, rule: FirewallRule) -> bool:
        code, _, _ = self.run_command(['iptables', '-w'] + rule.to_iptables_args('-C'))
        return code == 0

    def insert_rule(self, rule: FirewallRule) -> bool:
        code, _, stderr = self.run_command(['iptables', '-w'] + rule.to_iptables_args('-I'))
        if code != 0:
            self.logger.error(f"Failed to insert rule {rule}: {stderr.strip()}")
        return code == 0

    def delete_rule(self, rule: FirewallRule) -> bool:
        code, _, _ = self.run_command(['iptables', '-w'] + rule.to_iptables_args('-D'))
        return code == 0

    def dump_rules(self) -> Optional[str]:
        code, stdout, stderr = self.run_command(['iptables-save'])
        if code != 0:
            self.logger.warning(f"iptables-save failed: {stderr.strip()}")
            return None
        return stdout

    def save_rules_with_helper(self) -> Optional[bool]:
        if not shutil.which('netfilter-persistent'):
            return None
        code, _, stderr = self.run_command(['netfilter-persistent', 'save'], timeout=60)
        if code != 0:
            self.logger.warning(f"netfilter-persistent save failed: {stderr.strip()}")
        return code == 0

    def package_installed(self, package: str) -> bool:
        code, stdout, _ = self.run_command(['dpkg-query', '-W', '-f=${Status}', package])
        return code == 0 and 'install ok installed' in stdout

    def install_package(self, package: str) -> bool:
        env = {'DEBIAN_FRONTEND': 'noninteractive'}
        if package == 'iptables-persistent':
            # Answer the autosave prompts up front
            selections = (
                "iptables-persistent iptables-persistent/autosave_v4 boolean true\n"
                "iptables-persistent iptables-persistent/autosave_v6 boolean true\n"
            )
            self.run_command(['debconf-set-selections'], input_text=selections)

        cmd = ['apt-get', 'install', '-y', '-q', package]
        code, _, stderr = self.run_command(cmd, timeout=600, env=env)
        if code != 0:
            raise CommandError(cmd, code, stderr[-500:])
        return True

    def restart_networking(self) -> bool:
        code, _, stderr = self.run_command(['systemctl', 'restart', 'networking'], timeout=120)
        if code != 0:
            self.logger.warning(f"systemctl restart networking failed: {stderr.strip()}")
        return code == 0

    def is_reachable(self, address: str, timeout: int) -> bool:
        code, _, _ = self.run_command(
            ['ping', '-c', '1', '-W', str(timeout), address], timeout=timeout + 2)
        if code == 0:
            return True

        # ICMP may be filtered; fall back to a TCP connect to DNS
        try:
            with socket.create_connection((address, 53), timeout=timeout):
                return True
        except OSError:
            return False
