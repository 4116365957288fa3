"""
Corrective actions, one per issue.

Every handler is safe to run again: file edits skip directives that are
already present, firewall rules are deleted before they are inserted, and
the interfaces file is re-read from disk by each handler so edits made by
an earlier handler are seen by the next one.
"""

import logging
import random
from typing import Callable, Dict, List, Optional

from .config import Settings
from .errors import NatBridgeError, RemediationError
from .files import safe_write_file
from .gateway import SystemGateway
from .interfaces import (
    BRIDGE_DIRECTIVES,
    InterfaceConfigDocument,
    has_forwarding_post_up,
    has_masquerade_post_down,
    has_masquerade_post_up,
    missing_bridge_directives,
)
from .models import FirewallRule, InspectionSnapshot, Issue, IssueSet, network_of
from .output import StatusPrinter
from .rules.mac import find_collisions
from .sysctl import IP_FORWARD_KEY, set_sysctl_value

MAC_PREFIX = '52:54:00'
FORWARDING_COMMAND = 'echo 1 > /proc/sys/net/ipv4/ip_forward'

# Upper bound on duplicate rule deletions before inserting the single copy
MAX_RULE_DELETES = 32


def generate_mac(rng: Optional[random.Random] = None) -> str:
    """Locally administered MAC with the QEMU/KVM vendor prefix"""
    rng = rng or random.SystemRandom()
    return MAC_PREFIX + ''.join(f":{rng.randint(0, 255):02x}" for _ in range(3))


def masquerade_commands(rule: FirewallRule) -> List[str]:
    """post-up and post-down directives that add and remove ``rule``"""
    return [
        f"post-up iptables {' '.join(rule.to_iptables_args('-A'))}",
        f"post-down iptables {' '.join(rule.to_iptables_args('-D'))}",
    ]


def render_bridge_stanza(name: str, cidr: str, egress: str, with_auto: bool = True) -> str:
    """A complete NAT bridge stanza"""
    rule = FirewallRule.masquerade(network_of(cidr), egress)
    lines = []
    if with_auto:
        lines.append(f"auto {name}")
    lines.append(f"iface {name} inet static")
    body = [f"address {cidr}"]
    body += [f"{key} {value}" for key, value in BRIDGE_DIRECTIVES]
    body.append(f"post-up {FORWARDING_COMMAND}")
    body += masquerade_commands(rule)
    lines += [f"    {line}" for line in body]
    return '\n'.join(lines) + '\n'


class Remediator:
    """Dispatches each issue to its handler"""

    def __init__(self, gateway: SystemGateway, settings: Settings,
                 snapshot: InspectionSnapshot, printer: StatusPrinter,
                 logger: Optional[logging.Logger] = None,
                 rng: Optional[random.Random] = None):
        self.gateway = gateway
        self.settings = settings
        self.snapshot = snapshot
        self.printer = printer
        self.logger = logger or logging.getLogger('natbridge')
        self.rng = rng

        fix_stanza = self.fix_bridge_stanza
        create_stanza = self.create_bridge_stanza
        self.handlers: Dict[Issue, Callable[[], bool]] = {
            Issue.IP_FORWARD_DISABLED: self.enable_forwarding,
            Issue.IP_FORWARD_NOT_PERSISTENT: self.persist_forwarding,
            Issue.MASQUERADE_RULE_MISSING: self.add_masquerade_rule,
            Issue.FORWARD_RULE_MISSING: self.add_forward_rule,
            Issue.IPTABLES_PERSISTENT_MISSING: self.install_persistence,
            Issue.NAT_BRIDGE_MISSING: create_stanza,
            Issue.NAT_BRIDGE_NOT_CONFIGURED: create_stanza,
            Issue.NAT_BRIDGE_NO_IP: self.assign_bridge_address,
            Issue.BRIDGE_STP_MISSING: fix_stanza,
            Issue.BRIDGE_FD_MISSING: fix_stanza,
            Issue.BRIDGE_PORTS_MISSING: fix_stanza,
            Issue.POST_UP_RULES_MISSING: fix_stanza,
            Issue.MAC_ADDRESS_CONFLICT: self.fix_mac_conflict,
        }

    def remediate(self, issues: IssueSet) -> Dict[Issue, bool]:
        """Run the handler for every issue once, in detection order"""
        results: Dict[Issue, bool] = {}

        for issue in issues:
            handler = self.handlers.get(issue)
            if handler is None:
                self.printer.warning(f"{issue.value}: no automatic fix, manual attention required")
                continue

            self.printer.info(f"Fixing {issue.value}: {issue.description}")
            try:
                results[issue] = handler()
            except (NatBridgeError, OSError) as e:
                self.logger.debug(f"Handler for {issue.value} raised", exc_info=True)
                self.printer.error(f"Fix for {issue.value} failed: {e}")
                results[issue] = False
                continue

            if results[issue]:
                self.printer.success(f"Fixed {issue.value}")
            else:
                self.printer.warning(f"Could not fix {issue.value}")

        return results

    # Kernel forwarding

    def enable_forwarding(self) -> bool:
        return self.gateway.write_ip_forward(True)

    def persist_forwarding(self) -> bool:
        path = self.settings.sysctl_file
        if set_sysctl_value(path, IP_FORWARD_KEY, '1', logger=self.logger):
            self.printer.info(f"Set {IP_FORWARD_KEY} = 1 in {path}")
        return self.gateway.reload_sysctl(path)

    # Firewall

    def upsert_rule(self, rule: FirewallRule) -> bool:
        """Delete every copy of ``rule``, then insert exactly one"""
        deleted = 0
        while deleted < MAX_RULE_DELETES and self.gateway.delete_rule(rule):
            deleted += 1
        if deleted:
            self.logger.debug(f"Removed {deleted} existing copies of {rule}")
        return self.gateway.insert_rule(rule)

    def add_masquerade_rule(self) -> bool:
        return self.upsert_rule(self.snapshot.masquerade_rule)

    def add_forward_rule(self) -> bool:
        return self.upsert_rule(self.snapshot.forward_rule)

    def install_persistence(self) -> bool:
        return self.gateway.install_package(self.settings.persistence_package)

    def persist_rules(self) -> bool:
        """Save the live rule table so it survives a reboot"""
        saved = self.gateway.save_rules_with_helper()
        if saved is not None:
            return saved

        dump = self.gateway.dump_rules()
        if dump is None:
            return False
        return safe_write_file(self.settings.iptables_rules_file, dump, logger=self.logger)

    # Interfaces file

    def _load_document(self) -> InterfaceConfigDocument:
        return InterfaceConfigDocument.load(self.settings.interfaces_file)

    def _save_document(self, document: InterfaceConfigDocument):
        if not document.save(self.settings.interfaces_file, logger=self.logger):
            raise RemediationError(f"Could not write {self.settings.interfaces_file}")

    def create_bridge_stanza(self) -> bool:
        name = self.settings.secondary_bridge
        document = self._load_document()
        if document.declares(name):
            self.logger.debug(f"{name} already declared, not appending a stanza")
            return True

        text = render_bridge_stanza(name, self.snapshot.secondary_cidr,
                                    self.snapshot.egress_interface,
                                    with_auto=not document.has_auto(name))
        document.append_text(text)
        self._save_document(document)
        self.printer.info(f"Added {name} stanza to {self.settings.interfaces_file}")
        return True

    def fix_bridge_stanza(self) -> bool:
        """Add missing bridge settings and post-up commands to the NAT bridge stanza"""
        name = self.settings.secondary_bridge
        document = self._load_document()
        stanza = document.iface(name)
        if stanza is None:
            raise RemediationError(f"No iface stanza for {name}")

        changed = False
        missing = missing_bridge_directives(stanza)
        if missing:
            document.insert_after_header(name, [f"{key} {value}" for key, value in missing])
            changed = True

        stanza = document.iface(name)
        tail = []
        if not has_forwarding_post_up(stanza):
            tail.append(f"post-up {FORWARDING_COMMAND}")
        if not has_masquerade_post_up(stanza):
            commands = masquerade_commands(self.snapshot.masquerade_rule)
            tail.append(commands[0])
            if not has_masquerade_post_down(stanza):
                tail.append(commands[1])
        if tail:
            document.insert_at_body_end(name, tail)
            changed = True

        if changed:
            self._save_document(document)
            self.logger.debug(f"Updated {name} stanza in {self.settings.interfaces_file}")
        return True

    def assign_bridge_address(self) -> bool:
        name = self.settings.secondary_bridge
        if not self.gateway.link_exists(name):
            self.logger.debug(f"{name} does not exist yet; address comes with the network restart")
            return False
        cidr = self.snapshot.secondary_cidr
        return self.gateway.add_address(name, cidr) and self.gateway.set_link_state(name, True)

    def fix_mac_conflict(self) -> bool:
        name = self.settings.secondary_bridge
        involved = False
        for mac, names in find_collisions(self.snapshot.links).items():
            if name in names:
                involved = True
            else:
                self.printer.warning(f"MAC {mac} shared by {', '.join(names)}")
        # Only the NAT bridge is ours to renumber
        if not involved:
            return False

        mac = generate_mac(self.rng)
        document = self._load_document()
        if document.iface(name) is None:
            raise RemediationError(f"No iface stanza for {name}")
        document.set_directive(name, 'hwaddress', mac)
        self._save_document(document)
        self.printer.info(f"Assigned MAC {mac} to {name}")

        if self.gateway.link_exists(name):
            return self.gateway.set_link_mac(name, mac)
        return True
