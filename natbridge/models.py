"""
Data model shared by the inspector, the rules and the remediator.
"""

import ipaddress
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Tuple

from .output import Severity

if TYPE_CHECKING:
    from .interfaces import InterfaceConfigDocument


class Issue(Enum):
    """Named misconfigurations the rules can detect"""
    MAIN_BRIDGE_MISSING = "main_bridge_missing"
    MAIN_BRIDGE_NO_IP = "main_bridge_no_ip"
    NAT_BRIDGE_MISSING = "nat_bridge_missing"
    NAT_BRIDGE_NO_IP = "nat_bridge_no_ip"
    NAT_BRIDGE_NOT_CONFIGURED = "nat_bridge_not_configured"
    IP_FORWARD_DISABLED = "ip_forward_disabled"
    IP_FORWARD_NOT_PERSISTENT = "ip_forward_not_persistent"
    MASQUERADE_RULE_MISSING = "masquerade_rule_missing"
    IPTABLES_PERSISTENT_MISSING = "iptables_persistent_missing"
    FORWARD_RULE_MISSING = "forward_rule_missing"
    BRIDGE_STP_MISSING = "bridge_stp_missing"
    BRIDGE_FD_MISSING = "bridge_fd_missing"
    BRIDGE_PORTS_MISSING = "bridge_ports_missing"
    POST_UP_RULES_MISSING = "post_up_rules_missing"
    MAC_ADDRESS_CONFLICT = "mac_address_conflict"
    NO_INTERNET = "no_internet"

    @property
    def description(self) -> str:
        return _ISSUE_DETAILS[self][1]

    @property
    def severity(self) -> Severity:
        return _ISSUE_DETAILS[self][0]


_ISSUE_DETAILS = {
    Issue.MAIN_BRIDGE_MISSING: (Severity.ERROR, "Primary bridge does not exist"),
    Issue.MAIN_BRIDGE_NO_IP: (Severity.ERROR, "Primary bridge has no IPv4 address"),
    Issue.NAT_BRIDGE_MISSING: (Severity.ERROR, "NAT bridge does not exist"),
    Issue.NAT_BRIDGE_NO_IP: (Severity.ERROR, "NAT bridge has no IPv4 address"),
    Issue.NAT_BRIDGE_NOT_CONFIGURED: (Severity.ERROR, "NAT bridge is not declared in the interfaces file"),
    Issue.IP_FORWARD_DISABLED: (Severity.ERROR, "IPv4 forwarding is disabled"),
    Issue.IP_FORWARD_NOT_PERSISTENT: (Severity.WARNING, "IPv4 forwarding is not persisted in sysctl configuration"),
    Issue.MASQUERADE_RULE_MISSING: (Severity.ERROR, "MASQUERADE rule for the NAT subnet is missing"),
    Issue.IPTABLES_PERSISTENT_MISSING: (Severity.WARNING, "Firewall rule persistence package is not installed"),
    Issue.FORWARD_RULE_MISSING: (Severity.WARNING, "FORWARD accept rule for the NAT subnet is missing"),
    Issue.BRIDGE_STP_MISSING: (Severity.WARNING, "NAT bridge stanza lacks bridge-stp"),
    Issue.BRIDGE_FD_MISSING: (Severity.WARNING, "NAT bridge stanza lacks bridge-fd"),
    Issue.BRIDGE_PORTS_MISSING: (Severity.WARNING, "NAT bridge stanza lacks bridge-ports"),
    Issue.POST_UP_RULES_MISSING: (Severity.WARNING, "NAT bridge stanza lacks post-up forwarding/NAT directives"),
    Issue.MAC_ADDRESS_CONFLICT: (Severity.ERROR, "Two interfaces share the same MAC address"),
    Issue.NO_INTERNET: (Severity.ERROR, "Host cannot reach the internet"),
}


class IssueSet:
    """Ordered collection of issues; repeated detections collapse to the first"""

    def __init__(self, issues=()):
        self._issues: Dict[Issue, None] = {}
        for issue in issues:
            self.add(issue)

    def add(self, issue: Issue) -> bool:
        """Record an issue. Returns False if it was already present."""
        if issue in self._issues:
            return False
        self._issues[issue] = None
        return True

    def extend(self, issues):
        for issue in issues:
            self.add(issue)

    def __contains__(self, issue) -> bool:
        return issue in self._issues

    def __iter__(self) -> Iterator[Issue]:
        return iter(list(self._issues))

    def __len__(self) -> int:
        return len(self._issues)

    def __bool__(self) -> bool:
        return bool(self._issues)

    def names(self) -> List[str]:
        return [issue.value for issue in self._issues]

    def __repr__(self) -> str:
        return f"IssueSet({self.names()!r})"


def network_of(cidr: str) -> str:
    """Network of an interface address, host bits zeroed: 192.168.1.1/24 -> 192.168.1.0/24"""
    return str(ipaddress.ip_interface(cidr).network)


@dataclass(frozen=True)
class BridgeState:
    """Live state of one bridge"""
    name: str
    exists: bool = False
    admin_up: bool = False
    cidr: Optional[str] = None

    @property
    def has_ipv4(self) -> bool:
        return self.cidr is not None

    @property
    def subnet(self) -> Optional[str]:
        if self.cidr is None:
            return None
        return network_of(self.cidr)


@dataclass(frozen=True)
class LinkInfo:
    """A link-layer interface"""
    name: str
    mac: str
    master: Optional[str] = None


@dataclass(frozen=True)
class FirewallRule:
    """A NAT or filter rule keyed by source subnet, output interface and target"""
    table: str
    chain: str
    source: str
    target: str
    out_interface: Optional[str] = None

    @classmethod
    def masquerade(cls, subnet: str, out_interface: str) -> 'FirewallRule':
        return cls(table='nat', chain='POSTROUTING', source=subnet,
                   target='MASQUERADE', out_interface=out_interface)

    @classmethod
    def forward_accept(cls, subnet: str) -> 'FirewallRule':
        return cls(table='filter', chain='FORWARD', source=subnet, target='ACCEPT')

    def match_args(self) -> List[str]:
        """Match arguments without table or chain"""
        args = ['-s', self.source]
        if self.out_interface:
            args += ['-o', self.out_interface]
        args += ['-j', self.target]
        return args

    def to_iptables_args(self, action: str) -> List[str]:
        """Full iptables argument list for -C, -D, -I or -A"""
        return ['-t', self.table, action, self.chain] + self.match_args()

    def __str__(self) -> str:
        out = f" -o {self.out_interface}" if self.out_interface else ""
        return f"{self.table}/{self.chain} -s {self.source}{out} -j {self.target}"


@dataclass(frozen=True)
class InspectionSnapshot:
    """Everything the rules look at, captured once per run"""
    primary: BridgeState
    secondary: BridgeState
    links: Tuple[LinkInfo, ...]
    egress_interface: str
    document: 'InterfaceConfigDocument'
    ip_forward_live: bool
    ip_forward_persisted: Optional[str]
    subnet: str
    secondary_cidr: str
    masquerade_rule_present: bool
    forward_rule_present: bool
    persistence_installed: bool
    internet_reachable: bool

    @property
    def masquerade_rule(self) -> FirewallRule:
        return FirewallRule.masquerade(self.subnet, self.egress_interface)

    @property
    def forward_rule(self) -> FirewallRule:
        return FirewallRule.forward_accept(self.subnet)


@dataclass
class BackupSet:
    """Copies written before a run mutates anything"""
    directory: str
    timestamp: str
    files: Dict[str, str] = field(default_factory=dict)


@dataclass
class RunReport:
    """Outcome of one run"""
    issues: IssueSet
    fixes: Dict[Issue, bool] = field(default_factory=dict)
    backup: Optional[BackupSet] = None
    rules_persisted: Optional[bool] = None
    verified: Optional[bool] = None

