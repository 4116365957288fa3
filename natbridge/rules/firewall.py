"""
Firewall rules for the NAT subnet.

Traffic from the NAT subnet must be masqueraded on the egress interface and
accepted by the FORWARD chain, and the rule set must survive a reboot.
"""

from typing import List

from ..models import Issue


def analyze(context) -> List[Issue]:
    issues = []
    snapshot = context.snapshot

    if not snapshot.masquerade_rule_present:
        context.logger.debug(f"Missing rule: {snapshot.masquerade_rule}")
        issues.append(Issue.MASQUERADE_RULE_MISSING)

    if not snapshot.persistence_installed:
        issues.append(Issue.IPTABLES_PERSISTENT_MISSING)

    if not snapshot.forward_rule_present:
        context.logger.debug(f"Missing rule: {snapshot.forward_rule}")
        issues.append(Issue.FORWARD_RULE_MISSING)

    return issues
