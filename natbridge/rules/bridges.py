"""
Bridge presence rules.

Both bridges must exist and carry an IPv4 address.
"""

from typing import List

from ..models import Issue


def analyze(context) -> List[Issue]:
    """Check that the primary and NAT bridges exist and are addressed"""
    issues = []
    snapshot = context.snapshot

    if not snapshot.primary.exists:
        context.logger.debug(f"{snapshot.primary.name} not found")
        issues.append(Issue.MAIN_BRIDGE_MISSING)
    elif not snapshot.primary.has_ipv4:
        issues.append(Issue.MAIN_BRIDGE_NO_IP)

    if not snapshot.secondary.exists:
        context.logger.debug(f"{snapshot.secondary.name} not found")
        issues.append(Issue.NAT_BRIDGE_MISSING)
    elif not snapshot.secondary.has_ipv4:
        issues.append(Issue.NAT_BRIDGE_NO_IP)

    return issues
