"""
IPv4 forwarding rules: enabled now, and persisted for the next boot.
"""

from typing import List

from ..models import Issue


def analyze(context) -> List[Issue]:
    """Check live and persisted net.ipv4.ip_forward"""
    issues = []
    snapshot = context.snapshot

    if not snapshot.ip_forward_live:
        issues.append(Issue.IP_FORWARD_DISABLED)

    if snapshot.ip_forward_persisted != '1':
        context.logger.debug(f"net.ipv4.ip_forward in {context.settings.sysctl_file}: "
                             f"{snapshot.ip_forward_persisted or 'not set'}")
        issues.append(Issue.IP_FORWARD_NOT_PERSISTENT)

    return issues
