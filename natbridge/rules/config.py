"""
Interfaces file rules.

The NAT bridge needs an ``iface`` stanza with bridge settings and post-up
commands that enable forwarding and NAT when the bridge comes up.
"""

from typing import List

from ..interfaces import has_forwarding_post_up, has_masquerade_post_up
from ..models import Issue

_MISSING_DIRECTIVE_ISSUES = {
    'bridge-ports': Issue.BRIDGE_PORTS_MISSING,
    'bridge-stp': Issue.BRIDGE_STP_MISSING,
    'bridge-fd': Issue.BRIDGE_FD_MISSING,
}


def analyze(context) -> List[Issue]:
    """Check the NAT bridge stanza in the interfaces file"""
    issues = []
    name = context.settings.secondary_bridge
    stanza = context.snapshot.document.iface(name)

    if stanza is None:
        context.logger.debug(f"No iface stanza for {name} in {context.settings.interfaces_file}")
        issues.append(Issue.NAT_BRIDGE_NOT_CONFIGURED)
        return issues

    for key in ('bridge-stp', 'bridge-fd', 'bridge-ports'):
        if not stanza.has_directive(key):
            issues.append(_MISSING_DIRECTIVE_ISSUES[key])

    if not has_forwarding_post_up(stanza):
        context.logger.debug(f"{name} has no post-up forwarding command")
        issues.append(Issue.POST_UP_RULES_MISSING)

    if not has_masquerade_post_up(stanza):
        context.logger.debug(f"{name} has no post-up MASQUERADE command")
        issues.append(Issue.POST_UP_RULES_MISSING)

    return issues
