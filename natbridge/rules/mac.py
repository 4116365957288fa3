"""
MAC address collision rule.

Two interfaces with the same hardware address confuse the switch and the
neighbour tables. Ports enslaved to a bridge or bond legitimately share
their master's address and are skipped, as are all-zero addresses.
"""

from typing import Dict, List

from ..models import Issue

ZERO_MAC = '00:00:00:00:00:00'


def find_collisions(links) -> Dict[str, List[str]]:
    """MAC -> interface names, for every MAC used by more than one interface"""
    first_seen: Dict[str, str] = {}
    collisions: Dict[str, List[str]] = {}

    for link in links:
        if link.name == 'lo' or link.master:
            continue
        mac = link.mac.lower()
        if not mac or mac == ZERO_MAC:
            continue
        if mac in first_seen:
            collisions.setdefault(mac, [first_seen[mac]]).append(link.name)
        else:
            first_seen[mac] = link.name

    return collisions


def analyze(context) -> List[Issue]:
    """Report a single conflict issue however many collisions exist"""
    collisions = find_collisions(context.snapshot.links)
    if not collisions:
        return []

    for mac, names in collisions.items():
        context.logger.debug(f"MAC {mac} shared by {', '.join(names)}")
    return [Issue.MAC_ADDRESS_CONFLICT]
