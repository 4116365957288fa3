"""Host internet reachability."""

from typing import List

from ..models import Issue


def analyze(context) -> List[Issue]:
    if context.snapshot.internet_reachable:
        return []
    context.logger.debug(f"{context.settings.probe_address} unreachable")
    return [Issue.NO_INTERNET]
