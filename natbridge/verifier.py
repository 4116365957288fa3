"""
Network reload and post-fix verification.
"""

import logging
import time
from typing import Callable, Optional

from .config import Settings
from .gateway import SystemGateway
from .inspector import resolve_secondary_cidr
from .interfaces import InterfaceConfigDocument
from .output import StatusPrinter


class Verifier:
    """Reloads networking, then checks that both bridges are up and the internet is reachable"""

    def __init__(self, gateway: SystemGateway, settings: Settings, printer: StatusPrinter,
                 logger: Optional[logging.Logger] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.gateway = gateway
        self.settings = settings
        self.printer = printer
        self.logger = logger or logging.getLogger('natbridge')
        self.sleep = sleep

    def restart_network(self) -> bool:
        """Restart the networking service, falling back to cycling the NAT bridge by hand"""
        self.printer.info("Restarting networking service")
        if self.gateway.restart_networking():
            return True

        name = self.settings.secondary_bridge
        self.printer.warning(f"Networking restart failed, bringing {name} down and up manually")
        document = InterfaceConfigDocument.load(self.settings.interfaces_file)
        cidr = resolve_secondary_cidr(document, self.settings)

        self.gateway.set_link_state(name, False)
        up = self.gateway.set_link_state(name, True)
        assigned = self.gateway.add_address(name, cidr)
        if not (up and assigned):
            self.printer.error(f"Manual bring-up of {name} with {cidr} failed")
            return False
        return True

    def ensure_bridges_up(self) -> bool:
        all_up = True
        for name in (self.settings.primary_bridge, self.settings.secondary_bridge):
            if not self.gateway.link_exists(name):
                self.printer.error(f"{name} does not exist")
                all_up = False
                continue
            if self.gateway.link_is_up(name):
                self.printer.success(f"{name} is up")
                continue
            self.printer.warning(f"{name} is down, bringing it up")
            if not self.gateway.set_link_state(name, True) or not self.gateway.link_is_up(name):
                self.printer.error(f"Could not bring {name} up")
                all_up = False
        return all_up

    def verify(self) -> bool:
        """Reload and re-check. Failure is reported, never raised."""
        self.restart_network()

        if self.settings.settle_delay > 0:
            self.logger.debug(f"Waiting {self.settings.settle_delay}s for interfaces to settle")
            self.sleep(self.settings.settle_delay)

        bridges_up = self.ensure_bridges_up()

        reachable = self.gateway.is_reachable(self.settings.probe_address,
                                              self.settings.probe_timeout)
        if reachable:
            self.printer.success(f"Internet reachable ({self.settings.probe_address})")
        else:
            self.printer.warning(f"Internet still unreachable ({self.settings.probe_address})")

        return bridges_up and reachable
