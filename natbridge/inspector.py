"""
Read-only inspection of live state and persisted configuration.
"""

import logging
from typing import Optional

from .config import Settings
from .gateway import SystemGateway
from .interfaces import InterfaceConfigDocument
from .models import BridgeState, FirewallRule, InspectionSnapshot, network_of
from .sysctl import IP_FORWARD_KEY, read_sysctl_value


def resolve_subnet(secondary: BridgeState, document: InterfaceConfigDocument,
                   settings: Settings) -> str:
    """NAT subnet: live bridge address, then the configured address, then the default"""
    if secondary.subnet:
        return secondary.subnet
    configured = document.address_of(settings.secondary_bridge)
    if configured:
        try:
            return network_of(configured)
        except ValueError:
            logging.getLogger('natbridge').warning(
                f"Ignoring malformed address {configured} for {settings.secondary_bridge}")
    return settings.default_subnet


def resolve_secondary_cidr(document: InterfaceConfigDocument, settings: Settings) -> str:
    """Address to assign to the NAT bridge when it has none"""
    configured = document.address_of(settings.secondary_bridge)
    if configured:
        try:
            network_of(configured)
            return configured
        except ValueError:
            pass
    return settings.default_address


class StateInspector:
    """Captures an InspectionSnapshot; never changes anything"""

    def __init__(self, gateway: SystemGateway, settings: Settings,
                 logger: Optional[logging.Logger] = None):
        self.gateway = gateway
        self.settings = settings
        self.logger = logger or logging.getLogger('natbridge')

    def bridge_state(self, name: str) -> BridgeState:
        if not self.gateway.link_exists(name):
            self.logger.debug(f"Bridge {name} does not exist")
            return BridgeState(name=name)
        return BridgeState(
            name=name,
            exists=True,
            admin_up=self.gateway.link_is_up(name),
            cidr=self.gateway.ipv4_cidr(name)
        )

    def inspect(self) -> InspectionSnapshot:
        settings = self.settings
        primary = self.bridge_state(settings.primary_bridge)
        secondary = self.bridge_state(settings.secondary_bridge)

        egress = self.gateway.egress_interface(settings.probe_address)
        if not egress:
            self.logger.debug(f"No route to {settings.probe_address}, "
                              f"using {settings.primary_bridge} as egress")
            egress = settings.primary_bridge

        document = InterfaceConfigDocument.load(settings.interfaces_file)
        subnet = resolve_subnet(secondary, document, settings)

        masquerade = FirewallRule.masquerade(subnet, egress)
        forward = FirewallRule.forward_accept(subnet)

        snapshot = InspectionSnapshot(
            primary=primary,
            secondary=secondary,
            links=tuple(self.gateway.list_links()),
            egress_interface=egress,
            document=document,
            ip_forward_live=self.gateway.read_ip_forward(),
            ip_forward_persisted=read_sysctl_value(settings.sysctl_file, IP_FORWARD_KEY),
            subnet=subnet,
            secondary_cidr=secondary.cidr or resolve_secondary_cidr(document, settings),
            masquerade_rule_present=self.gateway.rule_exists(masquerade),
            forward_rule_present=self.gateway.rule_exists(forward),
            persistence_installed=self.gateway.package_installed(settings.persistence_package),
            internet_reachable=self.gateway.is_reachable(settings.probe_address,
                                                         settings.probe_timeout)
        )

        self.logger.debug(f"Inspection: subnet={subnet} egress={egress} "
                          f"primary={primary} secondary={secondary}")
        return snapshot
