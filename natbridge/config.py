"""
Settings for natbridge.

Defaults describe the common two-bridge layout (``vmbr0`` uplink, ``vmbr1``
NAT bridge). A YAML file can override any of them, and can list rule
modules to disable.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from typing import List, Optional

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_PATH = '/etc/natbridge/config.yaml'


@dataclass
class Settings:
    """Runtime settings"""
    primary_bridge: str = 'vmbr0'
    secondary_bridge: str = 'vmbr1'
    default_address: str = '10.10.10.1/24'
    default_subnet: str = '10.10.10.0/24'
    interfaces_file: str = '/etc/network/interfaces'
    sysctl_file: str = '/etc/sysctl.conf'
    iptables_rules_file: str = '/etc/iptables/rules.v4'
    backup_dir: str = '/root/natbridge-backups'
    probe_address: str = '8.8.8.8'
    probe_timeout: int = 3
    settle_delay: float = 3.0
    persistence_package: str = 'iptables-persistent'
    disabled_rules: List[str] = field(default_factory=list)


def load_settings(config_path: Optional[str] = None,
                  logger: Optional[logging.Logger] = None) -> Settings:
    """Load settings from YAML, falling back to defaults.

    An explicit ``config_path`` must exist. Without one, the default path is
    read only when present.
    """
    logger = logger or logging.getLogger('natbridge')
    settings = Settings()

    path = config_path or DEFAULT_CONFIG_PATH
    if not os.path.exists(path):
        if config_path:
            raise ConfigError(f"Config file not found: {config_path}")
        logger.debug(f"No config file found at {path}, using defaults")
        return settings

    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    if data is None:
        return settings
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    known = {f.name: f for f in fields(Settings)}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key: {key}")
            continue

        default = getattr(settings, key)
        if key == 'disabled_rules':
            if not isinstance(value, list):
                raise ConfigError("disabled_rules must be a list of rule names")
            value = [str(v) for v in value]
        elif value is None or isinstance(value, (bool, list, dict)):
            raise ConfigError(f"Invalid value for {key}: {value!r}")
        elif isinstance(default, (int, float)):
            try:
                value = type(default)(value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for {key}: {value!r}") from e
        else:
            value = str(value)

        setattr(settings, key, value)

    logger.info(f"Loaded configuration from {path}")
    return settings
