"""
sysctl configuration file handling.

Only active ``key = value`` lines are considered; comments and unrelated
keys are never touched by an update.
"""

import logging
import re
from typing import Dict, Optional

from .files import read_text, safe_write_file

IP_FORWARD_KEY = 'net.ipv4.ip_forward'

_LINE_RE = re.compile(r'^(\s*)([A-Za-z0-9_./-]+)\s*=\s*(.*?)\s*$')


def _normalize(key: str) -> str:
    return key.strip().replace('/', '.')


def parse_sysctl(content: str) -> Dict[str, str]:
    """Active settings in a sysctl file; later lines win"""
    config = {}
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(('#', ';')):
            continue
        match = _LINE_RE.match(line)
        if match:
            config[_normalize(match.group(2))] = match.group(3)
    return config


def read_sysctl_value(file_path: str, key: str) -> Optional[str]:
    content = read_text(file_path)
    if content is None:
        return None
    return parse_sysctl(content).get(_normalize(key))


def update_sysctl_content(content: str, key: str, value: str) -> str:
    """Rewrite every active ``key`` line to ``key = value``, or append one"""
    key = _normalize(key)
    canonical = f"{key} = {value}"
    lines = content.splitlines(keepends=True)
    found = False

    for index, line in enumerate(lines):
        stripped = line.strip()
        if not stripped or stripped.startswith(('#', ';')):
            continue
        match = _LINE_RE.match(line.rstrip('\r\n'))
        if match and _normalize(match.group(2)) == key:
            found = True
            ending = line[len(line.rstrip('\r\n')):]
            lines[index] = f"{match.group(1)}{canonical}{ending}"

    updated = ''.join(lines)
    if not found:
        if updated and not updated.endswith('\n'):
            updated += '\n'
        updated += canonical + '\n'
    return updated


def set_sysctl_value(file_path: str, key: str, value: str,
                     logger: Optional[logging.Logger] = None) -> bool:
    """Persist ``key = value`` in ``file_path``. Returns True if the file changed."""
    logger = logger or logging.getLogger('natbridge')
    content = read_text(file_path) or ''
    updated = update_sysctl_content(content, key, value)
    if updated == content:
        logger.debug(f"{key} already set to {value} in {file_path}")
        return False
    if not safe_write_file(file_path, updated, logger=logger):
        raise OSError(f"Could not write {file_path}")
    return True
