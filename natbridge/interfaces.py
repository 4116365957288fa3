"""
ifupdown interfaces file handling.

The file is split into stanzas at header lines (``auto``, ``iface``,
``allow-*``, ``mapping``). Each stanza keeps its raw lines, so rendering an
unedited document gives back the original text byte for byte. Only the
stanzas an edit touches change.

Within a stanza, the *body* is the run of lines after the header up to the
first blank line. Directive lookups and insertions only look at the body;
anything after the blank line (comments, spacing) is carried along as is.
End of file ends a body just like a blank line does.
"""

import ipaddress
import os
import re
from typing import List, Optional, Tuple

from .files import safe_write_file

HEADER_RE = re.compile(r'^(auto|iface|mapping|allow-[\w-]+)(?:\s+(.*?))?\s*$')

# Directive keys accept both the dash and the older underscore spelling
BRIDGE_DIRECTIVES: Tuple[Tuple[str, str], ...] = (
    ('bridge-ports', 'none'),
    ('bridge-stp', 'off'),
    ('bridge-fd', '0'),
)

POST_UP_KEYS = ('post-up', 'up')
POST_DOWN_KEYS = ('post-down', 'down', 'pre-down')

DEFAULT_INDENT = '    '


def _normalize_key(key: str) -> str:
    return key.replace('_', '-').lower()


def _ensure_newline(line: str) -> str:
    return line if line.endswith('\n') else line + '\n'


def _is_blank(line: str) -> bool:
    return not line.strip()


class Stanza:
    """One header line and the raw lines that follow it"""

    def __init__(self, lines: List[str]):
        self.lines = lines
        match = HEADER_RE.match(lines[0].rstrip('\r\n')) if lines else None
        if match:
            self.kind = match.group(1)
            self.args = (match.group(2) or '').split()
        else:
            # Text before the first header
            self.kind = ''
            self.args = []

    @property
    def is_preamble(self) -> bool:
        return self.kind == ''

    @property
    def name(self) -> Optional[str]:
        return self.args[0] if self.args else None

    @property
    def family(self) -> Optional[str]:
        if self.kind == 'iface' and len(self.args) > 1:
            return self.args[1]
        return None

    @property
    def method(self) -> Optional[str]:
        if self.kind == 'iface' and len(self.args) > 2:
            return self.args[2]
        return None

    def names(self) -> List[str]:
        """Interfaces the header refers to (``auto`` may list several)"""
        if self.kind in ('iface', 'mapping'):
            return self.args[:1]
        return list(self.args)

    @property
    def body_end(self) -> int:
        """Index one past the last body line"""
        start = 0 if self.is_preamble else 1
        for index in range(start, len(self.lines)):
            if _is_blank(self.lines[index]):
                return index
        return len(self.lines)

    def body(self) -> List[str]:
        start = 0 if self.is_preamble else 1
        return self.lines[start:self.body_end]

    def directives(self) -> List[Tuple[int, str, str]]:
        """(line index, normalized key, value) for each directive in the body"""
        start = 0 if self.is_preamble else 1
        result = []
        for index in range(start, self.body_end):
            text = self.lines[index].strip()
            if not text or text.startswith('#'):
                continue
            parts = text.split(None, 1)
            value = parts[1] if len(parts) > 1 else ''
            result.append((index, _normalize_key(parts[0]), value))
        return result

    def get(self, key: str) -> Optional[str]:
        """Value of the first directive named ``key``"""
        key = _normalize_key(key)
        for _, dkey, value in self.directives():
            if dkey == key:
                return value
        return None

    def has_directive(self, key: str) -> bool:
        return self.get(key) is not None

    def has_command(self, keys, needle: str) -> bool:
        """True if a directive in ``keys`` runs a command containing ``needle``"""
        for _, dkey, value in self.directives():
            if dkey in keys and needle in value:
                return True
        return False

    def indent(self) -> str:
        for line in self.body():
            stripped = line.lstrip(' \t')
            if stripped.strip() and stripped != line:
                return line[:len(line) - len(stripped)]
        return DEFAULT_INDENT

    def insert(self, index: int, new_lines: List[str]):
        # The line before the insertion point may be the last line of the file
        if index > 0:
            self.lines[index - 1] = _ensure_newline(self.lines[index - 1])
        self.lines[index:index] = [_ensure_newline(line) for line in new_lines]

    def render(self) -> str:
        return ''.join(self.lines)


class InterfaceConfigDocument:
    """An interfaces file as an ordered list of stanzas"""

    def __init__(self, stanzas: Optional[List[Stanza]] = None):
        self.stanzas = stanzas or []

    @classmethod
    def parse(cls, text: str) -> 'InterfaceConfigDocument':
        stanzas = []
        current: List[str] = []
        for line in text.splitlines(keepends=True):
            if HEADER_RE.match(line.rstrip('\r\n')):
                if current:
                    stanzas.append(Stanza(current))
                current = [line]
            else:
                current.append(line)
        if current:
            stanzas.append(Stanza(current))
        return cls(stanzas)

    @classmethod
    def load(cls, path: str) -> 'InterfaceConfigDocument':
        """Parse ``path``; a missing file is an empty document"""
        if not os.path.exists(path):
            return cls()
        with open(path, 'r') as f:
            return cls.parse(f.read())

    def render(self) -> str:
        return ''.join(stanza.render() for stanza in self.stanzas)

    def save(self, path: str, logger=None) -> bool:
        return safe_write_file(path, self.render(), logger=logger)

    def iface(self, name: str, family: str = 'inet') -> Optional[Stanza]:
        """First ``iface <name> <family> ...`` stanza"""
        for stanza in self.stanzas:
            if stanza.kind == 'iface' and stanza.name == name and stanza.family == family:
                return stanza
        return None

    def has_auto(self, name: str) -> bool:
        return any(stanza.kind == 'auto' and name in stanza.names()
                   for stanza in self.stanzas)

    def declares(self, name: str) -> bool:
        return self.iface(name) is not None

    def address_of(self, name: str) -> Optional[str]:
        """First ``address`` of the interface as CIDR.

        The prefix comes from the address itself, else from ``netmask``,
        else /24.
        """
        stanza = self.iface(name)
        if stanza is None:
            return None
        address = stanza.get('address')
        if not address:
            return None
        address = address.split()[0]
        if '/' in address:
            return address
        netmask = stanza.get('netmask')
        if netmask:
            try:
                return ipaddress.ip_interface(f"{address}/{netmask.split()[0]}").with_prefixlen
            except ValueError:
                pass
        return f"{address}/24"

    def append_text(self, text: str):
        """Append raw stanza text, separated from existing content by a blank line"""
        existing = self.render()
        if existing and not existing.endswith('\n'):
            existing += '\n'
        if existing and not existing.endswith('\n\n'):
            existing += '\n'
        self.stanzas = InterfaceConfigDocument.parse(existing + text).stanzas

    def insert_after_header(self, name: str, new_lines: List[str]) -> bool:
        stanza = self.iface(name)
        if stanza is None or not new_lines:
            return False
        indent = stanza.indent()
        stanza.insert(1, [indent + line for line in new_lines])
        return True

    def insert_at_body_end(self, name: str, new_lines: List[str]) -> bool:
        stanza = self.iface(name)
        if stanza is None or not new_lines:
            return False
        indent = stanza.indent()
        stanza.insert(stanza.body_end, [indent + line for line in new_lines])
        return True

    def set_directive(self, name: str, key: str, value: str) -> bool:
        """Replace the first ``key`` directive, or insert one after the header.

        Returns False if the stanza is missing or already has that value.
        """
        stanza = self.iface(name)
        if stanza is None:
            return False
        normalized = _normalize_key(key)
        for index, dkey, current in stanza.directives():
            if dkey == normalized:
                if current == value:
                    return False
                line = stanza.lines[index]
                indent = line[:len(line) - len(line.lstrip(' \t'))]
                ending = '\n' if line.endswith('\n') else ''
                stanza.lines[index] = f"{indent}{key} {value}{ending}"
                return True
        return self.insert_after_header(name, [f"{key} {value}"])


def missing_bridge_directives(stanza: Stanza) -> List[Tuple[str, str]]:
    """Bridge directives from BRIDGE_DIRECTIVES the stanza does not set"""
    return [(key, value) for key, value in BRIDGE_DIRECTIVES
            if not stanza.has_directive(key)]


def has_forwarding_post_up(stanza: Stanza) -> bool:
    return stanza.has_command(POST_UP_KEYS, 'ip_forward')


def has_masquerade_post_up(stanza: Stanza) -> bool:
    return stanza.has_command(POST_UP_KEYS, 'MASQUERADE')


def has_masquerade_post_down(stanza: Stanza) -> bool:
    return stanza.has_command(POST_DOWN_KEYS, 'MASQUERADE')
