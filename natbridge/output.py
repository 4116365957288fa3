"""
Terminal output helpers.

Colors, severity icons and the logger used by every component. Status lines
meant for the operator go through ``StatusPrinter``; diagnostic chatter goes
through the ``natbridge`` logger.
"""

import logging
import os
import sys
from enum import Enum


# Color codes for terminal output
class Colors:
    RED = '\033[91m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    WHITE = '\033[97m'
    BOLD = '\033[1m'
    RESET = '\033[0m'

    BRIGHT_RED = '\033[1;31m'
    BRIGHT_GREEN = '\033[1;32m'
    BRIGHT_YELLOW = '\033[1;33m'
    BRIGHT_CYAN = '\033[1;36m'


class Severity(Enum):
    """Severity levels for status lines and issues"""
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
    SUCCESS = "SUCCESS"


# Severity icons (text-based, no emojis)
class SeverityIcons:
    ERROR = "[!]"
    WARNING = "[⚠]"
    INFO = "[i]"
    SUCCESS = "[✓]"


class ColorManager:
    """Manages color output based on terminal capabilities and user preferences"""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout
        self.colors_enabled = self._should_use_colors()

    def _should_use_colors(self) -> bool:
        # NO_COLOR per no-color.org
        if os.environ.get('NO_COLOR'):
            return False

        isatty = getattr(self.stream, 'isatty', None)
        if not isatty or not isatty():
            return False

        term = os.environ.get('TERM', '')
        if term in ['dumb', 'unknown']:
            return False

        return True

    def set_colors_enabled(self, enabled: bool):
        """Override color settings (for --no-color flag)"""
        self.colors_enabled = enabled

    def colorize(self, text: str, severity: Severity) -> str:
        """Apply color coding based on severity"""
        if not self.colors_enabled:
            return text

        color_map = {
            Severity.ERROR: f"{Colors.BRIGHT_RED}{Colors.BOLD}",
            Severity.WARNING: f"{Colors.BRIGHT_YELLOW}{Colors.BOLD}",
            Severity.INFO: f"{Colors.BRIGHT_CYAN}",
            Severity.SUCCESS: f"{Colors.BRIGHT_GREEN}{Colors.BOLD}"
        }

        color = color_map.get(severity, Colors.WHITE)
        return f"{color}{text}{Colors.RESET}"

    def color(self, color_code: str, text: str) -> str:
        """Apply specific color if colors are enabled"""
        if not self.colors_enabled:
            return text
        return f"{color_code}{text}{Colors.RESET}"

    def get_severity_display(self, severity: Severity) -> str:
        """Get colored severity icon"""
        icon_map = {
            Severity.ERROR: SeverityIcons.ERROR,
            Severity.WARNING: SeverityIcons.WARNING,
            Severity.INFO: SeverityIcons.INFO,
            Severity.SUCCESS: SeverityIcons.SUCCESS
        }

        icon = icon_map.get(severity, SeverityIcons.INFO)
        return self.colorize(icon, severity)


class StatusPrinter:
    """Prints leveled status lines for the operator and mirrors them to the logger"""

    def __init__(self, logger: logging.Logger, color_manager: ColorManager = None, stream=None):
        self.logger = logger
        self.stream = stream or sys.stdout
        self.color_manager = color_manager or ColorManager(self.stream)

    def _emit(self, severity: Severity, message: str):
        icon = self.color_manager.get_severity_display(severity)
        print(f"{icon} {message}", file=self.stream)
        self.logger.debug(f"{severity.value}: {message}")

    def info(self, message: str):
        self._emit(Severity.INFO, message)

    def success(self, message: str):
        self._emit(Severity.SUCCESS, message)

    def warning(self, message: str):
        self._emit(Severity.WARNING, message)

    def error(self, message: str):
        self._emit(Severity.ERROR, message)

    def heading(self, text: str):
        print(f"\n{self.color_manager.color(Colors.BOLD, text)}", file=self.stream)


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Configure the natbridge logger"""
    logger = logging.getLogger('natbridge')
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
