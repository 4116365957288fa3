"""Exception types raised by natbridge."""


class NatBridgeError(Exception):
    """Base class for natbridge failures"""


class ConfigError(NatBridgeError):
    """Settings file could not be read or has invalid values"""


class CommandError(NatBridgeError):
    """A system command exited non-zero where success was required"""

    def __init__(self, cmd, code: int, stderr: str = ""):
        self.cmd = list(cmd)
        self.code = code
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"Command failed ({code}): {' '.join(self.cmd)}{detail}")


class RemediationError(NatBridgeError):
    """A corrective action could not be carried out"""
