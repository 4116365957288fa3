import io
import sys
from pathlib import Path

import pytest

_THIS_DIR = Path(__file__).resolve().parent
_REPO_ROOT = _THIS_DIR.parent

for path in (str(_REPO_ROOT), str(_THIS_DIR)):
    if path not in sys.path:
        sys.path.insert(0, path)

from fakes.fake_gateway import healthy_gateway  # noqa: E402
from fakes.fake_logger import FakeLogger  # noqa: E402
from fakes.sample_files import HEALTHY_INTERFACES, HEALTHY_SYSCTL  # noqa: E402
from natbridge.config import Settings  # noqa: E402
from natbridge.output import ColorManager, StatusPrinter  # noqa: E402


@pytest.fixture
def settings(tmp_path):
    interfaces = tmp_path / "interfaces"
    interfaces.write_text(HEALTHY_INTERFACES)
    sysctl = tmp_path / "sysctl.conf"
    sysctl.write_text(HEALTHY_SYSCTL)
    return Settings(
        interfaces_file=str(interfaces),
        sysctl_file=str(sysctl),
        iptables_rules_file=str(tmp_path / "iptables" / "rules.v4"),
        backup_dir=str(tmp_path / "backups"),
        settle_delay=0,
        probe_timeout=1,
    )


@pytest.fixture
def gateway(settings):
    return healthy_gateway(settings.interfaces_file)


@pytest.fixture
def logger():
    return FakeLogger()


@pytest.fixture
def printer(logger):
    stream = io.StringIO()
    return StatusPrinter(logger, ColorManager(stream), stream=stream)
