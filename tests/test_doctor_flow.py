import random

import pytest
import yaml

from fakes.fake_gateway import broken_gateway, healthy_gateway
from fakes.sample_files import BROKEN_INTERFACES, BROKEN_SYSCTL, HEALTHY_INTERFACES
from natbridge.cli import main
from natbridge.doctor import BridgeDoctor
from natbridge.interfaces import InterfaceConfigDocument
from natbridge.models import FirewallRule, Issue


def read(path):
    with open(path) as f:
        return f.read()


@pytest.fixture
def broken(settings):
    with open(settings.interfaces_file, 'w') as f:
        f.write(BROKEN_INTERFACES)
    with open(settings.sysctl_file, 'w') as f:
        f.write(BROKEN_SYSCTL)
    return broken_gateway(settings.interfaces_file)


def make_doctor(settings, gateway, printer, logger):
    return BridgeDoctor(settings, gateway, printer, logger=logger, rng=random.Random(1))


def test_broken_host_is_repaired_in_one_run(broken, settings, printer, logger):
    report = make_doctor(settings, broken, printer, logger).run()

    assert report.issues.names() == [
        'nat_bridge_missing', 'nat_bridge_not_configured', 'masquerade_rule_missing',
        'iptables_persistent_missing', 'forward_rule_missing', 'ip_forward_disabled',
        'ip_forward_not_persistent',
    ]
    assert all(report.fixes.values())
    assert report.rules_persisted
    assert report.verified

    subnet = settings.default_subnet
    assert broken.count_rule(FirewallRule.masquerade(subnet, 'vmbr0')) == 1
    assert broken.count_rule(FirewallRule.forward_accept(subnet)) == 1
    assert broken.ip_forward
    assert 'iptables-persistent' in broken.packages
    assert broken.links['vmbr1'].cidr == settings.default_address
    assert 'MASQUERADE' in read(settings.iptables_rules_file)

    stanza = InterfaceConfigDocument.load(settings.interfaces_file).iface('vmbr1')
    assert stanza.get('bridge-ports') == 'none'
    assert read(settings.interfaces_file).startswith(BROKEN_INTERFACES)


def test_second_run_finds_nothing(broken, settings, printer, logger):
    make_doctor(settings, broken, printer, logger).run()
    interfaces_after_fix = read(settings.interfaces_file)

    report = make_doctor(settings, broken, printer, logger).run()

    assert report.issues.names() == []
    assert report.fixes == {}
    assert read(settings.interfaces_file) == interfaces_after_fix


def test_backups_hold_pre_run_contents(broken, settings, printer, logger):
    report = make_doctor(settings, broken, printer, logger).run()

    assert read(report.backup.files['interfaces']) == BROKEN_INTERFACES
    assert read(report.backup.files['sysctl']) == BROKEN_SYSCTL
    assert 'MASQUERADE' not in read(report.backup.files['iptables'])


def test_back_to_back_runs_keep_first_backup(broken, settings, printer, logger, monkeypatch):
    monkeypatch.setattr('natbridge.backup.timestamp', lambda: '20260101-120000')

    first = make_doctor(settings, broken, printer, logger).run()
    second = make_doctor(settings, broken, printer, logger).run()

    assert first.backup.timestamp != second.backup.timestamp
    assert read(first.backup.files['interfaces']) == BROKEN_INTERFACES
    assert read(first.backup.files['sysctl']) == BROKEN_SYSCTL
    assert read(second.backup.files['interfaces']) != BROKEN_INTERFACES


def test_check_only_changes_nothing(broken, settings, printer, logger, tmp_path):
    report = make_doctor(settings, broken, printer, logger).run(check_only=True)

    assert Issue.NAT_BRIDGE_MISSING in report.issues
    assert report.backup is None
    assert report.fixes == {}
    assert report.verified is None
    assert broken.calls == []
    assert read(settings.interfaces_file) == BROKEN_INTERFACES
    assert not (tmp_path / "backups").exists()


def test_healthy_host_is_left_alone(gateway, settings, printer, logger):
    doctor = make_doctor(settings, gateway, printer, logger)
    report = doctor.run()
    doctor.print_summary(report)

    assert not report.issues
    assert report.verified is None
    assert gateway.calls == []
    assert read(settings.interfaces_file) == HEALTHY_INTERFACES
    assert 'No issues found' in printer.stream.getvalue()


def test_manual_issue_is_reported_but_not_fixed(gateway, settings, printer, logger):
    gateway.internet = False
    doctor = make_doctor(settings, gateway, printer, logger)

    report = doctor.run()
    doctor.print_summary(report)

    assert report.issues.names() == ['no_internet']
    assert report.fixes == {}
    assert report.verified is False
    assert 'manual attention required' in printer.stream.getvalue()


@pytest.fixture
def config_file(settings, tmp_path):
    path = tmp_path / "natbridge.yaml"
    path.write_text(yaml.safe_dump({
        'interfaces_file': settings.interfaces_file,
        'sysctl_file': settings.sysctl_file,
        'iptables_rules_file': settings.iptables_rules_file,
        'backup_dir': settings.backup_dir,
        'settle_delay': 0,
    }))
    return str(path)


def test_cli_lists_rules(capsys):
    assert main(['--list-rules', '--no-color']) == 0
    out = capsys.readouterr().out
    assert 'forwarding' in out
    assert 'mac' in out


def test_cli_requires_root(gateway, config_file, capsys):
    gateway.root = False
    assert main(['--config', config_file], gateway=gateway) == 1
    assert 'root' in capsys.readouterr().out


def test_cli_healthy_run(gateway, config_file, capsys):
    assert main(['--config', config_file, '--no-color'], gateway=gateway) == 0
    assert 'Found 0 issue(s)' in capsys.readouterr().out


def test_cli_repairs_broken_host(broken, config_file, settings):
    assert main(['--config', config_file, '--no-color'], gateway=broken) == 0
    assert broken.links['vmbr1'].cidr == settings.default_address


def test_cli_skip_rule(gateway, config_file, capsys):
    gateway.internet = False
    code = main(['--config', config_file, '--check-only', '--skip-rule', 'connectivity'],
                gateway=gateway)
    assert code == 0
    assert 'no_internet' not in capsys.readouterr().out


def test_cli_missing_config_fails(gateway, tmp_path, capsys):
    assert main(['--config', str(tmp_path / "nope.yaml")], gateway=gateway) == 1


def test_cli_backup_failure_fails(broken, config_file, settings):
    with open(settings.backup_dir, 'w') as f:
        f.write("")
    assert main(['--config', config_file], gateway=broken) == 1
    assert read(settings.interfaces_file) == BROKEN_INTERFACES
