import pytest

from natbridge.errors import CommandError
from natbridge.gateway import LinuxGateway
from natbridge.models import FirewallRule

IP_LINK_OUTPUT = """\
1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536 qdisc noqueue state UNKNOWN mode DEFAULT group default qlen 1000\\    link/loopback 00:00:00:00:00:00 brd 00:00:00:00:00:00
2: eno1: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc mq master vmbr0 state UP mode DEFAULT group default qlen 1000\\    link/ether AA:BB:CC:00:00:01 brd ff:ff:ff:ff:ff:ff
3: vmbr0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc noqueue state UP mode DEFAULT group default qlen 1000\\    link/ether aa:bb:cc:00:00:01 brd ff:ff:ff:ff:ff:ff
4: vmbr1: <BROADCAST,MULTICAST> mtu 1500 qdisc noop state DOWN mode DEFAULT group default qlen 1000\\    link/ether 52:54:00:12:34:56 brd ff:ff:ff:ff:ff:ff
5: veth100i0@if2: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc noqueue master vmbr1 state UP\\    link/ether fe:00:00:00:01:02 brd ff:ff:ff:ff:ff:ff link-netnsid 0
"""


class ScriptedGateway(LinuxGateway):
    """LinuxGateway whose commands return canned results"""

    def __init__(self, responses):
        super().__init__()
        self.responses = responses
        self.commands = []

    def run_command(self, cmd, timeout=30, env=None, input_text=None):
        self.commands.append((list(cmd), env, input_text))
        return self.responses.get(tuple(cmd), (1, "", "unexpected command"))


def test_list_links_parses_mac_and_master():
    gw = ScriptedGateway({('ip', '-o', 'link', 'show'): (0, IP_LINK_OUTPUT, "")})

    links = {link.name: link for link in gw.list_links()}

    assert sorted(links) == ['eno1', 'veth100i0', 'vmbr0', 'vmbr1']
    assert links['eno1'].mac == 'aa:bb:cc:00:00:01'
    assert links['eno1'].master == 'vmbr0'
    assert links['vmbr0'].master is None
    assert links['veth100i0'].master == 'vmbr1'


def test_link_is_up_reads_flags():
    gw = ScriptedGateway({
        ('ip', '-o', 'link', 'show', 'dev', 'vmbr0'): (0, IP_LINK_OUTPUT.splitlines()[2], ""),
        ('ip', '-o', 'link', 'show', 'dev', 'vmbr1'): (0, IP_LINK_OUTPUT.splitlines()[3], ""),
    })
    assert gw.link_is_up('vmbr0')
    assert not gw.link_is_up('vmbr1')
    assert not gw.link_is_up('vmbr9')


def test_ipv4_cidr_takes_first_address():
    output = ("4: vmbr1    inet 10.10.10.1/24 brd 10.10.10.255 scope global vmbr1\\ valid_lft forever\n"
              "4: vmbr1    inet 10.10.20.1/24 scope global vmbr1\\ valid_lft forever\n")
    gw = ScriptedGateway({('ip', '-o', '-4', 'addr', 'show', 'dev', 'vmbr1'): (0, output, "")})
    assert gw.ipv4_cidr('vmbr1') == '10.10.10.1/24'
    assert gw.ipv4_cidr('vmbr0') is None


def test_egress_interface_from_route_lookup():
    gw = ScriptedGateway({
        ('ip', 'route', 'get', '8.8.8.8'): (
            0, "8.8.8.8 via 203.0.113.1 dev vmbr0 src 203.0.113.10 uid 0\n    cache\n", ""),
    })
    assert gw.egress_interface('8.8.8.8') == 'vmbr0'
    assert gw.egress_interface('1.1.1.1') is None


def test_rule_commands_use_wait_flag():
    rule = FirewallRule.masquerade('10.10.10.0/24', 'vmbr0')
    check = ('iptables', '-w', '-t', 'nat', '-C', 'POSTROUTING',
             '-s', '10.10.10.0/24', '-o', 'vmbr0', '-j', 'MASQUERADE')
    gw = ScriptedGateway({check: (0, "", "")})

    assert gw.rule_exists(rule)
    assert not gw.delete_rule(rule)
    assert gw.commands[-1][0][:6] == ['iptables', '-w', '-t', 'nat', '-D', 'POSTROUTING']


def test_package_installed_checks_status():
    gw = ScriptedGateway({
        ('dpkg-query', '-W', '-f=${Status}', 'iptables-persistent'): (0, "install ok installed", ""),
        ('dpkg-query', '-W', '-f=${Status}', 'netfilter-persistent'): (0, "deinstall ok config-files", ""),
    })
    assert gw.package_installed('iptables-persistent')
    assert not gw.package_installed('netfilter-persistent')


def test_install_preseeds_and_runs_noninteractive():
    gw = ScriptedGateway({
        ('apt-get', 'install', '-y', '-q', 'iptables-persistent'): (0, "", ""),
        ('debconf-set-selections',): (0, "", ""),
    })

    assert gw.install_package('iptables-persistent')

    preseed, install = gw.commands
    assert 'autosave_v4 boolean true' in preseed[2]
    assert install[1] == {'DEBIAN_FRONTEND': 'noninteractive'}


def test_install_failure_raises_command_error():
    gw = ScriptedGateway({('apt-get', 'install', '-y', '-q', 'foo'): (100, "", "E: no foo\n")})

    with pytest.raises(CommandError) as excinfo:
        gw.install_package('foo')

    assert excinfo.value.code == 100
    assert 'E: no foo' in str(excinfo.value)


def test_save_rules_without_helper(monkeypatch):
    monkeypatch.setattr('natbridge.gateway.shutil.which', lambda name: None)
    assert ScriptedGateway({}).save_rules_with_helper() is None


def test_run_command_reports_missing_tool():
    code, stdout, stderr = LinuxGateway().run_command(['natbridge-no-such-tool-xyz'])
    assert code == -1
    assert stdout == ""
    assert stderr
