from natbridge.models import BridgeState, FirewallRule, Issue, IssueSet, network_of


def test_issue_set_collapses_repeats_and_keeps_first_order():
    issues = IssueSet()
    assert issues.add(Issue.POST_UP_RULES_MISSING)
    assert issues.add(Issue.IP_FORWARD_DISABLED)
    assert not issues.add(Issue.POST_UP_RULES_MISSING)
    issues.extend([Issue.NO_INTERNET, Issue.IP_FORWARD_DISABLED])

    assert len(issues) == 3
    assert issues.names() == ['post_up_rules_missing', 'ip_forward_disabled', 'no_internet']
    assert Issue.NO_INTERNET in issues


def test_empty_issue_set_is_falsy():
    assert not IssueSet()
    assert IssueSet([Issue.NO_INTERNET])


def test_every_issue_has_details():
    for issue in Issue:
        assert issue.description
        assert issue.severity is not None


def test_network_of_zeroes_host_bits():
    assert network_of('192.168.1.1/24') == '192.168.1.0/24'
    assert network_of('10.20.30.200/25') == '10.20.30.128/25'


def test_bridge_state_subnet():
    assert BridgeState('vmbr1', exists=True, cidr='192.168.1.1/24').subnet == '192.168.1.0/24'
    missing = BridgeState('vmbr1')
    assert not missing.has_ipv4
    assert missing.subnet is None


def test_firewall_rule_arguments():
    masq = FirewallRule.masquerade('10.10.10.0/24', 'vmbr0')
    assert masq.to_iptables_args('-C') == [
        '-t', 'nat', '-C', 'POSTROUTING', '-s', '10.10.10.0/24', '-o', 'vmbr0', '-j', 'MASQUERADE']

    fwd = FirewallRule.forward_accept('10.10.10.0/24')
    assert fwd.to_iptables_args('-I') == [
        '-t', 'filter', '-I', 'FORWARD', '-s', '10.10.10.0/24', '-j', 'ACCEPT']
    assert str(fwd) == 'filter/FORWARD -s 10.10.10.0/24 -j ACCEPT'
