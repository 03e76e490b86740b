from types import SimpleNamespace

from proxy_forge.firewall.ufw import UfwFirewall, parse_ufw_status, rule_matches
from proxy_forge.model.manifest import FirewallRule, FirewallSpec

ACTIVE_STATUS = """Status: active
Logging: on (low)
Default: deny (incoming), allow (outgoing), disabled (routed)
New profiles: skip

To                         Action      From
--                         ------      ----
22/tcp                     LIMIT IN    Anywhere                   # ssh
80/tcp                     ALLOW IN    Anywhere                   # http
443/tcp                    ALLOW IN    Anywhere                   # https
22/tcp (v6)                LIMIT IN    Anywhere (v6)              # ssh
"""


class _FakeSSH:
    """Answers which/ufw status and records ufw changes."""

    host = "fake"
    dry_run = False

    def __init__(self, status_output: str, installed: bool = True, fail_on: str | None = None):
        self.status_output = status_output
        self.installed = installed
        self.fail_on = fail_on
        self.commands = []

    def which(self, binary):
        return self.installed

    def run(self, cmd, use_sudo=None, timeout=None):
        self.commands.append(cmd)
        if cmd == "ufw status verbose":
            return SimpleNamespace(success=True, stdout=self.status_output, output=self.status_output)
        if self.fail_on and self.fail_on in cmd:
            return SimpleNamespace(success=False, stdout="", output="ERROR: Bad port")
        return SimpleNamespace(success=True, stdout="Rule added", output="Rule added")


def test_parse_ufw_status():
    status = parse_ufw_status(ACTIVE_STATUS)
    assert status.installed and status.active
    assert status.default_incoming == "deny"
    assert status.default_outgoing == "allow"
    assert len(status.rules) == 4
    assert status.rules[0] == "22/tcp LIMIT IN Anywhere # ssh"


def test_parse_inactive():
    status = parse_ufw_status("Status: inactive\n")
    assert status.active is False
    assert status.rules == []


def test_rule_matches():
    line = "80/tcp ALLOW IN Anywhere # http"
    assert rule_matches(FirewallRule(port="80"), line)
    assert not rule_matches(FirewallRule(port="80", action="deny"), line)
    assert not rule_matches(FirewallRule(port="8080"), line)
    assert not rule_matches(FirewallRule(port="80", source="10.0.0.0/8"), line)
    assert rule_matches(FirewallRule(port="5432", source="10.0.0.0/8"), "5432/tcp ALLOW IN 10.0.0.0/8")
    assert not rule_matches(FirewallRule(port="22", action="limit"), "22/tcp (v6) LIMIT IN Anywhere (v6)")


def test_rule_args():
    assert UfwFirewall.rule_args(FirewallRule(port="443", comment="https")) == ["allow", "443/tcp", "comment", "https"]
    assert UfwFirewall.rule_args(FirewallRule(port="5432", source="10.0.0.0/8")) == [
        "allow", "from", "10.0.0.0/8", "to", "any", "port", "5432", "proto", "tcp",
    ]
    assert UfwFirewall.rule_args(FirewallRule(port="53", proto="any", action="deny")) == ["deny", "53"]


def test_apply_on_fresh_host_allows_ssh_before_enable():
    ssh = _FakeSSH("Status: inactive\n")
    changes = UfwFirewall(ssh).apply(FirewallSpec())

    assert all(c.success for c in changes)
    ufw_commands = [c for c in ssh.commands if c.startswith("ufw ") and c != "ufw status verbose"]
    assert ufw_commands == [
        "ufw default deny incoming",
        "ufw default allow outgoing",
        "ufw limit 22/tcp comment ssh",
        "ufw allow 80/tcp comment http",
        "ufw allow 443/tcp comment https",
        "ufw --force enable",
    ]


def test_apply_converged_host_changes_nothing():
    ssh = _FakeSSH(ACTIVE_STATUS)
    changes = UfwFirewall(ssh).apply(FirewallSpec())

    assert not any(c.applied for c in changes)
    assert ssh.commands == ["ufw status verbose"]


def test_explicit_ssh_rule_replaces_limit():
    ssh = _FakeSSH("Status: inactive\n")
    spec = FirewallSpec(ssh_port=2222, rules=[FirewallRule(port="2222", comment="ssh")])
    UfwFirewall(ssh).apply(spec)
    assert "ufw allow 2222/tcp comment ssh" in ssh.commands
    assert not any("limit" in c for c in ssh.commands)


def test_apply_stops_on_failure():
    ssh = _FakeSSH("Status: inactive\n", fail_on="80/tcp")
    changes = UfwFirewall(ssh).apply(FirewallSpec())

    assert changes[-1].success is False
    assert "ufw --force enable" not in ssh.commands
    assert not any("443" in c for c in ssh.commands)


def test_not_installed():
    ssh = _FakeSSH("", installed=False)
    firewall = UfwFirewall(ssh)
    assert firewall.status().installed is False
    changes = firewall.apply(FirewallSpec())
    assert len(changes) == 1 and not changes[0].success


def test_delete_rule_and_disable():
    ssh = _FakeSSH(ACTIVE_STATUS)
    firewall = UfwFirewall(ssh)
    change = firewall.delete_rule(FirewallRule(port="8080", source="10.0.0.0/8"))
    assert change.success and change.applied
    firewall.disable()
    assert ssh.commands == [
        "ufw --force delete allow from 10.0.0.0/8 to any port 8080 proto tcp",
        "ufw disable",
    ]
