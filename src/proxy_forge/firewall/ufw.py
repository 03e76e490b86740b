"""UFW adapter - reads and converges the host firewall.

Rules are only ever added when missing from ``ufw status``; the SSH
port is allowed before the firewall is enabled so a provision run
can't lock its own session out.
"""

import logging
import shlex
from dataclasses import dataclass

from proxy_forge.connector.base import BaseConnector
from proxy_forge.model.manifest import FirewallAction, FirewallRule, FirewallSpec
from proxy_forge.model.state import FirewallStatus

logger = logging.getLogger(__name__)


@dataclass
class FirewallChange:
    """One command applied (or found unnecessary) while converging."""

    description: str
    command: str = ""
    applied: bool = False
    success: bool = True
    output: str = ""


def parse_ufw_status(output: str) -> FirewallStatus:
    """Parse ``ufw status verbose`` output."""
    status = FirewallStatus(installed=True)
    for raw in output.splitlines():
        line = raw.strip()
        if not line:
            continue
        low = line.lower()
        if low.startswith("status:"):
            status.active = "inactive" not in low and "active" in low
            continue
        if low.startswith("default:"):
            # Typical: "Default: deny (incoming), allow (outgoing), disabled (routed)"
            for part in low.split(":", 1)[1].split(","):
                part = part.strip()
                if "(incoming)" in part:
                    status.default_incoming = part.split()[0]
                elif "(outgoing)" in part:
                    status.default_outgoing = part.split()[0]
            continue
        if low.startswith("to ") or low.startswith("--") or low.startswith("logging:") or low.startswith("new profiles:"):
            continue
        if not any(word in low for word in ("allow", "deny", "reject", "limit")):
            continue
        status.rules.append(" ".join(line.replace("[", "").replace("]", "").split()))
    return status


def rule_matches(rule: FirewallRule, status_line: str) -> bool:
    """True if a ``ufw status`` line already implements ``rule``."""
    parts = status_line.lower().split()
    if len(parts) < 2:
        return False
    # numbered output starts with the rule number
    if parts[0].isdigit():
        parts = parts[1:]
    target = parts[0]
    action = parts[1]
    if "(v6)" in status_line.lower():
        return False

    port = rule.port
    expected_targets = {f"{port}/{rule.proto}"} if rule.proto != "any" else {port}
    if target not in expected_targets:
        return False
    if action != rule.action.value:
        return False

    source = rule.source or "anywhere"
    rest = " ".join(parts[2:])
    rest = rest.replace("in ", "", 1) if rest.startswith("in ") else rest
    return rest.split("#", 1)[0].strip().startswith(source.lower())


class UfwFirewall:
    """Adapter over the ufw CLI."""

    def __init__(self, connector: BaseConnector) -> None:
        self.connector = connector

    def is_installed(self) -> bool:
        return self.connector.which("ufw")

    def status(self) -> FirewallStatus:
        if not self.is_installed():
            return FirewallStatus(installed=False)
        result = self.connector.run("ufw status verbose", timeout=10)
        if not result.success:
            logger.warning("ufw status failed: %s", result.output)
            return FirewallStatus(installed=True)
        return parse_ufw_status(result.stdout)

    @staticmethod
    def rule_args(rule: FirewallRule) -> list[str]:
        """ufw arguments for ``rule``."""
        args = [rule.action.value]
        if rule.source:
            args += ["from", rule.source, "to", "any", "port", rule.port]
            if rule.proto != "any":
                args += ["proto", rule.proto]
        else:
            args.append(rule.port if rule.proto == "any" else f"{rule.port}/{rule.proto}")
        if rule.comment:
            args += ["comment", rule.comment]
        return args

    def _ufw(self, args: list[str]) -> FirewallChange:
        command = "ufw " + " ".join(shlex.quote(a) for a in args)
        result = self.connector.run(command, timeout=30)
        return FirewallChange(
            description=" ".join(args),
            command=command,
            applied=True,
            success=result.success,
            output=result.output,
        )

    def add_rule(self, rule: FirewallRule) -> FirewallChange:
        return self._ufw(self.rule_args(rule))

    def delete_rule(self, rule: FirewallRule) -> FirewallChange:
        return self._ufw(["--force", "delete"] + self.rule_args(rule))

    def set_default(self, direction: str, policy: str) -> FirewallChange:
        return self._ufw(["default", policy, direction])

    def enable(self) -> FirewallChange:
        return self._ufw(["--force", "enable"])

    def disable(self) -> FirewallChange:
        return self._ufw(["disable"])

    def apply(self, spec: FirewallSpec) -> list[FirewallChange]:
        """Converge the firewall to ``spec``.

        Order: default policies, SSH rule, remaining rules, enable.
        Stops at the first failing command.
        """
        changes: list[FirewallChange] = []
        current = self.status()
        if not current.installed:
            return [FirewallChange(description="ufw is not installed", success=False)]

        if current.default_incoming != spec.default_incoming:
            changes.append(self.set_default("incoming", spec.default_incoming))
        if current.default_outgoing != spec.default_outgoing:
            changes.append(self.set_default("outgoing", spec.default_outgoing))
        if changes and not changes[-1].success:
            return changes

        ssh_rule = FirewallRule(port=str(spec.ssh_port), proto="tcp", action=FirewallAction.LIMIT, comment="ssh")
        # an explicit rule for the ssh port replaces the default limit rule
        explicit_ssh = any(r.port == ssh_rule.port and not r.source for r in spec.rules)
        wanted = ([] if explicit_ssh else [ssh_rule]) + list(spec.rules)

        for rule in wanted:
            if any(rule_matches(rule, line) for line in current.rules):
                changes.append(FirewallChange(description=f"{' '.join(self.rule_args(rule))} (present)"))
                continue
            change = self.add_rule(rule)
            changes.append(change)
            if not change.success:
                logger.error("ufw %s failed: %s", change.description, change.output)
                return changes

        if not current.active:
            changes.append(self.enable())
        return changes
