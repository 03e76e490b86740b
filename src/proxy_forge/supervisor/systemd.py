"""systemd unit supervision."""

import shlex

from proxy_forge.connector.base import BaseConnector
from proxy_forge.supervisor.docker import SupervisorResult


class SystemdSupervisor:
    """Checks and starts systemd units (nginx, fail2ban, docker, ...)."""

    def __init__(self, connector: BaseConnector) -> None:
        self.connector = connector

    def _query(self, verb: str, unit: str) -> str:
        return self.connector.run(f"systemctl {verb} {shlex.quote(unit)}", use_sudo=False).stdout.strip()

    def state(self, unit: str) -> str:
        """What ``systemctl is-active`` says about ``unit``, e.g. ``failed``."""
        return self._query("is-active", unit)

    def is_active(self, unit: str) -> bool:
        return self.state(unit) == "active"

    def is_enabled(self, unit: str) -> bool:
        return self._query("is-enabled", unit) == "enabled"

    def ensure_active(self, unit: str) -> SupervisorResult:
        """Enable and start ``unit`` unless it already is both."""
        if self.is_active(unit) and self.is_enabled(unit):
            return SupervisorResult(success=True, message=f"{unit} is active")
        result = self.connector.run(f"systemctl enable --now {shlex.quote(unit)}", timeout=60)
        return SupervisorResult(success=result.success, changed=result.success, message=result.output)

    def restart(self, unit: str) -> SupervisorResult:
        result = self.connector.run(f"systemctl restart {shlex.quote(unit)}", timeout=60)
        return SupervisorResult(success=result.success, changed=result.success, message=result.output)

    def reload(self, unit: str) -> SupervisorResult:
        result = self.connector.run(f"systemctl reload {shlex.quote(unit)}", timeout=60)
        return SupervisorResult(success=result.success, changed=result.success, message=result.output)
