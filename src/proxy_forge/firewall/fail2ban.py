"""fail2ban adapter - jail.local rendering and service control."""

import logging
import re
import shlex
from dataclasses import dataclass

from proxy_forge.connector.base import BaseConnector
from proxy_forge.model.manifest import Fail2banSpec
from proxy_forge.model.state import JailStatus
from proxy_forge.proxy.renderer import is_managed, managed_marker, template_environment
from proxy_forge.supervisor.systemd import SystemdSupervisor

logger = logging.getLogger(__name__)

JAIL_LOCAL = "/etc/fail2ban/jail.local"
SERVICE = "fail2ban"


@dataclass
class JailDefinition:
    name: str
    port: str
    logpath: str | None = None


# Jails fail2ban ships filters for; anything else is enabled with port http,https
KNOWN_JAILS = {
    "sshd": JailDefinition("sshd", "ssh"),
    "nginx-http-auth": JailDefinition("nginx-http-auth", "http,https", "/var/log/nginx/error.log"),
    "nginx-botsearch": JailDefinition("nginx-botsearch", "http,https", "/var/log/nginx/access.log"),
    "nginx-limit-req": JailDefinition("nginx-limit-req", "http,https", "/var/log/nginx/error.log"),
    "nginx-bad-request": JailDefinition("nginx-bad-request", "http,https", "/var/log/nginx/access.log"),
    "recidive": JailDefinition("recidive", "all", "/var/log/fail2ban.log"),
}


@dataclass
class Fail2banResult:
    success: bool
    changed: bool = False
    backup_path: str | None = None
    error: str | None = None


class Fail2banManager:
    """Writes jail.local and keeps fail2ban running."""

    def __init__(self, connector: BaseConnector) -> None:
        self.connector = connector
        self.systemd = SystemdSupervisor(connector)
        self.env = template_environment()

    def render_jail(self, spec: Fail2banSpec) -> str:
        jails = [KNOWN_JAILS.get(name, JailDefinition(name, "http,https")) for name in spec.jails]
        content = self.env.get_template("jail.local.j2").render(
            spec=spec,
            jails=jails,
            marker=managed_marker("fail2ban"),
        )
        return content.rstrip() + "\n"

    def apply(self, spec: Fail2banSpec, *, force: bool = False) -> Fail2banResult:
        """Write jail.local, validate it and keep fail2ban enabled and running.

        A jail.local without the managed marker is refused unless ``force``.
        """
        if not self.connector.which("fail2ban-client"):
            return Fail2banResult(success=False, error="fail2ban is not installed")

        content = self.render_jail(spec)
        current = self.connector.read_file(JAIL_LOCAL)
        result = Fail2banResult(success=False)

        if current is not None and not force and not is_managed(current):
            result.error = f"{JAIL_LOCAL} exists and is not managed by proxy-forge (use --force to overwrite)"
            return result

        if current != content:
            if current is not None:
                result.backup_path = f"{JAIL_LOCAL}.bak"
                self.connector.run(f"cp {JAIL_LOCAL} {result.backup_path}")
            if not self.connector.write_file(JAIL_LOCAL, content, mode="644"):
                result.error = f"Failed to write {JAIL_LOCAL}"
                return result
            result.changed = True

        test = self.connector.run("fail2ban-client -t", timeout=30)
        if not test.success:
            result.error = f"fail2ban configuration test failed: {test.output}"
            if result.backup_path:
                self.connector.run(f"cp {result.backup_path} {JAIL_LOCAL}")
            elif result.changed:
                self.connector.run(f"rm -f {JAIL_LOCAL}")
            return result

        if result.changed:
            restarted = self.systemd.restart(SERVICE)
            if not restarted.success:
                result.error = f"systemctl restart {SERVICE} failed: {restarted.message}"
                return result
        service = self.systemd.ensure_active(SERVICE)
        if not service.success:
            result.error = f"systemctl enable --now {SERVICE} failed: {service.message}"
            return result

        if self.connector.dry_run:
            result.success = True
            return result

        state = self.systemd.state(SERVICE)
        result.success = state == "active"
        if not result.success:
            result.error = f"fail2ban is {state or 'not active'}"
        return result

    def status(self) -> list[JailStatus]:
        """Per-jail ban counters from fail2ban-client."""
        overview = self.connector.run("fail2ban-client status", timeout=15)
        if not overview.success:
            return []
        match = re.search(r"Jail list:\s*(.*)", overview.stdout)
        if not match:
            return []
        names = [n.strip() for n in match.group(1).split(",") if n.strip()]
        return [self.jail_status(name) for name in names]

    def jail_status(self, name: str) -> JailStatus:
        jail = JailStatus(name=name)
        result = self.connector.run(f"fail2ban-client status {shlex.quote(name)}", timeout=15)
        if not result.success:
            return jail
        for raw in result.stdout.splitlines():
            line = raw.strip(" |`-\t")
            if line.startswith("Currently banned:"):
                jail.currently_banned = int(line.split(":", 1)[1].strip() or 0)
            elif line.startswith("Total banned:"):
                jail.total_banned = int(line.split(":", 1)[1].strip() or 0)
            elif line.startswith("Banned IP list:"):
                jail.banned_ips = line.split(":", 1)[1].split()
        return jail
