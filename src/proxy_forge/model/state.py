"""Runtime state dataclasses - what the tools on the host report back."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Severity(Enum):
    """Severity of a status problem."""

    CRITICAL = "critical"  # Site is down or about to break
    WARNING = "warning"  # Needs attention soon
    INFO = "info"


@dataclass
class DNSRecord:
    """A DNS record as held by the provider."""

    name: str
    type: str
    content: str
    ttl: int = 300
    proxied: bool = False
    id: str | None = None


@dataclass
class CertificateInfo:
    """A certbot lineage as reported by ``certbot certificates``."""

    name: str
    domains: list[str] = field(default_factory=list)
    expiry: datetime | None = None
    days_remaining: int | None = None
    valid: bool = True
    cert_path: str = ""
    key_path: str = ""
    key_type: str = ""

    def covers(self, names: list[str]) -> bool:
        """True if every name in ``names`` is on this certificate.

        ``*.example.com`` matches exactly one label under example.com.
        """
        domains = {d.lower() for d in self.domains}
        for name in names:
            name = name.lower()
            if name in domains:
                continue
            label, _, parent = name.partition(".")
            if not (label and parent and f"*.{parent}" in domains):
                return False
        return True


@dataclass
class FirewallStatus:
    """Parsed ``ufw status verbose``."""

    installed: bool = False
    active: bool = False
    default_incoming: str | None = None
    default_outgoing: str | None = None
    rules: list[str] = field(default_factory=list)


@dataclass
class JailStatus:
    """A fail2ban jail."""

    name: str
    currently_banned: int = 0
    total_banned: int = 0
    banned_ips: list[str] = field(default_factory=list)


@dataclass
class ContainerState:
    """Subset of ``docker inspect`` we care about."""

    name: str
    id: str = ""
    image: str = ""
    status: str = "unknown"  # running, exited, restarting, ...
    running: bool = False
    restart_count: int = 0
    restart_policy: str = "no"
    health: str | None = None  # healthy, unhealthy, starting, or None without healthcheck
    ports: dict[str, list[str]] = field(default_factory=dict)  # "3000/tcp" -> ["127.0.0.1:3000"]

    @property
    def is_healthy(self) -> bool:
        return self.running and self.health in (None, "healthy")


class ProbeOutcome(Enum):
    """Classification of an upstream reachability probe."""

    OK = "ok"
    REFUSED = "refused"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    UNKNOWN = "unknown"


@dataclass
class ProbeResult:
    """Result of probing an upstream from the host."""

    upstream: str
    outcome: ProbeOutcome
    status_code: int | None = None
    detail: str = ""

    @property
    def reachable(self) -> bool:
        return self.outcome in (ProbeOutcome.OK, ProbeOutcome.HTTP_ERROR)


@dataclass
class StepResult:
    """Outcome of one provisioning step."""

    step: str
    success: bool
    site: str | None = None
    skipped: bool = False
    message: str = ""
    output: str = ""

    @property
    def label(self) -> str:
        if self.skipped:
            return "SKIPPED"
        return "OK" if self.success else "FAILED"


@dataclass
class LogEntry:
    """Single run-log entry."""

    timestamp: datetime
    level: str  # INFO, WARN, ERROR, SUCCESS
    message: str


@dataclass
class RunLog:
    """Append-only log of a provisioning run."""

    entries: list[LogEntry] = field(default_factory=list)

    def log(self, message: str, level: str = "INFO") -> None:
        self.entries.append(LogEntry(timestamp=datetime.now(), level=level, message=message))

    def info(self, message: str) -> None:
        self.log(message, "INFO")

    def warn(self, message: str) -> None:
        self.log(message, "WARN")

    def error(self, message: str) -> None:
        self.log(message, "ERROR")

    def success(self, message: str) -> None:
        self.log(message, "SUCCESS")

    def to_list(self) -> list[dict]:
        return [
            {"timestamp": e.timestamp.isoformat(), "level": e.level, "message": e.message}
            for e in self.entries
        ]


@dataclass
class ProvisionReport:
    """Everything a provisioning run did (or would do, in dry-run)."""

    host: str
    dry_run: bool = False
    steps: list[StepResult] = field(default_factory=list)
    planned_commands: list[str] = field(default_factory=list)
    log: RunLog = field(default_factory=RunLog)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None

    @property
    def success(self) -> bool:
        return all(s.success for s in self.steps)

    def failed_sites(self) -> list[str]:
        return sorted({s.site for s in self.steps if not s.success and s.site})

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "dry_run": self.dry_run,
            "success": self.success,
            "steps": [
                {
                    "site": s.site,
                    "step": s.step,
                    "result": s.label,
                    "message": s.message,
                }
                for s in self.steps
            ],
            "planned_commands": self.planned_commands,
            "log": self.log.to_list(),
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class Problem:
    """A status problem found on the host."""

    severity: Severity
    subject: str
    message: str
    hint: str = ""


@dataclass
class SiteStatus:
    """Status of one manifest site."""

    domain: str
    vhost_enabled: bool = False
    certificate: CertificateInfo | None = None
    container: ContainerState | None = None
    probe: ProbeResult | None = None


@dataclass
class HostStatus:
    """Snapshot of the host collected by ``collect_status``."""

    host: str
    nginx_ok: bool = False
    nginx_test_output: str = ""
    firewall: FirewallStatus = field(default_factory=FirewallStatus)
    jails: list[JailStatus] = field(default_factory=list)
    renewal_timer_active: bool | None = None
    sites: list[SiteStatus] = field(default_factory=list)
    collected_at: datetime = field(default_factory=datetime.now)

    def problems(self) -> list[Problem]:
        """Derive problems, most severe first."""
        found: list[Problem] = []
        if not self.nginx_ok:
            found.append(Problem(Severity.CRITICAL, "nginx", "nginx -t fails", self.nginx_test_output[-300:]))
        if not self.firewall.active:
            found.append(Problem(
                Severity.WARNING, "firewall", "ufw is not active",
                "Run 'proxy-forge firewall apply' with your manifest.",
            ))
        if self.renewal_timer_active is False:
            found.append(Problem(Severity.WARNING, "certbot", "certbot.timer is not active",
                                 "Certificates will not renew automatically."))

        for site in self.sites:
            if not site.vhost_enabled:
                found.append(Problem(Severity.CRITICAL, site.domain, "virtual host is not enabled"))
            cert = site.certificate
            if cert is not None and cert.days_remaining is not None:
                if cert.days_remaining < 14:
                    found.append(Problem(
                        Severity.CRITICAL, site.domain,
                        f"certificate expires in {cert.days_remaining} day(s)",
                        "Run 'proxy-forge cert renew'.",
                    ))
                elif cert.days_remaining < 30:
                    found.append(Problem(
                        Severity.WARNING, site.domain,
                        f"certificate expires in {cert.days_remaining} day(s)",
                    ))
            if site.container is not None and not site.container.running:
                found.append(Problem(
                    Severity.CRITICAL, site.domain,
                    f"container {site.container.name} is {site.container.status}",
                    f"docker logs {site.container.name}",
                ))
            elif site.container is not None and site.container.health == "unhealthy":
                found.append(Problem(
                    Severity.WARNING, site.domain, f"container {site.container.name} is unhealthy",
                ))
            if site.probe is not None and not site.probe.reachable:
                found.append(Problem(
                    Severity.CRITICAL, site.domain,
                    f"upstream {site.probe.upstream} {site.probe.outcome.value}",
                    "nginx will answer 502 until the upstream listens.",
                ))

        order = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}
        return sorted(found, key=lambda p: order[p.severity])

    def exit_code(self) -> int:
        """CI-friendly exit code: 2 critical, 1 warning, 0 clean."""
        code = 0
        for problem in self.problems():
            if problem.severity == Severity.CRITICAL:
                return 2
            if problem.severity == Severity.WARNING:
                code = 1
        return code

    def to_dict(self) -> dict:
        def _cert(c: CertificateInfo | None):
            if c is None:
                return None
            return {
                "name": c.name,
                "domains": c.domains,
                "expiry": c.expiry.isoformat() if c.expiry else None,
                "days_remaining": c.days_remaining,
                "valid": c.valid,
            }

        return {
            "host": self.host,
            "nginx_ok": self.nginx_ok,
            "firewall": {
                "active": self.firewall.active,
                "default_incoming": self.firewall.default_incoming,
                "rules": self.firewall.rules,
            },
            "fail2ban": [{"jail": j.name, "banned": j.currently_banned} for j in self.jails],
            "renewal_timer_active": self.renewal_timer_active,
            "sites": [
                {
                    "domain": s.domain,
                    "vhost_enabled": s.vhost_enabled,
                    "certificate": _cert(s.certificate),
                    "container": (
                        {"name": s.container.name, "status": s.container.status,
                         "restart_count": s.container.restart_count, "health": s.container.health}
                        if s.container else None
                    ),
                    "upstream": (
                        {"target": s.probe.upstream, "outcome": s.probe.outcome.value,
                         "status_code": s.probe.status_code}
                        if s.probe else None
                    ),
                }
                for s in self.sites
            ],
            "problems": [
                {"severity": p.severity.value, "subject": p.subject, "message": p.message}
                for p in self.problems()
            ],
            "collected_at": self.collected_at.isoformat(),
        }
