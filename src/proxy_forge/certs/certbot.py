"""Certbot client - requests, renews and inspects certificates on the host.

Everything goes through the certbot CLI. HTTP-01 uses the webroot
plugin against the ACME location every managed vhost carries; DNS-01
uses manual mode with proxy-forge's own hook commands, which talk to
the DNS provider.
"""

import logging
import re
import shlex
from dataclasses import dataclass
from datetime import datetime, timezone

from proxy_forge.connector.base import BaseConnector
from proxy_forge.model.manifest import ChallengeType, SiteSpec
from proxy_forge.model.state import CertificateInfo
from proxy_forge.supervisor.systemd import SystemdSupervisor

logger = logging.getLogger(__name__)

LIVE_DIR = "/etc/letsencrypt/live"
RENEW_BEFORE_DAYS = 30
DEPLOY_HOOK = "systemctl reload nginx"
AUTH_HOOK = "proxy-forge hook auth"
CLEANUP_HOOK = "proxy-forge hook cleanup"
RENEWAL_TIMER = "certbot.timer"
SNAP_RENEWAL_TIMER = "snap.certbot.renew.timer"

_EXPIRY_RE = re.compile(
    r"Expiry Date:\s*(?P<date>\S+ \S+?)\s*\((?P<state>VALID|INVALID):\s*(?P<detail>[^)]*)\)"
)


@dataclass
class CertResult:
    """Result of a certbot invocation."""

    success: bool
    cert_name: str = ""
    command: str = ""
    output: str = ""
    error: str | None = None
    skipped: bool = False


def _parse_expiry(text: str) -> datetime | None:
    # certbot prints "2026-01-10 12:00:00+00:00"
    try:
        return datetime.fromisoformat(text.strip())
    except ValueError:
        return None


def parse_certificates(output: str) -> list[CertificateInfo]:
    """Parse ``certbot certificates`` output into CertificateInfo objects."""
    certs: list[CertificateInfo] = []
    current: CertificateInfo | None = None

    for raw in output.splitlines():
        line = raw.strip()
        if line.startswith("Certificate Name:"):
            current = CertificateInfo(name=line.split(":", 1)[1].strip())
            certs.append(current)
            continue
        if current is None:
            continue
        if line.startswith("Domains:"):
            current.domains = line.split(":", 1)[1].split()
        elif line.startswith("Key Type:"):
            current.key_type = line.split(":", 1)[1].strip().lower()
        elif line.startswith("Expiry Date:"):
            match = _EXPIRY_RE.search(line)
            if not match:
                continue
            current.expiry = _parse_expiry(match.group("date"))
            current.valid = match.group("state") == "VALID"
            days = re.search(r"(\d+)\s+day", match.group("detail"))
            if days:
                current.days_remaining = int(days.group(1))
            elif not current.valid:
                current.days_remaining = 0
        elif line.startswith("Certificate Path:"):
            current.cert_path = line.split(":", 1)[1].strip()
        elif line.startswith("Private Key Path:"):
            current.key_path = line.split(":", 1)[1].strip()

    return certs


class CertbotClient:
    """Thin adapter over the certbot CLI on the target host."""

    def __init__(self, connector: BaseConnector) -> None:
        self.connector = connector
        self.systemd = SystemdSupervisor(connector)

    def is_installed(self) -> bool:
        return self.connector.which("certbot")

    def build_issue_command(self, site: SiteSpec, dry_run: bool = False) -> str:
        """certbot command line that obtains the certificate for ``site``."""
        tls = site.tls
        args = ["certbot", "certonly", "--non-interactive", "--agree-tos", "--keep-until-expiring"]
        if tls.challenge == ChallengeType.DNS_01:
            args += [
                "--manual",
                "--preferred-challenges", "dns",
                "--manual-auth-hook", AUTH_HOOK,
                "--manual-cleanup-hook", CLEANUP_HOOK,
            ]
        else:
            args += ["--webroot", "-w", tls.webroot]

        args += ["--cert-name", site.site_name, "--email", tls.email or "", "--key-type", tls.key_type]
        if tls.staging:
            args.append("--staging")
        if dry_run:
            args.append("--dry-run")
        for name in site.names:
            args += ["-d", name]
        args += ["--deploy-hook", DEPLOY_HOOK]
        return " ".join(shlex.quote(a) for a in args)

    def issue(self, site: SiteSpec, dry_run: bool = False) -> CertResult:
        """Obtain a certificate for all of the site's names.

        Skips the request when a valid lineage already covers the names
        with more than RENEW_BEFORE_DAYS left. ``dry_run`` asks certbot to
        run the challenge against the staging CA without saving anything.
        """
        existing = self.find_covering(site)
        if existing is not None and (existing.days_remaining or 0) > RENEW_BEFORE_DAYS:
            logger.info("Certificate %s already covers %s", existing.name, ", ".join(site.names))
            return CertResult(success=True, cert_name=existing.name, skipped=True)

        if site.tls.challenge == ChallengeType.HTTP_01:
            self.connector.run(f"mkdir -p {shlex.quote(site.tls.webroot)}/.well-known/acme-challenge")

        command = self.build_issue_command(site, dry_run=dry_run)
        logger.info("Requesting certificate for %s", ", ".join(site.names))
        result = self.connector.run(command, timeout=300)
        cert_result = CertResult(
            success=result.success,
            cert_name=site.site_name,
            command=command,
            output=result.output,
        )
        if not result.success:
            cert_result.error = self._summarize_failure(result.output)
        return cert_result

    def renew(self, cert_name: str | None = None, *, dry_run: bool = False, force: bool = False) -> CertResult:
        args = ["certbot", "renew", "--non-interactive", "--deploy-hook", DEPLOY_HOOK]
        if cert_name:
            args += ["--cert-name", cert_name]
        if dry_run:
            args.append("--dry-run")
        if force:
            args.append("--force-renewal")
        command = " ".join(shlex.quote(a) for a in args)
        result = self.connector.run(command, timeout=600)
        return CertResult(
            success=result.success,
            cert_name=cert_name or "",
            command=command,
            output=result.output,
            error=None if result.success else self._summarize_failure(result.output),
        )

    def certificates(self) -> list[CertificateInfo]:
        result = self.connector.run("certbot certificates", timeout=60)
        if not result.success:
            logger.warning("certbot certificates failed: %s", result.output)
            return []
        return parse_certificates(result.stdout + "\n" + result.stderr)

    def find_covering(self, site: SiteSpec) -> CertificateInfo | None:
        """Valid lineage covering every name of ``site``, preferring the site's own name."""
        candidates = [c for c in self.certificates() if c.valid and c.covers(site.names)]
        if not candidates:
            return None
        for cert in candidates:
            if cert.name == site.site_name:
                return cert
        return max(candidates, key=lambda c: c.days_remaining or 0)

    def has_certificate(self, site: SiteSpec) -> bool:
        return self.find_covering(site) is not None

    def cert_paths(self, cert_name: str) -> tuple[str, str]:
        """(fullchain, privkey) paths for a lineage."""
        base = f"{LIVE_DIR}/{cert_name}"
        return f"{base}/fullchain.pem", f"{base}/privkey.pem"

    def delete(self, cert_name: str) -> CertResult:
        command = f"certbot delete --non-interactive --cert-name {shlex.quote(cert_name)}"
        result = self.connector.run(command, timeout=60)
        return CertResult(
            success=result.success, cert_name=cert_name, command=command, output=result.output,
            error=None if result.success else result.output,
        )

    def revoke(self, cert_name: str) -> CertResult:
        """Revoke a lineage at the CA, then delete it locally."""
        cert_path, _ = self.cert_paths(cert_name)
        command = (
            f"certbot revoke --non-interactive --cert-path {shlex.quote(cert_path)} "
            f"--reason superseded --no-delete-after-revoke"
        )
        result = self.connector.run(command, timeout=120)
        if not result.success:
            return CertResult(success=False, cert_name=cert_name, command=command,
                              output=result.output, error=self._summarize_failure(result.output))
        return self.delete(cert_name)

    def days_to_expiry(self, cert_path: str) -> int | None:
        """Days left on the certificate file, read with openssl."""
        res = self.connector.run(f"openssl x509 -noout -enddate -in {shlex.quote(cert_path)}")
        if not res.success:
            return None
        end_text = res.stdout.strip().split("=", 1)[-1]
        dt = self._parse_openssl_enddate(end_text)
        if not dt:
            return None
        return max(0, int((dt - datetime.now(timezone.utc)).total_seconds() // 86400))

    def _parse_openssl_enddate(self, value: str) -> datetime | None:
        # OpenSSL format typically: "May 10 12:34:56 2026 GMT"
        value = " ".join(value.split())
        try:
            parsed = datetime.strptime(value, "%b %d %H:%M:%S %Y %Z")
        except ValueError:
            return None
        return parsed.replace(tzinfo=timezone.utc)

    def timer_status(self) -> tuple[bool, bool]:
        """(active, enabled) for certbot.timer."""
        return self.systemd.is_active(RENEWAL_TIMER), self.systemd.is_enabled(RENEWAL_TIMER)

    def ensure_renewal_timer(self) -> bool:
        """Enable and start certbot.timer if needed. Returns True when it is active."""
        timer = self.systemd.ensure_active(RENEWAL_TIMER)
        if not timer.success:
            # snap installs ship snap.certbot.renew.timer instead
            timer = self.systemd.ensure_active(SNAP_RENEWAL_TIMER)
        return timer.success

    def _summarize_failure(self, output: str) -> str:
        """Pick the most useful lines out of certbot's failure output."""
        interesting = [
            line.strip()
            for line in output.splitlines()
            if any(key in line for key in ("Detail:", "Type:", "Error", "error:", "too many"))
        ]
        if interesting:
            return " | ".join(interesting[:4])
        lines = [l for l in output.strip().splitlines() if l.strip()]
        return lines[-1] if lines else "certbot failed"
