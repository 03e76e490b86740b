"""Provisioning pipeline and host status collection.

Public API:
    Provisioner(connector, manifest, ...).run() -> ProvisionReport
    collect_status(connector, manifest) -> HostStatus

The pipeline only sequences the adapters; every decision about a
single tool lives in that tool's adapter.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable

from proxy_forge.certs.certbot import RENEW_BEFORE_DAYS, CertbotClient
from proxy_forge.connector.base import BaseConnector
from proxy_forge.connector.dry_run import DryRunConnector
from proxy_forge.dnsprovider.base import DNSProvider
from proxy_forge.dnsprovider.propagation import detect_public_ip
from proxy_forge.errors import DNSProviderError
from proxy_forge.firewall.fail2ban import Fail2banManager
from proxy_forge.firewall.ufw import UfwFirewall
from proxy_forge.model.manifest import Manifest, SiteSpec
from proxy_forge.model.state import (
    CertificateInfo,
    HostStatus,
    ProvisionReport,
    SiteStatus,
    StepResult,
)
from proxy_forge.proxy.parser import NginxConfigParser, find_conflicts
from proxy_forge.proxy.renderer import CertPaths, VhostRenderer
from proxy_forge.proxy.writer import VhostWriter
from proxy_forge.supervisor.docker import DockerSupervisor
from proxy_forge.supervisor.probe import UpstreamProbe

logger = logging.getLogger(__name__)

HOST_STEPS = ("firewall", "fail2ban", "renewal")
SITE_STEPS = ("dns", "upstream", "conflicts", "http", "certificate", "https")
ALL_STEPS = HOST_STEPS + SITE_STEPS

# name, zone_id -> provider
ProviderFactory = Callable[[str, str | None], DNSProvider]


class Provisioner:
    """Runs the provisioning steps for a manifest against one host."""

    def __init__(
        self,
        connector: BaseConnector,
        manifest: Manifest,
        *,
        provider_factory: ProviderFactory | None = None,
        dry_run: bool = False,
        force: bool = False,
    ) -> None:
        if dry_run and not isinstance(connector, DryRunConnector):
            connector = DryRunConnector(connector)
        self.connector = connector
        self.manifest = manifest
        self.provider_factory = provider_factory
        self.dry_run = dry_run
        self.force = force

        self.writer = VhostWriter(connector)
        self.renderer = VhostRenderer()
        self.certbot = CertbotClient(connector)
        self.firewall = UfwFirewall(connector)
        self.fail2ban = Fail2banManager(connector)
        self.docker = DockerSupervisor(connector)
        self.probe = UpstreamProbe(connector)

        self._public_ip: str | None = None
        self._report: ProvisionReport | None = None

    # =========================================================================
    # Logging helpers
    # =========================================================================

    def _log(self, message: str, level: str = "INFO") -> None:
        if self._report is not None:
            self._report.log.log(message, level)
        py_level = {"WARN": logging.WARNING, "ERROR": logging.ERROR}.get(level, logging.INFO)
        logger.log(py_level, message)

    def _record(self, result: StepResult) -> StepResult:
        assert self._report is not None
        self._report.steps.append(result)
        where = f"[{result.site}] " if result.site else ""
        level = "SUCCESS" if result.success else "ERROR"
        if result.skipped:
            level = "INFO"
        self._log(f"{where}{result.step}: {result.label} {result.message}".rstrip(), level)
        return result

    # =========================================================================
    # Run
    # =========================================================================

    def run(self, only_sites: Iterable[str] | None = None, skip: Iterable[str] = ()) -> ProvisionReport:
        """Provision the host.

        Args:
            only_sites: Restrict to these domains (host steps still run).
            skip: Step names to skip entirely.
        """
        skip_set = set(skip)
        self._report = ProvisionReport(host=self.connector.host, dry_run=self.dry_run)
        report = self._report
        self._log(f"Provisioning {self.connector.host}{' (dry run)' if self.dry_run else ''}")

        sites = self.manifest.sites
        if only_sites:
            wanted = {s.strip().lower() for s in only_sites}
            sites = [s for s in sites if wanted & set(s.names)]

        if "firewall" not in skip_set and self.manifest.firewall.enabled:
            self._record(self.step_firewall())
        if "fail2ban" not in skip_set and self.manifest.fail2ban.enabled:
            self._record(self.step_fail2ban())

        for site in sites:
            self._provision_site(site, skip_set)

        if "renewal" not in skip_set and any(s.tls.enabled for s in sites):
            self._record(self.step_renewal())

        if isinstance(self.connector, DryRunConnector):
            report.planned_commands = list(self.connector.planned)
        report.completed_at = datetime.now()
        self._log("Provisioning finished" if report.success else "Provisioning finished with failures",
                  "SUCCESS" if report.success else "ERROR")
        return report

    def _provision_site(self, site: SiteSpec, skip: set[str]) -> None:
        self._log(f"[{site.domain}] provisioning")
        cert: CertificateInfo | None = None
        if site.tls.enabled:
            cert = self.certbot.find_covering(site)

        steps: list[tuple[str, Callable[[], StepResult]]] = [
            ("dns", lambda: self.step_dns(site)),
            ("upstream", lambda: self.step_upstream(site)),
            ("conflicts", lambda: self.step_conflicts(site)),
            ("http", lambda: self.step_http(site, cert)),
        ]
        if site.tls.enabled:
            steps += [
                ("certificate", lambda: self.step_certificate(site, cert)),
                ("https", lambda: self.step_https(site)),
            ]

        for name, step in steps:
            if name in skip:
                self._record(StepResult(step=name, site=site.domain, success=True, skipped=True, message="skipped by request"))
                continue
            result = self._record(step())
            if not result.success:
                self._log(f"[{site.domain}] stopping after failed {name} step", "ERROR")
                return

    # =========================================================================
    # Host steps
    # =========================================================================

    def step_firewall(self) -> StepResult:
        changes = self.firewall.apply(self.manifest.firewall)
        failed = [c for c in changes if not c.success]
        applied = [c for c in changes if c.applied and c.success]
        output = "\n".join(c.command or c.description for c in changes)
        if failed:
            return StepResult(step="firewall", success=False,
                              message=f"{failed[0].description}: {failed[0].output}".strip(), output=output)
        if not applied:
            return StepResult(step="firewall", success=True, skipped=True, message="already converged", output=output)
        return StepResult(step="firewall", success=True, message=f"{len(applied)} change(s)", output=output)

    def step_fail2ban(self) -> StepResult:
        result = self.fail2ban.apply(self.manifest.fail2ban, force=self.force)
        if not result.success:
            return StepResult(step="fail2ban", success=False, message=result.error or "failed")
        return StepResult(step="fail2ban", success=True, skipped=not result.changed,
                          message="jail.local updated" if result.changed else "already configured")

    def step_renewal(self) -> StepResult:
        if self.certbot.ensure_renewal_timer():
            return StepResult(step="renewal", success=True, message="certbot renewal timer active")
        return StepResult(step="renewal", success=False, message="could not enable certbot.timer")

    # =========================================================================
    # Site steps
    # =========================================================================

    def _public_address(self) -> str | None:
        if self._public_ip is None:
            self._public_ip = detect_public_ip(self.connector)
        return self._public_ip

    def step_dns(self, site: SiteSpec) -> StepResult:
        if site.dns is None:
            return StepResult(step="dns", site=site.domain, success=True, skipped=True, message="no dns block")
        if self.provider_factory is None:
            return StepResult(step="dns", site=site.domain, success=False, message="no DNS provider configured")

        target = site.dns.target_ip or self._public_address()
        if not target:
            return StepResult(step="dns", site=site.domain, success=False,
                              message="could not detect the host's public IP; set dns.target_ip")

        record_type = "AAAA" if ":" in target else "A"
        try:
            provider = self.provider_factory(site.dns.provider, site.dns.zone_id)
            changed: list[str] = []
            for name in site.names:
                if self.dry_run:
                    existing, needed = provider.needs_upsert(
                        name, record_type, target, ttl=site.dns.ttl, proxied=site.dns.proxied,
                    )
                    if needed:
                        changed.append(name)
                        current = [r.content for r in existing]
                        self.connector.planned.append(f"dns {record_type} {name} -> {target} (currently {current or 'absent'})")
                    continue
                _, did_change = provider.upsert_record(
                    name, record_type, target, ttl=site.dns.ttl, proxied=site.dns.proxied,
                )
                if did_change:
                    changed.append(name)
        except DNSProviderError as e:
            return StepResult(step="dns", site=site.domain, success=False, message=str(e))

        if not changed:
            return StepResult(step="dns", site=site.domain, success=True, skipped=True,
                              message=f"{record_type} records already point to {target}")
        return StepResult(step="dns", site=site.domain, success=True,
                          message=f"{', '.join(changed)} -> {target}")

    def step_upstream(self, site: SiteSpec) -> StepResult:
        """Supervise the backend. Problems here are warnings; nginx can still be set up."""
        notes: list[str] = []
        if site.container:
            running = self.docker.ensure_running(site.container)
            if not running.success:
                self._log(f"[{site.domain}] {running.message}", "WARN")
                notes.append(f"warning: {running.message}")
            else:
                policy = self.docker.ensure_restart_policy(site.container)
                if not policy.success:
                    notes.append(f"warning: restart policy not set: {policy.message}")
                elif policy.changed:
                    notes.append("restart policy set to unless-stopped")

        probe = self.probe.check(site.upstream)
        if probe.reachable:
            notes.append(f"{site.upstream} answers" + (f" {probe.status_code}" if probe.status_code else ""))
        else:
            message = f"warning: {site.upstream} {probe.outcome.value} ({probe.detail}); nginx will return 502"
            self._log(f"[{site.domain}] {message}", "WARN")
            notes.append(message)
        return StepResult(step="upstream", site=site.domain, success=True, message="; ".join(notes))

    def step_conflicts(self, site: SiteSpec) -> StepResult:
        dump = self.writer.dump()
        if not dump:
            return StepResult(step="conflicts", site=site.domain, success=True, skipped=True,
                              message="nginx -T unavailable")
        info = NginxConfigParser().parse(dump)
        conflicts = find_conflicts(site, info, self.writer.enabled_path(site.site_name))
        if conflicts:
            where = ", ".join(f"{c.source_file}:{c.line_number}" for c in conflicts)
            return StepResult(step="conflicts", site=site.domain, success=False,
                              message=f"server_name already served by {where}; disable that site first")
        return StepResult(step="conflicts", site=site.domain, success=True, message="no conflicting server blocks")

    def step_http(self, site: SiteSpec, cert: CertificateInfo | None) -> StepResult:
        """Activate the port-80 vhost (ACME location + proxy) before a certificate exists."""
        if cert is not None:
            return StepResult(step="http", site=site.domain, success=True, skipped=True,
                              message=f"certificate {cert.name} present")
        content = self.renderer.render_http(site)
        result = self.writer.apply_site(site.site_name, content, force=self.force)
        if not result.success:
            return StepResult(step="http", site=site.domain, success=False,
                              message=result.error or "failed", output=result.nginx_test_output)
        return StepResult(step="http", site=site.domain, success=True, skipped=not result.changed,
                          message="HTTP vhost active" if result.changed else "HTTP vhost unchanged")

    def step_certificate(self, site: SiteSpec, cert: CertificateInfo | None) -> StepResult:
        if cert is not None and (cert.days_remaining or 0) > RENEW_BEFORE_DAYS:
            return StepResult(step="certificate", site=site.domain, success=True, skipped=True,
                              message=f"{cert.name} valid for {cert.days_remaining} more days")
        result = self.certbot.issue(site)
        if not result.success:
            return StepResult(step="certificate", site=site.domain, success=False,
                              message=result.error or "certbot failed", output=result.output)
        if result.skipped:
            return StepResult(step="certificate", site=site.domain, success=True, skipped=True,
                              message=f"{result.cert_name} already valid")
        return StepResult(step="certificate", site=site.domain, success=True,
                          message=f"issued {result.cert_name} ({site.tls.challenge.value})")

    def step_https(self, site: SiteSpec) -> StepResult:
        cert = self.certbot.find_covering(site)
        cert_name = cert.name if cert else site.site_name
        if cert is not None and cert.cert_path:
            paths = CertPaths(fullchain=cert.cert_path, privkey=cert.key_path)
        else:
            paths = CertPaths.for_lineage(cert_name)

        content = self.renderer.render_https(site, paths)
        result = self.writer.apply_site(site.site_name, content, force=self.force)
        if not result.success:
            return StepResult(step="https", site=site.domain, success=False,
                              message=result.error or "failed", output=result.nginx_test_output)
        return StepResult(step="https", site=site.domain, success=True, skipped=not result.changed,
                          message=f"HTTPS vhost active with {cert_name}" if result.changed else "HTTPS vhost unchanged")


def collect_status(connector: BaseConnector, manifest: Manifest) -> HostStatus:
    """Read-only snapshot of everything the manifest manages."""
    writer = VhostWriter(connector)
    certbot = CertbotClient(connector)
    docker = DockerSupervisor(connector)
    probe = UpstreamProbe(connector)

    status = HostStatus(host=connector.host)
    status.nginx_ok, status.nginx_test_output = writer.test()
    status.firewall = UfwFirewall(connector).status()
    status.jails = Fail2banManager(connector).status()

    certificates: list[CertificateInfo] = []
    if certbot.is_installed():
        certificates = certbot.certificates()
        active, _ = certbot.timer_status()
        status.renewal_timer_active = active

    for site in manifest.sites:
        site_status = SiteStatus(domain=site.domain)
        site_status.vhost_enabled = writer.is_enabled(site.site_name)
        if site.tls.enabled:
            covering = [c for c in certificates if c.covers(site.names)]
            if covering:
                site_status.certificate = max(covering, key=lambda c: c.days_remaining or 0)
        if site.container:
            site_status.container = docker.inspect(site.container)
        site_status.probe = probe.check(site.upstream)
        status.sites.append(site_status)

    return status
