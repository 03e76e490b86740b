"""Report Action - render provisioning reports and host status.

CONTRACT:
- read_only: True
- requires_backup: False
- rollback_support: N/A
"""

import json

import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from proxy_forge.model.state import (
    CertificateInfo,
    FirewallStatus,
    HostStatus,
    JailStatus,
    ProvisionReport,
    Severity,
)

_LABEL_STYLE = {"OK": "green", "FAILED": "red", "SKIPPED": "dim"}
_SEVERITY_STYLE = {Severity.CRITICAL: "red", Severity.WARNING: "yellow", Severity.INFO: "blue"}


def _days_style(days: int | None) -> str:
    if days is None:
        return "dim"
    if days < 14:
        return "red"
    if days < 30:
        return "yellow"
    return "green"


class ReportAction:
    """Print provisioning and status results to the terminal."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # =========================================================================
    # Provisioning
    # =========================================================================

    def report_provision(self, report: ProvisionReport) -> None:
        """Step table, planned commands (dry run) and a one-line verdict."""
        title = f"Provisioning {report.host}" + (" (dry run)" if report.dry_run else "")
        self.console.print()
        self.console.print(Panel.fit(title, style="bold cyan"))

        table = Table(show_header=True)
        table.add_column("Site")
        table.add_column("Step")
        table.add_column("Result")
        table.add_column("Details", overflow="fold")
        for step in report.steps:
            style = _LABEL_STYLE[step.label]
            table.add_row(step.site or "[dim]host[/]", step.step, f"[{style}]{step.label}[/]", step.message)
        self.console.print(table)

        for step in report.steps:
            if not step.success and step.output:
                self.console.print(f"[dim]{step.step} output ({step.site or 'host'}):[/]")
                self.console.print(step.output, markup=False, highlight=False)

        if report.dry_run:
            self.report_planned(report.planned_commands)

        if report.success:
            verb = "Would apply" if report.dry_run else "Applied"
            self.console.print(f"\n[bold green]✓ {verb} {len(report.steps)} step(s) on {report.host}[/]")
        else:
            failed = report.failed_sites()
            where = f" for {', '.join(failed)}" if failed else ""
            self.console.print(f"\n[bold red]✗ Provisioning failed{where}[/]")

    def report_planned(self, commands: list[str]) -> None:
        if not commands:
            self.console.print("\n[dim]No changes planned.[/]")
            return
        self.console.print(f"\n[bold]Planned changes ({len(commands)}):[/]")
        for command in commands:
            self.console.print(f"   $ {command}", markup=False, highlight=False)

    # =========================================================================
    # Status
    # =========================================================================

    def report_status(self, status: HostStatus) -> None:
        self.console.print()
        self.console.print(Panel.fit(f"📋 Host: {status.host}", style="bold cyan"))

        nginx = "[green]ok[/]" if status.nginx_ok else "[red]config test failing[/]"
        self.console.print(f"   nginx: {nginx}")
        fw = status.firewall
        if not fw.installed:
            self.console.print("   ufw: [yellow]not installed[/]")
        else:
            state = "[green]active[/]" if fw.active else "[red]inactive[/]"
            self.console.print(f"   ufw: {state} ({len(fw.rules)} rule(s), incoming {fw.default_incoming or '?'})")
        if status.renewal_timer_active is not None:
            timer = "[green]active[/]" if status.renewal_timer_active else "[yellow]inactive[/]"
            self.console.print(f"   certbot.timer: {timer}")
        if status.jails:
            banned = sum(j.currently_banned for j in status.jails)
            self.console.print(f"   fail2ban: {len(status.jails)} jail(s), {banned} banned")

        table = Table(show_header=True)
        table.add_column("Site")
        table.add_column("Vhost")
        table.add_column("Certificate")
        table.add_column("Container")
        table.add_column("Upstream")
        for site in status.sites:
            vhost = "[green]enabled[/]" if site.vhost_enabled else "[red]missing[/]"

            cert = site.certificate
            if cert is None:
                cert_cell = "[dim]-[/]"
            else:
                cert_cell = f"[{_days_style(cert.days_remaining)}]{cert.days_remaining}d[/] {cert.name}"

            container = site.container
            if container is None:
                container_cell = "[dim]-[/]"
            else:
                style = "green" if container.is_healthy else "red"
                container_cell = f"[{style}]{container.status}[/]"
                if container.restart_count:
                    container_cell += f" ({container.restart_count} restarts)"

            probe = site.probe
            if probe is None:
                probe_cell = "[dim]-[/]"
            else:
                style = "green" if probe.reachable else "red"
                code = f" {probe.status_code}" if probe.status_code else ""
                probe_cell = f"[{style}]{probe.outcome.value}{code}[/]"

            table.add_row(site.domain, vhost, cert_cell, container_cell, probe_cell)
        if status.sites:
            self.console.print(table)

        self.report_problems(status)

    def report_problems(self, status: HostStatus) -> None:
        problems = status.problems()
        if not problems:
            self.console.print("\n   [green][bold]PASS:[/] Everything looks healthy.[/]")
            return
        critical = sum(1 for p in problems if p.severity == Severity.CRITICAL)
        warning = sum(1 for p in problems if p.severity == Severity.WARNING)
        parts = []
        if critical:
            parts.append(f"[red]{critical} critical[/]")
        if warning:
            parts.append(f"[yellow]{warning} warning[/]")
        self.console.print(f"\n[bold]Problems[/]  {', '.join(parts)}")
        for problem in problems:
            color = _SEVERITY_STYLE[problem.severity]
            self.console.print(
                f"[bold {color}]{problem.severity.value.upper()}:[/] [bold]{problem.subject}[/] {problem.message}"
            )
            if problem.hint:
                self.console.print(f"   [dim]{problem.hint}[/]")

    # =========================================================================
    # Component tables
    # =========================================================================

    def report_certificates(self, certificates: list[CertificateInfo]) -> None:
        if not certificates:
            self.console.print("[dim]No certificates found.[/]")
            return
        table = Table(show_header=True)
        table.add_column("Name")
        table.add_column("Domains", overflow="fold")
        table.add_column("Expires")
        table.add_column("Days")
        table.add_column("Key")
        for cert in certificates:
            expiry = cert.expiry.strftime("%Y-%m-%d") if cert.expiry else "?"
            days = cert.days_remaining
            days_cell = "[red]INVALID[/]" if not cert.valid else f"[{_days_style(days)}]{days}[/]"
            table.add_row(cert.name, ", ".join(cert.domains), expiry, days_cell, cert.key_type or "?")
        self.console.print(table)

    def report_firewall(self, status: FirewallStatus, jails: list[JailStatus] | None = None) -> None:
        if not status.installed:
            self.console.print("[yellow]ufw is not installed.[/]")
        else:
            state = "[green]active[/]" if status.active else "[red]inactive[/]"
            self.console.print(f"ufw: {state}")
            self.console.print(
                f"   default: {status.default_incoming or '?'} (incoming), {status.default_outgoing or '?'} (outgoing)"
            )
            for rule in status.rules:
                self.console.print(f"   {rule}", markup=False, highlight=False)

        if jails:
            table = Table(show_header=True, title="fail2ban")
            table.add_column("Jail")
            table.add_column("Banned")
            table.add_column("Total")
            table.add_column("IPs", overflow="fold")
            for jail in jails:
                table.add_row(jail.name, str(jail.currently_banned), str(jail.total_banned), " ".join(jail.banned_ips))
            self.console.print(table)

    # =========================================================================
    # Export
    # =========================================================================

    def export(self, data: dict, format: str) -> None:
        """Print a report dict as JSON or YAML."""
        if format == "json":
            text = json.dumps(data, indent=2, default=str)
        else:
            text = yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
        self.console.print(text, markup=False, highlight=False, soft_wrap=True)
