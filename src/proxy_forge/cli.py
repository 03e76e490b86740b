"""
Click-based CLI for proxy-forge.

This module only ORCHESTRATES:
- Loads manifests and server profiles
- Opens the connector
- Invokes the adapters / pipeline
- Formats output
"""

import contextlib
import sys
from pathlib import Path
from typing import Iterator

import click
from rich.console import Console

from proxy_forge import __version__
from proxy_forge.actions.report import ReportAction
from proxy_forge.certs.certbot import CertbotClient
from proxy_forge.certs.hooks import auth_hook, cleanup_hook, provider_from_env
from proxy_forge.config import ConfigManager
from proxy_forge.connector import DryRunConnector, open_connector
from proxy_forge.connector.base import BaseConnector
from proxy_forge.connector.ssh import SSHConfig
from proxy_forge.dnsprovider import PROVIDERS, get_provider
from proxy_forge.dnsprovider.base import DNSProvider
from proxy_forge.dnsprovider.propagation import wait_for_txt
from proxy_forge.errors import ForgeError
from proxy_forge.firewall.fail2ban import Fail2banManager
from proxy_forge.firewall.ufw import UfwFirewall
from proxy_forge.logging_config import setup_logging
from proxy_forge.model.manifest import Manifest, SiteSpec, load_manifest
from proxy_forge.pipeline import ALL_STEPS, Provisioner, collect_status
from proxy_forge.proxy.renderer import CertPaths, VhostRenderer
from proxy_forge.proxy.writer import ApplyResult, VhostWriter
from proxy_forge.supervisor.docker import DockerSupervisor

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="proxy-forge")
@click.option("--config", "-c", type=click.Path(), help="Path to config directory")
@click.option("--verbose", "-v", count=True, help="-v for progress, -vv for debug output")
@click.pass_context
def main(ctx: click.Context, config: str | None, verbose: int) -> None:
    """🔧 proxy-forge: put Docker services behind nginx with TLS, DNS and a firewall."""
    setup_logging(verbose, console)
    ctx.ensure_object(dict)
    config_dir = Path(config) if config else None
    ctx.obj["config_mgr"] = ConfigManager(config_dir)


# =============================================================================
# Helpers
# =============================================================================


@contextlib.contextmanager
def _errors() -> Iterator[None]:
    """Turn expected failures into a red error line and exit code 1."""
    try:
        yield
    except (ForgeError, ConnectionError) as e:
        console.print(f"[bold red]Error:[/] {e}")
        if isinstance(e, ForgeError) and e.stderr:
            console.print(e.stderr, markup=False, highlight=False, style="dim")
        sys.exit(1)


def _resolve_config(ctx: click.Context, server: str) -> SSHConfig:
    """Resolve server string to SSHConfig (profile name, host or user@host)."""
    return ctx.obj["config_mgr"].resolve(server)


def _connect(ctx: click.Context, server: str) -> BaseConnector:
    return open_connector(_resolve_config(ctx, server))


def _provider_factory(ctx: click.Context):
    config_mgr: ConfigManager = ctx.obj["config_mgr"]

    def factory(name: str, zone_id: str | None = None) -> DNSProvider:
        return get_provider(name, config_mgr.get_dns_token(name), zone_id=zone_id)

    return factory


def _load_site(manifest_path: str, domain: str) -> tuple[Manifest, SiteSpec]:
    manifest = load_manifest(manifest_path)
    site = manifest.get_site(domain)
    if site is None:
        raise ForgeError(f"{domain} is not a site in {manifest_path}")
    return manifest, site


def _print_apply_result(result: ApplyResult, success_message: str) -> None:
    if result.success:
        if result.changed:
            console.print(f"[bold green]✓ {success_message}[/]")
        else:
            console.print("[dim]Nothing to change.[/]")
        if result.backup_path:
            console.print(f"   [dim]Backup:[/] {result.backup_path}")
        return
    console.print(f"[bold red]Error:[/] {result.error}")
    if result.rolled_back:
        console.print("[yellow]Previous configuration restored.[/]")
    if result.nginx_test_output:
        console.print("[dim]Nginx test output:[/]")
        console.print(result.nginx_test_output, markup=False, highlight=False)
    sys.exit(1)


def _print_planned(connector: BaseConnector) -> None:
    if isinstance(connector, DryRunConnector):
        ReportAction(console).report_planned(connector.planned)


# =============================================================================
# Provisioning
# =============================================================================


@main.command()
@click.argument("manifest_path", metavar="MANIFEST", type=click.Path(exists=True, dir_okay=False))
@click.option("--server", "-s", help="Override the manifest's server (profile, host or user@host)")
@click.option("--site", "sites", multiple=True, help="Only provision this domain (repeatable)")
@click.option("--skip", "skip", multiple=True, type=click.Choice(ALL_STEPS), help="Skip a step (repeatable)")
@click.option("--dry-run", is_flag=True, help="Show what would change without changing anything")
@click.option("--force", is_flag=True, help="Overwrite vhost files and jail.local not managed by proxy-forge")
@click.option("--yes", is_flag=True, help="Skip confirmation prompts")
@click.option("--json", "output_format", flag_value="json", help="Output the report as JSON")
@click.option("--yaml", "output_format", flag_value="yaml", help="Output the report as YAML")
@click.pass_context
def provision(
    ctx: click.Context,
    manifest_path: str,
    server: str | None,
    sites: tuple[str, ...],
    skip: tuple[str, ...],
    dry_run: bool,
    force: bool,
    yes: bool,
    output_format: str | None,
) -> None:
    """Bring a host in line with a deployment manifest.

    ⚠️  WARNING: This modifies the server (unless --dry-run)!
    """
    with _errors():
        manifest = load_manifest(manifest_path)
        cfg = _resolve_config(ctx, server or manifest.server)

        if not dry_run and not yes:
            count = len(sites) or len(manifest.sites)
            console.print(f"[bold yellow]⚠️  Provisioning {count} site(s) on {cfg.host}...[/]")
            click.confirm("Are you sure you want to proceed?", abort=True)

        with open_connector(cfg) as connector:
            provisioner = Provisioner(
                connector,
                manifest,
                provider_factory=_provider_factory(ctx),
                dry_run=dry_run,
                force=force,
            )
            if output_format:
                report = provisioner.run(only_sites=sites or None, skip=skip)
            else:
                with console.status("[bold blue]Provisioning...[/]", spinner="dots"):
                    report = provisioner.run(only_sites=sites or None, skip=skip)

        reporter = ReportAction(console)
        if output_format:
            reporter.export(report.to_dict(), output_format)
        else:
            reporter.report_provision(report)
        sys.exit(0 if report.success else 1)


@main.command()
@click.argument("manifest_path", metavar="MANIFEST", type=click.Path(exists=True, dir_okay=False))
@click.option("--server", "-s", help="Override the manifest's server")
@click.option("--json", "output_format", flag_value="json", help="Output as JSON")
@click.option("--yaml", "output_format", flag_value="yaml", help="Output as YAML")
@click.pass_context
def status(ctx: click.Context, manifest_path: str, server: str | None, output_format: str | None) -> None:
    """Read-only health check of everything the manifest manages.

    Exits 2 on critical problems, 1 on warnings, 0 when healthy.
    """
    with _errors():
        manifest = load_manifest(manifest_path)
        with _connect(ctx, server or manifest.server) as connector:
            if output_format:
                host_status = collect_status(connector, manifest)
            else:
                with console.status("[bold blue]🔍 Checking host...[/]"):
                    host_status = collect_status(connector, manifest)

        reporter = ReportAction(console)
        if output_format:
            reporter.export(host_status.to_dict(), output_format)
        else:
            reporter.report_status(host_status)
        sys.exit(host_status.exit_code())


# =============================================================================
# Virtual hosts
# =============================================================================


@main.group()
def site() -> None:
    """Render and activate nginx virtual hosts."""
    pass


@site.command("render")
@click.argument("manifest_path", metavar="MANIFEST", type=click.Path(exists=True, dir_okay=False))
@click.argument("domain")
@click.option("--http-only", is_flag=True, help="Render the pre-certificate HTTP vhost")
def site_render(manifest_path: str, domain: str, http_only: bool) -> None:
    """Print the vhost a site would get. Does not connect anywhere."""
    with _errors():
        _, site_spec = _load_site(manifest_path, domain)
        renderer = VhostRenderer()
        if http_only or not site_spec.tls.enabled:
            content = renderer.render_http(site_spec)
        else:
            content = renderer.render_https(site_spec, CertPaths.for_lineage(site_spec.site_name))
        console.print(content, markup=False, highlight=False, soft_wrap=True)


@site.command("apply")
@click.argument("manifest_path", metavar="MANIFEST", type=click.Path(exists=True, dir_okay=False))
@click.argument("domain")
@click.option("--server", "-s", help="Override the manifest's server")
@click.option("--dry-run", is_flag=True, help="Show what would change")
@click.option("--force", is_flag=True, help="Overwrite a vhost not managed by proxy-forge")
@click.option("--yes", is_flag=True, help="Skip confirmation prompts")
@click.pass_context
def site_apply(
    ctx: click.Context, manifest_path: str, domain: str, server: str | None, dry_run: bool, force: bool, yes: bool
) -> None:
    """Write, test, enable and reload one site's vhost.

    Uses the HTTPS vhost when a certificate already covers the site.
    """
    with _errors():
        manifest, site_spec = _load_site(manifest_path, domain)
        with _connect(ctx, server or manifest.server) as connector:
            if dry_run:
                connector = DryRunConnector(connector)
            elif not yes:
                click.confirm(f"Apply vhost for {site_spec.domain} on {connector.host}?", abort=True)

            renderer = VhostRenderer()
            cert = CertbotClient(connector).find_covering(site_spec) if site_spec.tls.enabled else None
            if cert is not None:
                content = renderer.render_https(site_spec, CertPaths(cert.cert_path, cert.key_path))
            else:
                content = renderer.render_http(site_spec)

            result = VhostWriter(connector).apply_site(site_spec.site_name, content, force=force)
            _print_planned(connector)
            _print_apply_result(result, f"{site_spec.domain} is live ({'HTTPS' if cert else 'HTTP'})")


@site.command("enable")
@click.argument("server")
@click.argument("name")
@click.pass_context
def site_enable(ctx: click.Context, server: str, name: str) -> None:
    """Symlink a site into sites-enabled, test and reload."""
    with _errors():
        with _connect(ctx, server) as connector:
            writer = VhostWriter(connector)
            result = writer.enable_site(name)
            if result.success and result.changed and not writer.reload():
                result = ApplyResult(success=False, error="Configuration is valid but nginx reload failed")
            _print_apply_result(result, f"Enabled {name}")


@site.command("disable")
@click.argument("server")
@click.argument("name")
@click.option("--yes", is_flag=True, help="Skip confirmation prompts")
@click.pass_context
def site_disable(ctx: click.Context, server: str, name: str, yes: bool) -> None:
    """Remove a site from sites-enabled and reload."""
    with _errors():
        if not yes:
            click.confirm(f"Disable {name}? It will stop being served.", abort=True)
        with _connect(ctx, server) as connector:
            _print_apply_result(VhostWriter(connector).disable_site(name), f"Disabled {name}")


# =============================================================================
# Certificates
# =============================================================================


@main.group()
def cert() -> None:
    """Issue, renew and inspect certbot certificates."""
    pass


@cert.command("issue")
@click.argument("manifest_path", metavar="MANIFEST", type=click.Path(exists=True, dir_okay=False))
@click.argument("domain")
@click.option("--server", "-s", help="Override the manifest's server")
@click.option("--dry-run", is_flag=True, help="Run certbot against staging without saving")
@click.pass_context
def cert_issue(ctx: click.Context, manifest_path: str, domain: str, server: str | None, dry_run: bool) -> None:
    """Obtain a certificate for a site and all of its aliases."""
    with _errors():
        manifest, site_spec = _load_site(manifest_path, domain)
        if not site_spec.tls.enabled:
            raise ForgeError(f"TLS is disabled for {site_spec.domain}")
        with _connect(ctx, server or manifest.server) as connector:
            certbot = CertbotClient(connector)
            if not certbot.is_installed():
                raise ForgeError("certbot is not installed on the host")
            with console.status(f"[bold blue]Requesting certificate ({site_spec.tls.challenge.value})...[/]"):
                result = certbot.issue(site_spec, dry_run=dry_run)

        if not result.success:
            console.print(f"[bold red]Error:[/] {result.error}")
            sys.exit(1)
        if result.skipped:
            console.print(f"[dim]{result.cert_name} is already valid; nothing to do.[/]")
        elif dry_run:
            console.print(f"[bold green]✓ Dry run for {site_spec.domain} succeeded[/]")
        else:
            console.print(f"[bold green]✓ Issued certificate:[/] {result.cert_name}")


@cert.command("renew")
@click.argument("server")
@click.option("--name", "cert_name", help="Only renew this lineage")
@click.option("--dry-run", is_flag=True, help="Test renewal against staging")
@click.option("--force", is_flag=True, help="Renew even when not due")
@click.pass_context
def cert_renew(ctx: click.Context, server: str, cert_name: str | None, dry_run: bool, force: bool) -> None:
    """Run certbot renew (nginx is reloaded by the deploy hook)."""
    with _errors():
        with _connect(ctx, server) as connector:
            with console.status("[bold blue]Renewing...[/]"):
                result = CertbotClient(connector).renew(cert_name, dry_run=dry_run, force=force)
        if not result.success:
            console.print(f"[bold red]Error:[/] {result.error}")
            sys.exit(1)
        console.print("[bold green]✓ Renewal finished[/]")


@cert.command("list")
@click.argument("server")
@click.option("--json", "output_format", flag_value="json", help="Output as JSON")
@click.option("--yaml", "output_format", flag_value="yaml", help="Output as YAML")
@click.pass_context
def cert_list(ctx: click.Context, server: str, output_format: str | None) -> None:
    """List certificates on the host."""
    with _errors():
        with _connect(ctx, server) as connector:
            certificates = CertbotClient(connector).certificates()
        reporter = ReportAction(console)
        if output_format:
            reporter.export(
                {
                    "certificates": [
                        {
                            "name": c.name,
                            "domains": c.domains,
                            "expiry": c.expiry.isoformat() if c.expiry else None,
                            "days_remaining": c.days_remaining,
                            "valid": c.valid,
                        }
                        for c in certificates
                    ]
                },
                output_format,
            )
        else:
            reporter.report_certificates(certificates)


@cert.command("revoke")
@click.argument("server")
@click.argument("name")
@click.option("--yes", is_flag=True, help="Skip confirmation prompts")
@click.pass_context
def cert_revoke(ctx: click.Context, server: str, name: str, yes: bool) -> None:
    """Revoke a certificate at the CA and delete it."""
    with _errors():
        if not yes:
            click.confirm(f"Revoke and delete {name}? Sites using it will break.", abort=True)
        with _connect(ctx, server) as connector:
            result = CertbotClient(connector).revoke(name)
        if not result.success:
            console.print(f"[bold red]Error:[/] {result.error}")
            sys.exit(1)
        console.print(f"[bold green]✓ Revoked and deleted:[/] {name}")


# =============================================================================
# DNS
# =============================================================================


@main.group()
def dns() -> None:
    """Manage records at the DNS provider."""
    pass


_provider_option = click.option(
    "--provider", default="cloudflare", type=click.Choice(sorted(PROVIDERS)), show_default=True,
    help="DNS provider",
)
_zone_option = click.option("--zone-id", help="Zone id (auto-detected when omitted)")


@dns.command("set")
@click.argument("name")
@click.argument("ip")
@_provider_option
@_zone_option
@click.option("--ttl", default=300, show_default=True, help="Record TTL in seconds")
@click.option("--proxied", is_flag=True, help="Proxy through the provider (Cloudflare orange cloud)")
@click.pass_context
def dns_set(
    ctx: click.Context, name: str, ip: str, provider: str, zone_id: str | None, ttl: int, proxied: bool
) -> None:
    """Point NAME at IP (A or AAAA record)."""
    with _errors():
        client = _provider_factory(ctx)(provider, zone_id)
        record_type = "AAAA" if ":" in ip else "A"
        record, changed = client.upsert_record(name.lower(), record_type, ip, ttl=ttl, proxied=proxied)
        if changed:
            console.print(f"[bold green]✓ {record.name} {record.type} → {record.content}[/]")
        else:
            console.print(f"[dim]{record.name} already points to {record.content}.[/]")


@dns.command("txt-add")
@click.argument("name")
@click.argument("value")
@_provider_option
@_zone_option
@click.option("--wait/--no-wait", default=False, help="Wait until the record is visible")
@click.option("--timeout", default=180, show_default=True, help="Propagation timeout in seconds")
@click.pass_context
def dns_txt_add(
    ctx: click.Context, name: str, value: str, provider: str, zone_id: str | None, wait: bool, timeout: int
) -> None:
    """Create a TXT record."""
    with _errors():
        client = _provider_factory(ctx)(provider, zone_id)
        client.create_txt(name.lower(), value)
        console.print(f"[bold green]✓ TXT {name}[/]")
        if wait:
            with console.status("[bold blue]Waiting for propagation...[/]"):
                visible = wait_for_txt(name.lower(), value, timeout=timeout)
            if not visible:
                raise ForgeError(f"{name} not visible after {timeout}s")
            console.print("[green]Record is visible on the authoritative nameservers.[/]")


@dns.command("txt-del")
@click.argument("name")
@click.option("--value", help="Only delete the record holding this value")
@_provider_option
@_zone_option
@click.pass_context
def dns_txt_del(ctx: click.Context, name: str, value: str | None, provider: str, zone_id: str | None) -> None:
    """Delete TXT records."""
    with _errors():
        client = _provider_factory(ctx)(provider, zone_id)
        deleted = client.delete_txt(name.lower(), value)
        console.print(f"[bold green]✓ Deleted {deleted} record(s)[/]")


# =============================================================================
# Firewall
# =============================================================================


@main.group()
def firewall() -> None:
    """ufw and fail2ban."""
    pass


@firewall.command("status")
@click.argument("server")
@click.pass_context
def firewall_status(ctx: click.Context, server: str) -> None:
    """Show ufw rules and fail2ban jails."""
    with _errors():
        with _connect(ctx, server) as connector:
            fw = UfwFirewall(connector).status()
            jails = Fail2banManager(connector).status()
        ReportAction(console).report_firewall(fw, jails)


@firewall.command("apply")
@click.argument("manifest_path", metavar="MANIFEST", type=click.Path(exists=True, dir_okay=False))
@click.option("--server", "-s", help="Override the manifest's server")
@click.option("--dry-run", is_flag=True, help="Show what would change")
@click.option("--force", is_flag=True, help="Overwrite a jail.local not managed by proxy-forge")
@click.option("--yes", is_flag=True, help="Skip confirmation prompts")
@click.pass_context
def firewall_apply(ctx: click.Context, manifest_path: str, server: str | None, dry_run: bool, force: bool, yes: bool) -> None:
    """Apply the manifest's firewall and fail2ban sections."""
    with _errors():
        manifest = load_manifest(manifest_path)
        with _connect(ctx, server or manifest.server) as connector:
            if dry_run:
                connector = DryRunConnector(connector)
            elif not yes:
                console.print(
                    f"[bold yellow]⚠️  SSH port {manifest.firewall.ssh_port} stays open; "
                    f"everything else not listed is {manifest.firewall.default_incoming}.[/]"
                )
                click.confirm("Are you sure you want to proceed?", abort=True)

            failed = False
            if manifest.firewall.enabled:
                for change in UfwFirewall(connector).apply(manifest.firewall):
                    if not change.applied:
                        console.print(f"   [dim]= {change.description}[/]")
                    elif change.success:
                        console.print(f"   [green]+ {change.description}[/]")
                    else:
                        failed = True
                        console.print(f"   [red]✗ {change.description}:[/] {change.output}")
            if manifest.fail2ban.enabled and not failed:
                result = Fail2banManager(connector).apply(manifest.fail2ban, force=force)
                if result.success:
                    console.print(f"   [green]fail2ban {'updated' if result.changed else 'unchanged'}[/]")
                else:
                    failed = True
                    console.print(f"   [red]✗ fail2ban:[/] {result.error}")
            _print_planned(connector)

        if failed:
            sys.exit(1)


# =============================================================================
# Services
# =============================================================================


@main.group()
def service() -> None:
    """Inspect and restart upstream containers."""
    pass


@service.command("status")
@click.argument("server")
@click.argument("container")
@click.pass_context
def service_status(ctx: click.Context, server: str, container: str) -> None:
    """Show a container's state, restart policy and published ports."""
    with _errors():
        with _connect(ctx, server) as connector:
            state = DockerSupervisor(connector).inspect(container)
        if state is None:
            console.print(f"[bold red]Error:[/] container {container} not found")
            sys.exit(1)
        color = "green" if state.is_healthy else "red"
        console.print(f"[bold]{state.name}[/] ({state.image or state.id})")
        console.print(f"   status: [{color}]{state.status}[/]" + (f", health {state.health}" if state.health else ""))
        console.print(f"   restarts: {state.restart_count}, policy: {state.restart_policy}")
        for port, bindings in state.ports.items():
            console.print(f"   {port} → {', '.join(bindings) or '[dim]not published[/]'}")
        if not state.running:
            sys.exit(1)


@service.command("restart")
@click.argument("server")
@click.argument("container")
@click.option("--yes", is_flag=True, help="Skip confirmation prompts")
@click.pass_context
def service_restart(ctx: click.Context, server: str, container: str, yes: bool) -> None:
    """Restart a container."""
    with _errors():
        if not yes:
            click.confirm(f"Restart {container}?", abort=True)
        with _connect(ctx, server) as connector:
            result = DockerSupervisor(connector).restart(container)
        if not result.success:
            console.print(f"[bold red]Error:[/] {result.message}")
            sys.exit(1)
        console.print(f"[bold green]✓ Restarted {container}[/]")


@service.command("logs")
@click.argument("server")
@click.argument("container")
@click.option("--tail", default=50, show_default=True, help="Number of lines to show")
@click.pass_context
def service_logs(ctx: click.Context, server: str, container: str, tail: int) -> None:
    """Print the last lines of a container's log."""
    with _errors():
        with _connect(ctx, server) as connector:
            output = DockerSupervisor(connector).logs(container, tail=tail)
        console.print(output, markup=False, highlight=False)


# =============================================================================
# certbot manual hooks
# =============================================================================


@main.group()
def hook() -> None:
    """certbot --manual hooks for DNS-01 (run by certbot on the host)."""
    pass


@hook.command("auth")
@click.pass_context
def hook_auth(ctx: click.Context) -> None:
    """Publish CERTBOT_VALIDATION at _acme-challenge.CERTBOT_DOMAIN."""
    with _errors():
        record_name = auth_hook(provider_from_env(ctx.obj["config_mgr"]))
        console.print(f"Published {record_name}")


@hook.command("cleanup")
@click.pass_context
def hook_cleanup(ctx: click.Context) -> None:
    """Remove the validation TXT record."""
    with _errors():
        deleted = cleanup_hook(provider_from_env(ctx.obj["config_mgr"]))
        console.print(f"Removed {deleted} record(s)")


# =============================================================================
# Profiles
# =============================================================================


@main.group()
def config() -> None:
    """Manage server connection profiles and credentials."""
    pass


@config.command("add")
@click.argument("name")
@click.option("--host", "-h", required=True, help="Server hostname or IP")
@click.option("--user", "-u", default="root", help="SSH username")
@click.option("--port", "-p", default=22, help="SSH port")
@click.option("--password", "-pass", help="SSH password")
@click.option("--key", "-k", type=click.Path(), help="Path to SSH private key")
@click.option("--sudo/--no-sudo", default=True, help="Use sudo for commands")
@click.pass_context
def config_add(
    ctx: click.Context, name: str, host: str, user: str, port: int, password: str | None, key: str | None, sudo: bool
) -> None:
    """Add a new server profile."""
    config_mgr = ctx.obj["config_mgr"]
    cfg = SSHConfig(host=host, user=user, port=port, password=password, key_path=key, use_sudo=sudo)
    config_mgr.add_profile(name, cfg)
    console.print(f"[bold green]✓ Added server profile:[/] {name}")


@config.command("list")
@click.pass_context
def config_list(ctx: click.Context) -> None:
    """List all server profiles."""
    config_mgr = ctx.obj["config_mgr"]
    profiles = config_mgr.list_profiles()
    if not profiles:
        console.print("[dim]No profiles configured yet.[/]")
        return

    for name, data in profiles.items():
        console.print(f"[bold green]{name}[/]: {data['user']}@{data['host']}:{data['port']}")


@config.command("remove")
@click.argument("name")
@click.pass_context
def config_remove(ctx: click.Context, name: str) -> None:
    """Remove a server profile."""
    config_mgr = ctx.obj["config_mgr"]
    if config_mgr.remove_profile(name):
        console.print(f"[bold green]✓ Removed profile:[/] {name}")
    else:
        console.print(f"[bold red]Error:[/] Profile {name} not found.")
        sys.exit(1)


@config.command("set-dns-token")
@click.argument("provider", type=click.Choice(sorted(PROVIDERS)))
@click.option("--token", prompt=True, hide_input=True, help="API token (prompted when omitted)")
@click.option("--verify/--no-verify", default=True, help="Check the token against the provider API")
@click.pass_context
def config_set_dns_token(ctx: click.Context, provider: str, token: str, verify: bool) -> None:
    """Store a DNS provider API token in the OS keyring."""
    with _errors():
        if verify:
            client = get_provider(provider, token)
            if not client.validate_credentials():
                raise ForgeError(f"{provider} rejected the token")
        ctx.obj["config_mgr"].set_dns_token(provider, token)
        console.print(f"[bold green]✓ Stored {provider} token in the keyring[/]")


if __name__ == "__main__":
    main()
