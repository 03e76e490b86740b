"""Tests for the vhost write/enable/reload sequence.

Verifies:
1. Unmanaged files are never overwritten without force.
2. Unchanged content is a no-op (no write, no reload).
3. A failing nginx -t restores the previous file, or removes a new one.
4. Reload falls back to nginx -s reload.
"""

from proxy_forge.connector.base import CommandResult
from proxy_forge.proxy.writer import VhostWriter

AVAILABLE = "/etc/nginx/sites-available/app.example.com"
ENABLED = "/etc/nginx/sites-enabled/app.example.com"
MANAGED_OLD = "# managed by proxy-forge: app.example.com\n# Generated 2026-01-01 00:00:00.\nserver { listen 80; }\n"
MANAGED_NEW = "# managed by proxy-forge: app.example.com\n# Generated 2026-10-18 12:00:00.\nserver { listen 8080; }\n"


def test_apply_new_site(fake_host):
    result = VhostWriter(fake_host).apply_site("app.example.com", MANAGED_NEW)

    assert result.success and result.changed
    assert result.backup_path is None
    assert fake_host.files[AVAILABLE] == MANAGED_NEW
    assert ENABLED in fake_host.links
    assert fake_host.ran("systemctl reload nginx")
    # validated before the reload
    assert fake_host.commands.index("nginx -t") < fake_host.commands.index("systemctl reload nginx")


def test_refuses_unmanaged_file(fake_host):
    fake_host.files[AVAILABLE] = "server { listen 80; server_name hand-written; }\n"
    result = VhostWriter(fake_host).apply_site("app.example.com", MANAGED_NEW)

    assert not result.success
    assert "not managed by proxy-forge" in result.error
    assert fake_host.files[AVAILABLE].startswith("server {")
    assert not fake_host.ran("write")


def test_force_overwrites_unmanaged_file_with_backup(fake_host):
    fake_host.files[AVAILABLE] = "server { listen 80; }\n"
    result = VhostWriter(fake_host).write_site("app.example.com", MANAGED_NEW, force=True)

    assert result.success
    assert result.backup_path.startswith("/etc/nginx/backups/app.example.com.bak-")
    assert fake_host.files[result.backup_path] == "server { listen 80; }\n"
    assert fake_host.files[AVAILABLE] == MANAGED_NEW


def test_unchanged_content_is_noop(fake_host):
    fake_host.files[AVAILABLE] = MANAGED_NEW.replace("2026-10-18 12:00:00", "2025-01-01 00:00:00")
    fake_host.links.add(ENABLED)
    result = VhostWriter(fake_host).apply_site("app.example.com", MANAGED_NEW)

    assert result.success
    assert result.changed is False
    assert not fake_host.ran("write")
    assert not fake_host.ran("systemctl reload")


def test_failed_test_restores_previous_file(fake_host):
    fake_host.files[AVAILABLE] = MANAGED_OLD
    fake_host.respond("nginx -t", stderr="nginx: [emerg] unknown directive", exit_code=1)

    result = VhostWriter(fake_host).write_site("app.example.com", MANAGED_NEW)

    assert not result.success
    assert result.rolled_back is True
    assert "unknown directive" in result.error
    assert fake_host.files[AVAILABLE] == MANAGED_OLD


def test_failed_test_removes_new_file(fake_host):
    fake_host.respond("nginx -t", stderr="nginx: [emerg] bad", exit_code=1)
    result = VhostWriter(fake_host).apply_site("app.example.com", MANAGED_NEW)

    assert not result.success
    assert AVAILABLE not in fake_host.files
    assert ENABLED not in fake_host.links
    assert not fake_host.ran("systemctl reload")


def test_enable_failure_removes_link(fake_host):
    fake_host.files[AVAILABLE] = MANAGED_NEW
    fake_host.respond("nginx -t", stderr="duplicate listen", exit_code=1)
    result = VhostWriter(fake_host).enable_site("app.example.com")

    assert not result.success and result.rolled_back
    assert ENABLED not in fake_host.links


def test_enable_missing_site(fake_host):
    result = VhostWriter(fake_host).enable_site("app.example.com")
    assert not result.success
    assert "Site not found" in result.error


def test_disable_site(fake_host):
    fake_host.links.add(ENABLED)
    result = VhostWriter(fake_host).disable_site("app.example.com")
    assert result.success
    assert ENABLED not in fake_host.links
    assert fake_host.ran("systemctl reload nginx")


def test_disable_not_enabled_is_noop(fake_host):
    result = VhostWriter(fake_host).disable_site("app.example.com")
    assert result.success and not result.changed
    assert fake_host.commands == []


def test_reload_falls_back_to_signal(fake_host):
    fake_host.respond("systemctl reload nginx", stderr="System has not been booted with systemd", exit_code=1)
    assert VhostWriter(fake_host).reload() is True
    assert fake_host.ran("nginx -s reload")


def test_rollback_from_backup(fake_host):
    backup = "/etc/nginx/backups/app.example.com.bak-20261018-120000"
    fake_host.files[AVAILABLE] = MANAGED_NEW
    fake_host.files[backup] = MANAGED_OLD
    result = VhostWriter(fake_host).rollback("app.example.com", backup)

    assert result.success
    assert fake_host.files[AVAILABLE] == MANAGED_OLD
    assert fake_host.ran("systemctl reload nginx")


def test_rollback_missing_backup(fake_host):
    result = VhostWriter(fake_host).rollback("app.example.com", "/nope")
    assert not result.success
    assert "Backup not found" in result.error


def test_enable_failure_removes_new_file(fake_host):
    def nginx_test(command):
        # the file alone is valid; the enabled link clashes with another site
        if ENABLED in fake_host.links:
            return CommandResult(command, "", "nginx: [emerg] duplicate listen options", 1)
        return CommandResult(command, "", "syntax is ok", 0)

    fake_host.respond_with("nginx -t", nginx_test)
    result = VhostWriter(fake_host).apply_site("app.example.com", MANAGED_NEW)

    assert not result.success and result.rolled_back
    assert AVAILABLE not in fake_host.files
    assert ENABLED not in fake_host.links
    assert not fake_host.ran("systemctl reload")


def test_enable_failure_restores_previous_file(fake_host):
    fake_host.files[AVAILABLE] = MANAGED_OLD

    def nginx_test(command):
        if ENABLED in fake_host.links:
            return CommandResult(command, "", "nginx: [emerg] duplicate listen options", 1)
        return CommandResult(command, "", "syntax is ok", 0)

    fake_host.respond_with("nginx -t", nginx_test)
    result = VhostWriter(fake_host).apply_site("app.example.com", MANAGED_NEW)

    assert not result.success
    assert fake_host.files[AVAILABLE] == MANAGED_OLD
