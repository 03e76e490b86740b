"""Vhost Writer - writes, enables and activates nginx site files.

Safety model for every change:
1. Back up the current file
2. Write the new file
3. nginx -t
4. Roll back on failure
5. Reload (never restart) only on success
"""

import logging
import shlex
from dataclasses import dataclass
from datetime import datetime

from proxy_forge.connector.base import BaseConnector
from proxy_forge.proxy.renderer import is_managed, strip_generated_header
from proxy_forge.supervisor.systemd import SystemdSupervisor

logger = logging.getLogger(__name__)

SITES_AVAILABLE = "/etc/nginx/sites-available"
SITES_ENABLED = "/etc/nginx/sites-enabled"
BACKUP_DIR = "/etc/nginx/backups"


@dataclass
class ApplyResult:
    """Result of a vhost change."""

    success: bool
    backup_path: str | None = None
    error: str | None = None
    nginx_test_output: str = ""
    changed: bool = True
    rolled_back: bool = False


class VhostWriter:
    """Manage site files under sites-available / sites-enabled."""

    def __init__(
        self,
        connector: BaseConnector,
        sites_available: str = SITES_AVAILABLE,
        sites_enabled: str = SITES_ENABLED,
        backup_dir: str = BACKUP_DIR,
    ) -> None:
        self.connector = connector
        self.systemd = SystemdSupervisor(connector)
        self.sites_available = sites_available
        self.sites_enabled = sites_enabled
        self.backup_dir = backup_dir

    def available_path(self, name: str) -> str:
        return f"{self.sites_available}/{name}"

    def enabled_path(self, name: str) -> str:
        return f"{self.sites_enabled}/{name}"

    def create_backup_path(self, name: str) -> str:
        timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        return f"{self.backup_dir}/{name}.bak-{timestamp}"

    # =========================================================================
    # nginx process control
    # =========================================================================

    def test(self) -> tuple[bool, str]:
        """Run ``nginx -t``. Returns (ok, output)."""
        result = self.connector.run("nginx -t", timeout=30)
        return result.success, result.output

    def reload(self) -> bool:
        """Graceful reload; falls back to signalling the master process."""
        result = self.systemd.reload("nginx")
        if result.success:
            logger.info("nginx reloaded")
            return True
        logger.warning("systemctl reload nginx failed (%s); trying nginx -s reload", result.message)
        return self.connector.run("nginx -s reload").success

    def dump(self) -> str:
        """Full effective configuration (``nginx -T``)."""
        result = self.connector.run("nginx -T", timeout=30)
        return result.stdout if result.success else ""

    # =========================================================================
    # File operations
    # =========================================================================

    def is_managed(self, name: str) -> bool:
        return is_managed(self.connector.read_file(self.available_path(name)))

    def is_enabled(self, name: str) -> bool:
        path = self.enabled_path(name)
        return self.connector.link_exists(path) or self.connector.file_exists(path)

    def write_site(self, name: str, content: str, *, backup: bool = True, force: bool = False) -> ApplyResult:
        """Write a site file and validate it with nginx -t.

        Unchanged content is not rewritten. Files without the managed
        marker are refused unless ``force``.
        """
        target = self.available_path(name)
        current = self.connector.read_file(target)

        if current is not None:
            if not force and not is_managed(current):
                return ApplyResult(
                    success=False,
                    changed=False,
                    error=f"{target} exists and is not managed by proxy-forge (use --force to overwrite)",
                )
            if strip_generated_header(current) == strip_generated_header(content):
                logger.info("%s is up to date", target)
                return ApplyResult(success=True, changed=False)

        result = ApplyResult(success=False)
        if backup and current is not None:
            backup_path = self.create_backup_path(name)
            self.connector.run(f"mkdir -p {shlex.quote(self.backup_dir)}")
            copy = self.connector.run(f"cp {shlex.quote(target)} {shlex.quote(backup_path)}")
            if not copy.success:
                result.error = f"Failed to backup: {copy.output}"
                return result
            result.backup_path = backup_path

        if not self.connector.write_file(target, content, mode="644"):
            result.error = f"Failed to write {target}"
            return result

        ok, output = self.test()
        result.nginx_test_output = output
        if not ok:
            result.error = f"nginx -t failed: {output}"
            result.rolled_back = self._restore(target, result.backup_path)
            return result

        result.success = True
        return result

    def _restore(self, target: str, backup_path: str | None) -> bool:
        """Put the previous file back, or remove the new one if there was none."""
        if backup_path:
            restored = self.connector.run(f"cp {shlex.quote(backup_path)} {shlex.quote(target)}")
        else:
            restored = self.connector.run(f"rm -f {shlex.quote(target)}")
        if restored.success:
            logger.warning("Rolled back %s", target)
        else:
            logger.error("Rollback of %s failed! Backup at: %s", target, backup_path)
        return restored.success

    def enable_site(self, name: str) -> ApplyResult:
        """Symlink a site into sites-enabled and validate."""
        available = self.available_path(name)
        enabled = self.enabled_path(name)
        result = ApplyResult(success=False)

        # a dry run never wrote the file
        if not self.connector.dry_run and not self.connector.file_exists(available):
            result.error = f"Site not found: {available}"
            return result

        if self.is_enabled(name):
            result.success = True
            result.changed = False
            return result

        link = self.connector.run(f"ln -sf {shlex.quote(available)} {shlex.quote(enabled)}")
        if not link.success:
            result.error = f"Failed to enable site: {link.output}"
            return result

        ok, output = self.test()
        result.nginx_test_output = output
        if not ok:
            self.connector.run(f"rm -f {shlex.quote(enabled)}")
            result.error = f"nginx -t failed: {output}"
            result.rolled_back = True
            return result

        result.success = True
        return result

    def disable_site(self, name: str) -> ApplyResult:
        """Remove a site from sites-enabled and reload."""
        enabled = self.enabled_path(name)
        if not self.is_enabled(name):
            return ApplyResult(success=True, changed=False)

        removed = self.connector.run(f"rm -f {shlex.quote(enabled)}")
        if not removed.success:
            return ApplyResult(success=False, error=f"Failed to disable: {removed.output}")

        ok, output = self.test()
        if not ok:
            return ApplyResult(success=False, error=f"nginx -t failed: {output}", nginx_test_output=output)
        if not self.reload():
            return ApplyResult(success=False, error="Failed to reload nginx")
        return ApplyResult(success=True, nginx_test_output=output)

    def rollback(self, name: str, backup_path: str) -> ApplyResult:
        """Restore a site file from a backup, then test and reload."""
        target = self.available_path(name)
        result = ApplyResult(success=False)

        if not self.connector.file_exists(backup_path):
            result.error = f"Backup not found: {backup_path}"
            return result

        restore = self.connector.run(f"cp {shlex.quote(backup_path)} {shlex.quote(target)}")
        if not restore.success:
            result.error = f"Failed to restore: {restore.output}"
            return result

        ok, output = self.test()
        result.nginx_test_output = output
        if not ok:
            result.error = f"nginx -t failed after rollback: {output}"
            return result

        if not self.reload():
            result.error = "Failed to reload after rollback"
            return result

        result.success = True
        result.backup_path = backup_path
        return result

    def apply_site(self, name: str, content: str, *, force: bool = False) -> ApplyResult:
        """Write, enable, validate and reload: the zero-downtime activation sequence."""
        written = self.write_site(name, content, force=force)
        if not written.success:
            return written

        enabled = self.enable_site(name)
        if not enabled.success:
            if written.changed:
                enabled.rolled_back = self._restore(self.available_path(name), written.backup_path)
            return enabled

        if not written.changed and not enabled.changed:
            return written

        if not self.reload():
            return ApplyResult(
                success=False,
                backup_path=written.backup_path,
                error="Configuration is valid but nginx reload failed",
                nginx_test_output=enabled.nginx_test_output or written.nginx_test_output,
            )

        return ApplyResult(
            success=True,
            backup_path=written.backup_path,
            nginx_test_output=enabled.nginx_test_output or written.nginx_test_output,
        )
