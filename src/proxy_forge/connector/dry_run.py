"""Dry-run connector.

Passes read-only commands through to the wrapped connector so the plan
reflects the real host state, and records everything else instead of
executing it.
"""

import logging
import re

from proxy_forge.connector.base import BaseConnector, CommandResult

logger = logging.getLogger(__name__)

READ_ONLY_PATTERNS = [
    r"^cat ",
    r"^test ",
    r"^ls ",
    r"^which ",
    r"^nginx -[tTv]",
    r"^ufw status",
    r"^docker inspect",
    r"^docker ps",
    r"^certbot certificates",
    r"^systemctl (is-active|is-enabled|is-failed|status)",
    r"^openssl ",
    r"^fail2ban-client status",
    r"^curl ",
    r"^id -u",
]

_READ_ONLY_RE = re.compile("|".join(READ_ONLY_PATTERNS))


class DryRunConnector(BaseConnector):
    """Records mutating commands instead of running them."""

    def __init__(self, inner: BaseConnector) -> None:
        self.inner = inner
        self.host = inner.host
        self.planned: list[str] = []
        self.dry_run = True

    def connect(self) -> None:
        self.inner.connect()

    def disconnect(self) -> None:
        self.inner.disconnect()

    def is_read_only(self, command: str) -> bool:
        return bool(_READ_ONLY_RE.match(command.strip()))

    def run(self, command: str, use_sudo: bool | None = None, timeout: float | None = None) -> CommandResult:
        if self.is_read_only(command):
            return self.inner.run(command, use_sudo=use_sudo, timeout=timeout)
        logger.info("[dry-run] %s", command)
        self.planned.append(command)
        return CommandResult(command=command, stdout="", stderr="", exit_code=0)

    def write_file(self, path: str, content: str, *, mode: str | None = None) -> bool:
        self.planned.append(f"write {path} ({len(content)} bytes)")
        return True
