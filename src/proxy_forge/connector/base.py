"""Connector base class.

Every connector exposes the same small surface: ``run`` plus a few
file helpers built on top of it. Adapters only ever talk to this
surface, so the same code drives a remote host over SSH, the local
host, or a dry run.
"""

import base64
import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class CommandResult:
    """Result of a command execution."""

    command: str
    stdout: str
    stderr: str
    exit_code: int
    success: bool = field(init=False)

    def __post_init__(self) -> None:
        self.success = self.exit_code == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, stripped."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


class BaseConnector(ABC):
    """Common interface for command execution on a host."""

    host: str = "localhost"
    dry_run: bool = False

    def connect(self) -> None:
        """Open the underlying transport, if any."""

    def disconnect(self) -> None:
        """Close the underlying transport, if any."""

    def __enter__(self) -> "BaseConnector":
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.disconnect()

    @abstractmethod
    def run(self, command: str, use_sudo: bool | None = None, timeout: float | None = None) -> CommandResult:
        """Execute a shell command on the host."""

    def read_file(self, path: str) -> str | None:
        """Return file contents, or None if the file can't be read."""
        result = self.run(f"cat {shlex.quote(path)}", use_sudo=True)
        if result.success:
            return result.stdout
        return None

    def file_exists(self, path: str) -> bool:
        return self.run(f"test -f {shlex.quote(path)}", use_sudo=True).success

    def dir_exists(self, path: str) -> bool:
        return self.run(f"test -d {shlex.quote(path)}", use_sudo=True).success

    def link_exists(self, path: str) -> bool:
        return self.run(f"test -L {shlex.quote(path)}", use_sudo=True).success

    def list_dir(self, path: str) -> list[str]:
        result = self.run(f"ls -1 {shlex.quote(path)}", use_sudo=True)
        if result.success:
            return [f for f in result.stdout.strip().split("\n") if f]
        return []

    def write_file(self, path: str, content: str, *, mode: str | None = None) -> bool:
        """Write ``content`` to ``path`` atomically.

        Content travels base64-encoded into a temp file next to the
        target, which is then moved into place.
        """
        stamp = datetime.now().strftime("%Y%m%d%H%M%S%f")
        temp_path = f"{path}.proxy-forge-{stamp}"
        encoded = base64.b64encode(content.encode()).decode()
        quoted_tmp = shlex.quote(temp_path)
        result = self.run(f"sh -c \"echo '{encoded}' | base64 -d > {quoted_tmp}\"", use_sudo=True)
        if not result.success:
            return False
        if mode:
            self.run(f"chmod {mode} {quoted_tmp}", use_sudo=True)
        result = self.run(f"mv {quoted_tmp} {shlex.quote(path)}", use_sudo=True)
        if not result.success:
            self.run(f"rm -f {quoted_tmp}", use_sudo=True)
            return False
        return True

    def which(self, binary: str) -> bool:
        """Check whether ``binary`` is on the host's PATH."""
        return self.run(f"which {shlex.quote(binary)}", use_sudo=False, timeout=5).success
