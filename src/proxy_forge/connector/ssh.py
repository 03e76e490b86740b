"""SSH Connector - Connection to remote servers.

All remote commands go through ``SSHConnector.run``. Commands are
prefixed with sudo when the connecting user is not root.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import paramiko
from paramiko.ssh_exception import AuthenticationException, SSHException

from proxy_forge.connector.base import BaseConnector, CommandResult

logger = logging.getLogger(__name__)


@dataclass
class SSHConfig:
    """SSH connection configuration."""

    host: str
    user: str = "root"
    port: int = 22
    key_path: str | None = None
    password: str | None = None  # Fallback, prefer keys
    use_sudo: bool = True
    timeout: int = 30


class SSHConnector(BaseConnector):
    """SSH connection manager for remote server operations.

    Example:
        >>> config = SSHConfig(host="192.168.1.100", user="deploy")
        >>> with SSHConnector(config) as ssh:
        ...     result = ssh.run("nginx -v")
        ...     print(result.stderr)
    """

    def __init__(self, config: SSHConfig) -> None:
        self.config = config
        self.host = config.host
        self._client: paramiko.SSHClient | None = None

    def connect(self) -> None:
        """Establish SSH connection."""
        self._client = paramiko.SSHClient()
        self._client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        connect_kwargs: dict = {
            "hostname": self.config.host,
            "port": self.config.port,
            "username": self.config.user,
            "timeout": self.config.timeout,
        }

        # Prefer key-based authentication
        if self.config.key_path:
            key_path = Path(self.config.key_path).expanduser()
            if key_path.exists():
                connect_kwargs["key_filename"] = str(key_path)
        elif self.config.password:
            connect_kwargs["password"] = self.config.password

        logger.debug("Connecting to %s@%s:%s", self.config.user, self.config.host, self.config.port)
        try:
            self._client.connect(**connect_kwargs)
        except AuthenticationException as e:
            raise ConnectionError(f"Authentication failed: {e}") from e
        except SSHException as e:
            raise ConnectionError(f"SSH error: {e}") from e
        except OSError as e:
            raise ConnectionError(f"Could not reach {self.config.host}: {e}") from e

    def disconnect(self) -> None:
        """Close SSH connection."""
        if self._client:
            self._client.close()
            self._client = None

    def run(self, command: str, use_sudo: bool | None = None, timeout: float | None = None) -> CommandResult:
        """Execute a command on the remote server.

        Args:
            command: The command to execute.
            use_sudo: Whether to use sudo. Defaults to config setting.
            timeout: Command timeout in seconds. Defaults to config timeout.

        Returns:
            CommandResult with stdout, stderr, and exit_code.
        """
        if not self._client:
            raise RuntimeError("Not connected. Use 'with SSHConnector(config):' context.")

        if use_sudo is None:
            use_sudo = self.config.use_sudo

        stdin_data = None
        if use_sudo and self.config.user != "root":
            if self.config.password:
                # -S reads the password from stdin; keeps it out of the process list
                command = f"sudo -S -p '' {command}"
                stdin_data = self.config.password + "\n"
            else:
                command = f"sudo -n {command}"

        cmd_timeout = timeout if timeout is not None else self.config.timeout
        logger.debug("ssh %s: %s", self.config.host, command)

        try:
            stdin, stdout, stderr = self._client.exec_command(command, timeout=cmd_timeout)
            if stdin_data:
                stdin.write(stdin_data)
                stdin.flush()
            exit_code = stdout.channel.recv_exit_status()

            return CommandResult(
                command=command,
                stdout=stdout.read().decode("utf-8", errors="replace"),
                stderr=stderr.read().decode("utf-8", errors="replace"),
                exit_code=exit_code,
            )
        except (SSHException, OSError) as e:
            # Timeouts and dropped channels are reported as a failed command
            return CommandResult(
                command=command,
                stdout="",
                stderr=f"SSH Execution Error: {e}",
                exit_code=255,
            )
