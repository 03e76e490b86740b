"""Local Connector - runs commands on this machine via subprocess."""

import logging
import os
import subprocess

from proxy_forge.connector.base import BaseConnector, CommandResult

logger = logging.getLogger(__name__)


class LocalConnector(BaseConnector):
    """Connector for provisioning the host proxy-forge itself runs on."""

    def __init__(self, use_sudo: bool = True, timeout: float = 30) -> None:
        self.host = "localhost"
        self.use_sudo = use_sudo
        self.timeout = timeout

    def run(self, command: str, use_sudo: bool | None = None, timeout: float | None = None) -> CommandResult:
        if use_sudo is None:
            use_sudo = self.use_sudo
        if use_sudo and os.geteuid() != 0:
            command = f"sudo -n {command}"

        logger.debug("local: %s", command)
        try:
            proc = subprocess.run(
                command,
                shell=True,
                text=True,
                capture_output=True,
                timeout=timeout if timeout is not None else self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            return CommandResult(command=command, stdout="", stderr=f"Timed out: {e}", exit_code=124)
        return CommandResult(
            command=command,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            exit_code=proc.returncode,
        )
