"""Connectors used to run commands on the target host."""

from proxy_forge.connector.base import BaseConnector, CommandResult
from proxy_forge.connector.dry_run import DryRunConnector
from proxy_forge.connector.local import LocalConnector
from proxy_forge.connector.ssh import SSHConfig, SSHConnector

LOCAL_HOSTS = {"local", "localhost", "127.0.0.1"}


def open_connector(config: SSHConfig) -> BaseConnector:
    """Return an unopened connector for ``config``.

    The local host is driven through subprocess instead of SSH.
    """
    if config.host in LOCAL_HOSTS:
        return LocalConnector(use_sudo=config.use_sudo, timeout=config.timeout)
    return SSHConnector(config)


__all__ = [
    "BaseConnector",
    "CommandResult",
    "DryRunConnector",
    "LocalConnector",
    "SSHConfig",
    "SSHConnector",
    "open_connector",
]
