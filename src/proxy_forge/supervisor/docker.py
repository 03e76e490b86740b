"""Docker supervisor - keeps the containers behind the proxy running.

Uses the docker CLI on the host. ``docker inspect`` output is the
single source of truth for container state.
"""

import json
import logging
import shlex
from dataclasses import dataclass

from proxy_forge.connector.base import BaseConnector
from proxy_forge.model.state import ContainerState

logger = logging.getLogger(__name__)


@dataclass
class SupervisorResult:
    """Result of a supervision action."""

    success: bool
    changed: bool = False
    message: str = ""


def parse_inspect(data: dict) -> ContainerState:
    """Build a ContainerState from one ``docker inspect`` object."""
    state = data.get("State") or {}
    host_config = data.get("HostConfig") or {}
    network = data.get("NetworkSettings") or {}

    ports: dict[str, list[str]] = {}
    for container_port, bindings in (network.get("Ports") or {}).items():
        ports[container_port] = [
            f"{b.get('HostIp') or '0.0.0.0'}:{b.get('HostPort')}" for b in (bindings or [])
        ]

    health = (state.get("Health") or {}).get("Status")
    return ContainerState(
        name=(data.get("Name") or "").lstrip("/"),
        id=(data.get("Id") or "")[:12],
        image=(data.get("Config") or {}).get("Image", ""),
        status=state.get("Status", "unknown"),
        running=bool(state.get("Running", False)),
        restart_count=int(data.get("RestartCount", 0) or 0),
        restart_policy=(host_config.get("RestartPolicy") or {}).get("Name") or "no",
        health=health,
        ports=ports,
    )


class DockerSupervisor:
    """Inspect, start and restart containers."""

    def __init__(self, connector: BaseConnector) -> None:
        self.connector = connector

    def inspect(self, name: str) -> ContainerState | None:
        result = self.connector.run(f"docker inspect {shlex.quote(name)}", timeout=15)
        if not result.success:
            logger.debug("docker inspect %s failed: %s", name, result.output)
            return None
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.warning("docker inspect %s returned invalid JSON", name)
            return None
        if not data:
            return None
        return parse_inspect(data[0])

    def start(self, name: str) -> SupervisorResult:
        result = self.connector.run(f"docker start {shlex.quote(name)}", timeout=60)
        return SupervisorResult(success=result.success, changed=result.success, message=result.output)

    def restart(self, name: str) -> SupervisorResult:
        result = self.connector.run(f"docker restart {shlex.quote(name)}", timeout=120)
        return SupervisorResult(success=result.success, changed=result.success, message=result.output)

    def ensure_running(self, name: str) -> SupervisorResult:
        """Start ``name`` if it exists but is not running."""
        state = self.inspect(name)
        if state is None:
            return SupervisorResult(success=False, message=f"container {name} not found")
        if state.running:
            return SupervisorResult(success=True, message=f"{name} is running")
        if state.status == "restarting":
            return SupervisorResult(
                success=False,
                message=f"{name} is crash-looping (restarted {state.restart_count} times); check 'docker logs {name}'",
            )
        logger.info("Starting container %s (was %s)", name, state.status)
        started = self.start(name)
        if not started.success:
            started.message = f"docker start {name} failed: {started.message}"
        return started

    def ensure_restart_policy(self, name: str, policy: str = "unless-stopped") -> SupervisorResult:
        state = self.inspect(name)
        if state is None:
            return SupervisorResult(success=False, message=f"container {name} not found")
        if state.restart_policy == policy:
            return SupervisorResult(success=True, message=f"restart policy already {policy}")
        result = self.connector.run(f"docker update --restart {shlex.quote(policy)} {shlex.quote(name)}")
        return SupervisorResult(success=result.success, changed=result.success, message=result.output)

    def published_port(self, name: str, container_port: int, proto: str = "tcp") -> str | None:
        """Host address publishing ``container_port``, e.g. ``127.0.0.1:3000``."""
        state = self.inspect(name)
        if state is None:
            return None
        bindings = state.ports.get(f"{container_port}/{proto}") or []
        return bindings[0] if bindings else None

    def logs(self, name: str, tail: int = 50) -> str:
        result = self.connector.run(f"docker logs --tail {int(tail)} {shlex.quote(name)}", timeout=30)
        return result.output
