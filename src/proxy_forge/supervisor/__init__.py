"""Process supervision: docker containers, systemd units, upstream probes."""

from proxy_forge.supervisor.docker import DockerSupervisor, SupervisorResult
from proxy_forge.supervisor.probe import UpstreamProbe
from proxy_forge.supervisor.systemd import SystemdSupervisor

__all__ = ["DockerSupervisor", "SupervisorResult", "SystemdSupervisor", "UpstreamProbe"]
