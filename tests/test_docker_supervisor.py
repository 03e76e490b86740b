import json

import pytest

from proxy_forge.supervisor.docker import DockerSupervisor, parse_inspect
from proxy_forge.supervisor.systemd import SystemdSupervisor


def _inspect(status="running", running=True, policy="no", restarts=0, health=None):
    state = {"Status": status, "Running": running}
    if health:
        state["Health"] = {"Status": health}
    return json.dumps([{
        "Id": "0123456789abcdef0123",
        "Name": "/app",
        "RestartCount": restarts,
        "Config": {"Image": "ghcr.io/acme/app:1.4"},
        "State": state,
        "HostConfig": {"RestartPolicy": {"Name": policy}},
        "NetworkSettings": {"Ports": {
            "3000/tcp": [{"HostIp": "127.0.0.1", "HostPort": "3000"}],
            "9229/tcp": None,
        }},
    }])


def test_parse_inspect():
    state = parse_inspect(json.loads(_inspect(health="healthy", policy="always", restarts=3))[0])
    assert state.name == "app"
    assert state.id == "0123456789ab"
    assert state.image == "ghcr.io/acme/app:1.4"
    assert state.running and state.is_healthy
    assert state.restart_policy == "always"
    assert state.restart_count == 3
    assert state.ports == {"3000/tcp": ["127.0.0.1:3000"], "9229/tcp": []}


def test_unhealthy_container_is_not_healthy():
    state = parse_inspect(json.loads(_inspect(health="unhealthy"))[0])
    assert state.running and not state.is_healthy


def test_inspect_missing_container(fake_host):
    fake_host.respond("docker inspect", stderr="Error: No such object: app", exit_code=1)
    assert DockerSupervisor(fake_host).inspect("app") is None


def test_ensure_running_noop(fake_host):
    fake_host.respond("docker inspect app", _inspect())
    result = DockerSupervisor(fake_host).ensure_running("app")
    assert result.success and not result.changed
    assert not fake_host.ran("docker start")


def test_ensure_running_starts_exited(fake_host):
    fake_host.respond("docker inspect app", _inspect(status="exited", running=False))
    result = DockerSupervisor(fake_host).ensure_running("app")
    assert result.success and result.changed
    assert fake_host.ran("docker start app")


def test_ensure_running_refuses_crash_loop(fake_host):
    fake_host.respond("docker inspect app", _inspect(status="restarting", running=False, restarts=12))
    result = DockerSupervisor(fake_host).ensure_running("app")
    assert not result.success
    assert "crash-looping" in result.message
    assert "docker logs app" in result.message


def test_ensure_running_missing(fake_host):
    fake_host.respond("docker inspect", exit_code=1)
    result = DockerSupervisor(fake_host).ensure_running("app")
    assert not result.success
    assert result.message == "container app not found"


@pytest.mark.parametrize("policy,expect_update", [("no", True), ("unless-stopped", False)])
def test_ensure_restart_policy(fake_host, policy, expect_update):
    fake_host.respond("docker inspect app", _inspect(policy=policy))
    result = DockerSupervisor(fake_host).ensure_restart_policy("app")
    assert result.success
    assert result.changed is expect_update
    assert bool(fake_host.ran("docker update --restart unless-stopped app")) is expect_update


def test_published_port(fake_host):
    fake_host.respond("docker inspect app", _inspect())
    supervisor = DockerSupervisor(fake_host)
    assert supervisor.published_port("app", 3000) == "127.0.0.1:3000"
    assert supervisor.published_port("app", 9229) is None


def test_systemd_ensure_active(fake_host):
    fake_host.respond("systemctl is-active nginx", "inactive\n", exit_code=3)
    result = SystemdSupervisor(fake_host).ensure_active("nginx")
    assert result.success and result.changed
    assert fake_host.ran("systemctl enable --now nginx")


def test_systemd_already_active(fake_host):
    fake_host.respond("systemctl is-active nginx", "active\n")
    fake_host.respond("systemctl is-enabled nginx", "enabled\n")
    result = SystemdSupervisor(fake_host).ensure_active("nginx")
    assert result.success and not result.changed
