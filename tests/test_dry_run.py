from proxy_forge.connector.dry_run import DryRunConnector
from proxy_forge.proxy.writer import VhostWriter


def test_read_only_commands_pass_through(fake_host):
    fake_host.respond("ufw status verbose", "Status: active\n")
    dry = DryRunConnector(fake_host)

    assert dry.run("ufw status verbose").stdout == "Status: active\n"
    assert dry.run("nginx -T").success
    assert dry.planned == []
    assert fake_host.commands == ["ufw status verbose", "nginx -T"]


def test_mutating_commands_are_recorded(fake_host):
    dry = DryRunConnector(fake_host)
    result = dry.run("ufw --force enable")
    assert result.success
    assert dry.planned == ["ufw --force enable"]
    assert fake_host.commands == []


def test_write_file_is_recorded(fake_host):
    dry = DryRunConnector(fake_host)
    assert dry.write_file("/etc/nginx/sites-available/x", "server {}\n")
    assert dry.planned == ["write /etc/nginx/sites-available/x (10 bytes)"]
    assert fake_host.files == {}


def test_is_read_only():
    dry = DryRunConnector.__new__(DryRunConnector)
    assert dry.is_read_only("  certbot certificates")
    assert dry.is_read_only("systemctl is-active nginx")
    assert not dry.is_read_only("systemctl reload nginx")
    assert not dry.is_read_only("certbot certonly --webroot")
    assert not dry.is_read_only("docker start app")


def test_dry_run_vhost_apply_plans_everything(fake_host):
    dry = DryRunConnector(fake_host)
    content = "# managed by proxy-forge: app.example.com\nserver {}\n"
    result = VhostWriter(dry).apply_site("app.example.com", content)

    assert result.success
    assert dry.planned == [
        f"write /etc/nginx/sites-available/app.example.com ({len(content)} bytes)",
        "ln -sf /etc/nginx/sites-available/app.example.com /etc/nginx/sites-enabled/app.example.com",
        "systemctl reload nginx",
    ]
    assert fake_host.files == {}
    assert fake_host.links == set()
