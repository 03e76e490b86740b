from unittest.mock import patch

import pytest
import yaml
from keyring.errors import KeyringError, NoKeyringError

from proxy_forge.config import KEYRING_MARKER, ConfigManager
from proxy_forge.connector.ssh import SSHConfig
from proxy_forge.errors import ForgeError, ProfileError


@pytest.fixture
def config_mgr(tmp_path):
    return ConfigManager(tmp_path / "cfg")


def test_creates_profiles_file(config_mgr):
    assert config_mgr.profiles_file.exists()
    assert config_mgr.list_profiles() == {}


def test_config_dir_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("PROXY_FORGE_CONFIG", str(tmp_path / "from-env"))
    assert ConfigManager().config_dir == (tmp_path / "from-env").resolve()


def test_profile_round_trip_without_password(config_mgr):
    config_mgr.add_profile("web-1", SSHConfig(host="203.0.113.10", user="deploy", port=2222, key_path="~/.ssh/id"))
    cfg = config_mgr.get_profile("web-1")
    assert (cfg.host, cfg.user, cfg.port, cfg.key_path, cfg.password) == (
        "203.0.113.10", "deploy", 2222, "~/.ssh/id", None,
    )


def test_password_goes_to_keyring(config_mgr):
    with patch("proxy_forge.config.keyring") as kr:
        kr.get_password.return_value = "s3cret"
        config_mgr.add_profile("web-1", SSHConfig(host="h", password="s3cret"))
        stored = yaml.safe_load(config_mgr.profiles_file.read_text())
        assert stored["web-1"]["password"] == KEYRING_MARKER
        kr.set_password.assert_called_once_with("proxy-forge", "web-1", "s3cret")
        assert config_mgr.get_profile("web-1").password == "s3cret"


def test_password_falls_back_to_file_without_keyring(config_mgr):
    with patch("proxy_forge.config.keyring.set_password", side_effect=NoKeyringError()):
        config_mgr.add_profile("web-1", SSHConfig(host="h", password="s3cret"))
    assert config_mgr.get_profile("web-1").password == "s3cret"
    assert config_mgr.profiles_file.stat().st_mode & 0o077 == 0


def test_keyring_read_failure_gives_no_password(config_mgr):
    with patch("proxy_forge.config.keyring") as kr:
        config_mgr.add_profile("web-1", SSHConfig(host="h", password="s3cret"))
    with patch("proxy_forge.config.keyring.get_password", side_effect=KeyringError()):
        assert config_mgr.get_profile("web-1").password is None


def test_remove_profile_deletes_keyring_entry(config_mgr):
    with patch("proxy_forge.config.keyring") as kr:
        config_mgr.add_profile("web-1", SSHConfig(host="h", password="s3cret"))
        assert config_mgr.remove_profile("web-1")
        kr.delete_password.assert_called_once_with("proxy-forge", "web-1")
    assert not config_mgr.remove_profile("web-1")


@pytest.mark.parametrize(
    "server,user,host",
    [("203.0.113.10", "root", "203.0.113.10"), ("deploy@web.example.com", "deploy", "web.example.com")],
)
def test_resolve_unknown_server(config_mgr, server, user, host):
    cfg = config_mgr.resolve(server)
    assert (cfg.user, cfg.host) == (user, host)


def test_resolve_prefers_profile(config_mgr):
    config_mgr.add_profile("web-1", SSHConfig(host="203.0.113.10", user="deploy"))
    assert config_mgr.resolve("web-1").host == "203.0.113.10"


def test_dns_token_env_wins(config_mgr, monkeypatch):
    monkeypatch.setenv("CLOUDFLARE_API_TOKEN", "from-env")
    with patch("proxy_forge.config.keyring.get_password", return_value="from-keyring") as get_password:
        assert config_mgr.get_dns_token("cloudflare") == "from-env"
    get_password.assert_not_called()


def test_dns_token_from_keyring(config_mgr, monkeypatch):
    monkeypatch.delenv("CLOUDFLARE_API_TOKEN", raising=False)
    with patch("proxy_forge.config.keyring.get_password", return_value="from-keyring") as get_password:
        assert config_mgr.get_dns_token("cloudflare") == "from-keyring"
    get_password.assert_called_once_with("proxy-forge-dns", "cloudflare")


def test_dns_token_missing_keyring(config_mgr, monkeypatch):
    monkeypatch.delenv("CLOUDFLARE_API_TOKEN", raising=False)
    with patch("proxy_forge.config.keyring.get_password", side_effect=NoKeyringError()):
        assert config_mgr.get_dns_token("cloudflare") is None


@pytest.mark.parametrize("server", ["", "deploy@", "@web.example.com"])
def test_resolve_rejects_unusable_server(config_mgr, server):
    with pytest.raises(ProfileError):
        config_mgr.resolve(server)


def test_set_dns_token_without_keyring(config_mgr):
    with patch("proxy_forge.config.keyring.set_password", side_effect=NoKeyringError()):
        with pytest.raises(ForgeError, match="CLOUDFLARE_API_TOKEN"):
            config_mgr.set_dns_token("cloudflare", "tok")
