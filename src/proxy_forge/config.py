"""Configuration management for proxy-forge server profiles and credentials."""

import logging
import os
from pathlib import Path
from typing import Any

import keyring
import yaml
from keyring.errors import KeyringError

from proxy_forge.connector.ssh import SSHConfig
from proxy_forge.errors import ForgeError, ProfileError

logger = logging.getLogger(__name__)

KEYRING_MARKER = "__keyring__"

# Env var names that override stored DNS provider tokens
DNS_TOKEN_ENV = {
    "cloudflare": "CLOUDFLARE_API_TOKEN",
}


class ConfigManager:
    """Manages server profiles stored in YAML format with secure keyring for secrets."""

    def __init__(self, config_dir: Path | None = None) -> None:
        if config_dir is None:
            env_config = os.getenv("PROXY_FORGE_CONFIG")
            if env_config:
                config_dir = Path(env_config).expanduser().resolve()
            else:
                config_dir = Path.home() / ".proxy-forge"

        self.config_dir = config_dir
        self.profiles_file = config_dir / "profiles.yaml"
        self.service_id = "proxy-forge"
        self._ensure_config_dir()

    def _ensure_config_dir(self) -> None:
        """Create config directory if it doesn't exist."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        if not self.profiles_file.exists():
            self._save_profiles({})

    def _load_profiles(self) -> dict[str, Any]:
        """Load all profiles from the YAML file."""
        if not self.profiles_file.exists():
            return {}

        try:
            with open(self.profiles_file, "r") as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.warning("Ignoring unreadable profiles file %s: %s", self.profiles_file, e)
            return {}

    def _save_profiles(self, profiles: dict[str, Any]) -> None:
        """Save profiles to the YAML file with proper permissions."""
        self.profiles_file.touch(mode=0o600)
        with open(self.profiles_file, "w") as f:
            yaml.safe_dump(profiles, f)

    def add_profile(self, name: str, config: SSHConfig) -> None:
        """Add or update a server profile."""
        profiles = self._load_profiles()

        password_ref = None
        if config.password:
            try:
                keyring.set_password(self.service_id, name, config.password)
                password_ref = KEYRING_MARKER
            except KeyringError:
                # No keyring backend (headless host); keep it in the 0600 file
                logger.warning("No keyring backend available; storing password for %s in %s", name, self.profiles_file)
                password_ref = config.password

        profiles[name] = {
            "host": config.host,
            "user": config.user,
            "port": config.port,
            "key_path": config.key_path,
            "use_sudo": config.use_sudo,
            "password": password_ref,
        }
        self._save_profiles(profiles)

    def get_profile(self, name: str) -> SSHConfig | None:
        """Get an SSHConfig by profile name."""
        profiles = self._load_profiles()
        data = profiles.get(name)
        if not data:
            return None

        password = data.get("password")
        if password == KEYRING_MARKER:
            try:
                password = keyring.get_password(self.service_id, name)
            except KeyringError:
                password = None

        return SSHConfig(
            host=data["host"],
            user=data.get("user", "root"),
            port=data.get("port", 22),
            key_path=data.get("key_path"),
            use_sudo=data.get("use_sudo", True),
            password=password,
        )

    def resolve(self, server: str) -> SSHConfig:
        """Resolve a profile name, or treat ``server`` as a host (``user@host`` allowed)."""
        server = server.strip()
        cfg = self.get_profile(server)
        if cfg:
            return cfg
        user = "root"
        host = server
        if "@" in server:
            user, host = server.split("@", 1)
        if not host or not user:
            raise ProfileError(f"Not a profile name, host or user@host: {server!r}")
        return SSHConfig(host=host, user=user)

    def list_profiles(self) -> dict[str, Any]:
        """List all available profiles."""
        return self._load_profiles()

    def remove_profile(self, name: str) -> bool:
        """Remove a server profile."""
        profiles = self._load_profiles()
        if name not in profiles:
            return False

        if profiles[name].get("password") == KEYRING_MARKER:
            try:
                keyring.delete_password(self.service_id, name)
            except KeyringError as e:
                logger.warning("Could not remove keyring entry for %s: %s", name, e)

        del profiles[name]
        self._save_profiles(profiles)
        return True

    # =========================================================================
    # DNS provider credentials
    # =========================================================================

    def set_dns_token(self, provider: str, token: str) -> None:
        """Store a DNS provider API token in the keyring.

        Raises:
            ForgeError: No usable keyring backend (typical on headless hosts).
        """
        try:
            keyring.set_password(f"{self.service_id}-dns", provider, token)
        except KeyringError as e:
            env_name = DNS_TOKEN_ENV.get(provider)
            hint = f"; set {env_name} in the environment instead" if env_name else ""
            raise ForgeError(f"Could not store the {provider} token in the keyring: {e}{hint}") from e

    def get_dns_token(self, provider: str) -> str | None:
        """Return the API token for ``provider``; the environment wins over the keyring."""
        env_name = DNS_TOKEN_ENV.get(provider)
        if env_name and os.getenv(env_name):
            return os.getenv(env_name)
        try:
            return keyring.get_password(f"{self.service_id}-dns", provider)
        except KeyringError:
            return None
