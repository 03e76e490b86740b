"""Certbot manual-mode hooks for DNS-01.

certbot runs ``proxy-forge hook auth`` / ``proxy-forge hook cleanup``
on the host with CERTBOT_DOMAIN and CERTBOT_VALIDATION set. The hooks
create and remove the ``_acme-challenge`` TXT record through the
configured DNS provider.
"""

import logging
import os

from proxy_forge.config import ConfigManager
from proxy_forge.dnsprovider import challenge_record_name, get_provider
from proxy_forge.dnsprovider.base import DNSProvider
from proxy_forge.dnsprovider.propagation import wait_for_txt
from proxy_forge.errors import ForgeError

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "cloudflare"


def _required_env(name: str) -> str:
    value = (os.environ.get(name) or "").strip()
    if not value:
        raise ForgeError(f"Missing required environment variable: {name}")
    return value


def provider_from_env(config_mgr: ConfigManager) -> DNSProvider:
    """Provider selected by PROXY_FORGE_DNS_PROVIDER with its stored token."""
    name = (os.environ.get("PROXY_FORGE_DNS_PROVIDER") or DEFAULT_PROVIDER).strip()
    zone_id = os.environ.get("PROXY_FORGE_DNS_ZONE_ID") or None
    return get_provider(name, config_mgr.get_dns_token(name), zone_id=zone_id)


def auth_hook(provider: DNSProvider, *, propagation_timeout: float | None = None) -> str:
    """Publish the validation token. Returns the record name."""
    domain = _required_env("CERTBOT_DOMAIN")
    validation = _required_env("CERTBOT_VALIDATION")
    record_name = challenge_record_name(domain)

    provider.create_txt(record_name, validation)
    logger.info("Published %s, waiting for propagation", record_name)

    if propagation_timeout is None:
        propagation_timeout = float(os.environ.get("PROXY_FORGE_PROPAGATION_TIMEOUT", "180"))
    if not wait_for_txt(record_name, validation, timeout=propagation_timeout):
        raise ForgeError(f"{record_name} did not propagate within {propagation_timeout:.0f}s")
    return record_name


def cleanup_hook(provider: DNSProvider) -> int:
    """Remove the validation token. Returns number of records deleted."""
    domain = _required_env("CERTBOT_DOMAIN")
    validation = os.environ.get("CERTBOT_VALIDATION") or None
    record_name = challenge_record_name(domain)
    deleted = provider.delete_txt(record_name, validation)
    logger.info("Removed %d TXT record(s) from %s", deleted, record_name)
    return deleted
