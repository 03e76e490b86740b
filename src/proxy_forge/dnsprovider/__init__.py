"""DNS provider clients."""

from proxy_forge.dnsprovider.base import DNSProvider, challenge_record_name
from proxy_forge.dnsprovider.cloudflare import CloudflareDNSProvider
from proxy_forge.errors import DNSProviderError

PROVIDERS: dict[str, type[DNSProvider]] = {
    "cloudflare": CloudflareDNSProvider,
}


def get_provider(name: str, token: str | None, zone_id: str | None = None) -> DNSProvider:
    """Instantiate the provider registered as ``name``."""
    provider_cls = PROVIDERS.get(name)
    if provider_cls is None:
        raise DNSProviderError(f"Unknown DNS provider: {name} (known: {', '.join(sorted(PROVIDERS))})")
    if not token:
        raise DNSProviderError(
            f"No API token for {name}. Run 'proxy-forge config set-dns-token {name}' or set the env var."
        )
    return provider_cls(token, zone_id=zone_id)


__all__ = ["CloudflareDNSProvider", "DNSProvider", "PROVIDERS", "challenge_record_name", "get_provider"]
