"""
Cloudflare DNS provider.
Handles A/AAAA/CNAME records for sites and TXT records for DNS-01 challenges.
"""

import logging
from typing import Any, Optional

import requests

from proxy_forge.dnsprovider.base import DNSProvider
from proxy_forge.errors import DNSProviderError
from proxy_forge.model.state import DNSRecord

logger = logging.getLogger(__name__)


class CloudflareDNSProvider(DNSProvider):
    """Cloudflare v4 API client."""

    name = "cloudflare"
    base_url = "https://api.cloudflare.com/client/v4"

    def __init__(self, api_token: str, zone_id: Optional[str] = None, timeout: float = 30) -> None:
        self.api_token = api_token
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        })
        self.zone_id = zone_id
        self._zone_cache: dict[str, str] = {}

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> dict:
        """Call the API and return the decoded body.

        Raises:
            DNSProviderError: On transport errors or ``success: false``.
        """
        url = f"{self.base_url}/{endpoint}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise DNSProviderError(f"Cloudflare request failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise DNSProviderError(
                f"Cloudflare returned non-JSON response (HTTP {response.status_code})",
                stderr=response.text[:500],
            ) from e

        if not response.ok or not body.get("success", False):
            errors = body.get("errors") or []
            message = "; ".join(f"{e.get('code')}: {e.get('message')}" for e in errors) or f"HTTP {response.status_code}"
            raise DNSProviderError(f"Cloudflare API error on {method} {endpoint}: {message}")
        return body

    def validate_credentials(self) -> bool:
        """Check the token against the verify endpoint."""
        try:
            self._request("GET", "user/tokens/verify")
        except DNSProviderError as e:
            logger.error("Cloudflare token validation failed: %s", e)
            return False
        return True

    def find_zone(self, domain: str) -> str:
        """Longest-suffix zone match across all pages of zones."""
        domain = domain.rstrip(".").lower()
        if domain in self._zone_cache:
            return self._zone_cache[domain]

        best_id: str | None = None
        best_len = 0
        page = 1
        total_pages = 1
        while page <= total_pages:
            body = self._request("GET", "zones", params={"page": page, "per_page": 50})
            total_pages = (body.get("result_info") or {}).get("total_pages", total_pages)
            for zone in body.get("result", []):
                zone_name = zone.get("name", "").lower()
                if domain == zone_name or domain.endswith(f".{zone_name}"):
                    if len(zone_name) > best_len:
                        best_len = len(zone_name)
                        best_id = zone.get("id")
            page += 1

        if best_id is None:
            if self.zone_id:
                return self.zone_id
            raise DNSProviderError(f"No Cloudflare zone found for {domain}")

        logger.info("Using Cloudflare zone %s for %s", best_id, domain)
        self._zone_cache[domain] = best_id
        return best_id

    def _zone_for(self, name: str) -> str:
        if self.zone_id:
            return self.zone_id
        return self.find_zone(name)

    @staticmethod
    def _to_record(data: dict) -> DNSRecord:
        return DNSRecord(
            id=data.get("id"),
            name=data.get("name", ""),
            type=data.get("type", ""),
            content=data.get("content", ""),
            ttl=data.get("ttl", 1),
            proxied=bool(data.get("proxied", False)),
        )

    def record_matches(self, current: DNSRecord, content: str, ttl: int, proxied: bool) -> bool:
        # Proxied records always carry ttl 1 (automatic) whatever was sent
        if proxied and current.proxied:
            return current.content == content
        return super().record_matches(current, content, ttl, proxied)

    def _payload(self, record: DNSRecord) -> dict:
        payload = {
            "type": record.type,
            "name": record.name,
            "content": record.content,
            "ttl": record.ttl,
        }
        if record.type in ("A", "AAAA", "CNAME"):
            payload["proxied"] = record.proxied
        return payload

    def list_records(self, name: str, record_type: str) -> list[DNSRecord]:
        zone_id = self._zone_for(name)
        body = self._request(
            "GET",
            f"zones/{zone_id}/dns_records",
            params={"type": record_type, "name": name, "per_page": 100},
        )
        return [self._to_record(r) for r in body.get("result", [])]

    def create_record(self, record: DNSRecord) -> DNSRecord:
        zone_id = self._zone_for(record.name)
        logger.info("Creating %s record %s -> %s", record.type, record.name, record.content)
        body = self._request("POST", f"zones/{zone_id}/dns_records", json=self._payload(record))
        return self._to_record(body.get("result", {}))

    def update_record(self, record: DNSRecord) -> DNSRecord:
        if not record.id:
            raise DNSProviderError(f"Cannot update {record.name}: record has no id")
        zone_id = self._zone_for(record.name)
        logger.info("Updating %s record %s -> %s", record.type, record.name, record.content)
        body = self._request("PUT", f"zones/{zone_id}/dns_records/{record.id}", json=self._payload(record))
        return self._to_record(body.get("result", {}))

    def delete_record(self, record: DNSRecord) -> None:
        if not record.id:
            raise DNSProviderError(f"Cannot delete {record.name}: record has no id")
        zone_id = self._zone_for(record.name)
        logger.info("Deleting %s record %s", record.type, record.name)
        self._request("DELETE", f"zones/{zone_id}/dns_records/{record.id}")
