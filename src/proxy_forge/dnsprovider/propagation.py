"""DNS propagation checks for DNS-01 challenges."""

import logging
import shlex
import time

import dns.exception
import dns.resolver

from proxy_forge.connector.base import BaseConnector

logger = logging.getLogger(__name__)


def authoritative_nameservers(domain: str) -> list[str]:
    """IP addresses of the authoritative nameservers for ``domain``'s zone.

    Returns an empty list when they can't be resolved; callers then fall
    back to the system resolver.
    """
    ips: list[str] = []
    try:
        zone = dns.resolver.zone_for_name(domain)
        for ns in dns.resolver.resolve(zone, "NS"):
            try:
                for a in dns.resolver.resolve(ns.target.to_text(), "A"):
                    ips.append(a.address)
            except dns.exception.DNSException:
                continue
    except dns.exception.DNSException as e:
        logger.warning("Authoritative NS lookup failed for %s: %s", domain, e)
    return ips


def txt_values(name: str, nameservers: list[str] | None = None, lifetime: float = 10) -> list[str]:
    """Current TXT values for ``name`` (quotes stripped, chunks joined)."""
    resolver = dns.resolver.Resolver(configure=not nameservers)
    if nameservers:
        resolver.nameservers = nameservers
    resolver.lifetime = lifetime
    try:
        answer = resolver.resolve(name, "TXT")
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
        return []
    except dns.exception.DNSException as e:
        logger.debug("TXT lookup for %s failed: %s", name, e)
        return []
    return [b"".join(r.strings).decode("utf-8", errors="replace") for r in answer]


def wait_for_txt(
    name: str,
    value: str,
    *,
    timeout: float = 180,
    interval: float = 10,
    nameservers: list[str] | None = None,
) -> bool:
    """Poll until ``value`` is served for TXT ``name``.

    Queries the zone's authoritative servers unless ``nameservers`` is
    given. Returns False on timeout.
    """
    if nameservers is None:
        nameservers = authoritative_nameservers(name) or None

    deadline = time.monotonic() + timeout
    while True:
        if value in txt_values(name, nameservers):
            logger.info("TXT %s is visible", name)
            return True
        if time.monotonic() >= deadline:
            logger.warning("TXT %s not visible after %ss", name, timeout)
            return False
        logger.debug("TXT %s not visible yet, retrying in %ss", name, interval)
        time.sleep(interval)


def detect_public_ip(connector: BaseConnector) -> str | None:
    """Public IPv4 of the target host, asked from the host itself."""
    for url in ("https://api.ipify.org", "https://ifconfig.me/ip"):
        result = connector.run(f"curl -4 -s --max-time 5 {shlex.quote(url)}", use_sudo=False, timeout=10)
        candidate = result.stdout.strip()
        if result.success and candidate.count(".") == 3:
            return candidate
    return None
