"""Certificate authority client (certbot)."""

from proxy_forge.certs.certbot import CertbotClient, CertResult, parse_certificates

__all__ = ["CertResult", "CertbotClient", "parse_certificates"]
