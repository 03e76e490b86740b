"""Deployment manifest - what a host should look like after provisioning.

The manifest is a YAML document validated with pydantic. A minimal one:

    server: web-1
    sites:
      - domain: app.example.com
        upstream: 127.0.0.1:3000
        container: app
        tls:
          email: ops@example.com
"""

import re
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from proxy_forge.errors import ManifestError

_HOSTNAME_RE = re.compile(r"^(\*\.)?([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")
_PORT_RANGE_RE = re.compile(r"^(\d{1,5})(:(\d{1,5}))?$")


class ChallengeType(str, Enum):
    """ACME challenge used to prove domain ownership."""

    HTTP_01 = "http-01"
    DNS_01 = "dns-01"


class TLSSpec(BaseModel):
    """Certificate settings for a site."""

    enabled: bool = True
    challenge: ChallengeType = ChallengeType.HTTP_01
    email: Optional[str] = None
    staging: bool = False
    webroot: str = "/var/www/letsencrypt"
    key_type: str = Field("ecdsa", pattern=r"^(ecdsa|rsa)$")


class DNSSpec(BaseModel):
    """DNS record management for a site."""

    provider: str = "cloudflare"
    target_ip: Optional[str] = None
    ttl: int = Field(300, ge=1)
    proxied: bool = False
    zone_id: Optional[str] = None


class SiteSpec(BaseModel):
    """A domain served by nginx and forwarded to an upstream."""

    domain: str
    aliases: list[str] = Field(default_factory=list)
    upstream: str
    container: Optional[str] = None
    websocket: bool = False
    client_max_body_size: str = "10m"
    hsts: bool = True
    extra_headers: dict[str, str] = Field(default_factory=dict)
    tls: TLSSpec = Field(default_factory=TLSSpec)
    dns: Optional[DNSSpec] = None

    @field_validator("domain", "aliases", mode="before")
    @classmethod
    def _lowercase(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        if isinstance(value, list):
            return [str(v).strip().lower() for v in value]
        return value

    @field_validator("domain")
    @classmethod
    def _valid_domain(cls, value: str) -> str:
        if not _HOSTNAME_RE.match(value):
            raise ValueError(f"invalid domain name: {value!r}")
        return value

    @field_validator("aliases")
    @classmethod
    def _valid_aliases(cls, value: list[str]) -> list[str]:
        for alias in value:
            if not _HOSTNAME_RE.match(alias):
                raise ValueError(f"invalid alias: {alias!r}")
        return value

    @field_validator("upstream", mode="before")
    @classmethod
    def _valid_upstream(cls, value) -> str:
        value = str(value).strip()
        if value.isdigit():
            value = f"127.0.0.1:{value}"
        for prefix in ("http://", "https://"):
            if value.startswith(prefix):
                value = value[len(prefix):]
        value = value.rstrip("/")
        if ":" not in value:
            raise ValueError("upstream must be host:port or a bare port")
        host, _, port = value.rpartition(":")
        if not port.isdigit() or not 1 <= int(port) <= 65535:
            raise ValueError(f"invalid upstream port: {port!r}")
        return f"{host or '127.0.0.1'}:{port}"

    @model_validator(mode="after")
    def _check_tls(self) -> "SiteSpec":
        if not self.tls.enabled:
            return self
        if not self.tls.email or "@" not in self.tls.email:
            raise ValueError(f"{self.domain}: tls.email must be a valid address")
        if self.tls.challenge == ChallengeType.DNS_01 and self.dns is None:
            raise ValueError(f"{self.domain}: dns-01 challenge requires a dns block")
        if self.tls.challenge == ChallengeType.HTTP_01 and any(n.startswith("*.") for n in self.names):
            raise ValueError(f"{self.domain}: wildcard names require the dns-01 challenge")
        return self

    @property
    def names(self) -> list[str]:
        """All server names, primary domain first."""
        return [self.domain] + [a for a in self.aliases if a != self.domain]

    @property
    def site_name(self) -> str:
        """File name used under sites-available."""
        return self.domain.replace("*.", "wildcard.")

    @property
    def upstream_host(self) -> str:
        return self.upstream.rpartition(":")[0]

    @property
    def upstream_port(self) -> int:
        return int(self.upstream.rpartition(":")[2])


class FirewallAction(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    LIMIT = "limit"
    REJECT = "reject"


class FirewallRule(BaseModel):
    """A single inbound ACL rule."""

    port: str
    proto: str = Field("tcp", pattern=r"^(tcp|udp|any)$")
    action: FirewallAction = FirewallAction.ALLOW
    source: Optional[str] = None
    comment: Optional[str] = None

    @field_validator("port", mode="before")
    @classmethod
    def _valid_port(cls, value) -> str:
        text = str(value).strip()
        match = _PORT_RANGE_RE.match(text)
        if not match:
            raise ValueError(f"invalid port: {text!r}")
        low = int(match.group(1))
        high = int(match.group(3)) if match.group(3) else low
        if not (1 <= low <= 65535 and 1 <= high <= 65535 and low <= high):
            raise ValueError(f"port out of range: {text!r}")
        return text

    @model_validator(mode="after")
    def _range_needs_proto(self) -> "FirewallRule":
        if ":" in self.port and self.proto == "any":
            raise ValueError("port ranges need an explicit proto (tcp or udp)")
        return self


def _default_rules() -> list[FirewallRule]:
    return [
        FirewallRule(port="80", comment="http"),
        FirewallRule(port="443", comment="https"),
    ]


class FirewallSpec(BaseModel):
    """Host firewall policy applied through ufw."""

    enabled: bool = True
    ssh_port: int = Field(22, ge=1, le=65535)
    default_incoming: str = Field("deny", pattern=r"^(deny|allow|reject)$")
    default_outgoing: str = Field("allow", pattern=r"^(deny|allow|reject)$")
    rules: list[FirewallRule] = Field(default_factory=_default_rules)


class Fail2banSpec(BaseModel):
    """fail2ban jail settings."""

    enabled: bool = True
    bantime: int = Field(3600, ge=1)
    findtime: int = Field(600, ge=1)
    maxretry: int = Field(5, ge=1)
    jails: list[str] = Field(default_factory=lambda: ["sshd", "nginx-http-auth", "nginx-botsearch"])


class Manifest(BaseModel):
    """Top-level deployment manifest."""

    server: str
    sites: list[SiteSpec] = Field(default_factory=list)
    firewall: FirewallSpec = Field(default_factory=FirewallSpec)
    fail2ban: Fail2banSpec = Field(default_factory=Fail2banSpec)

    @model_validator(mode="after")
    def _unique_names(self) -> "Manifest":
        seen: dict[str, str] = {}
        for site in self.sites:
            for name in site.names:
                if name in seen:
                    raise ValueError(f"{name} is claimed by both {seen[name]} and {site.domain}")
                seen[name] = site.domain
        return self

    def get_site(self, domain: str) -> SiteSpec | None:
        domain = domain.strip().lower()
        return next((s for s in self.sites if domain in s.names), None)


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest file.

    Raises:
        ManifestError: If the file is missing, not YAML, or fails validation.
    """
    manifest_path = Path(path).expanduser()
    try:
        with open(manifest_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ManifestError(f"Cannot read manifest {manifest_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ManifestError(f"Manifest {manifest_path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"Manifest {manifest_path} must be a mapping")

    try:
        return Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"Invalid manifest {manifest_path}:\n{e}") from e
