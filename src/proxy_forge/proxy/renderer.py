"""Virtual-host rendering from jinja2 templates."""

import os
from dataclasses import dataclass
from datetime import datetime

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from proxy_forge.certs.certbot import LIVE_DIR
from proxy_forge.model.manifest import SiteSpec

MARKER_PREFIX = "# managed by proxy-forge:"


def managed_marker(name: str) -> str:
    return f"{MARKER_PREFIX} {name}"


def is_managed(content: str | None) -> bool:
    """True if ``content`` was written by proxy-forge."""
    if not content:
        return False
    first_line = content.lstrip().split("\n", 1)[0]
    return first_line.startswith(MARKER_PREFIX)


def strip_generated_header(content: str) -> str:
    """Drop the timestamp line so two renders can be compared."""
    return "\n".join(l for l in content.splitlines() if not l.startswith("# Generated "))


@dataclass
class CertPaths:
    """Certificate file locations for the HTTPS server block."""

    fullchain: str
    privkey: str

    @classmethod
    def for_lineage(cls, cert_name: str) -> "CertPaths":
        """Paths certbot uses for a lineage under /etc/letsencrypt/live."""
        return cls(f"{LIVE_DIR}/{cert_name}/fullchain.pem", f"{LIVE_DIR}/{cert_name}/privkey.pem")


def template_environment(template_dir: str | None = None) -> Environment:
    if template_dir is None:
        template_dir = os.path.join(os.path.dirname(__file__), "..", "templates")
    return Environment(
        loader=FileSystemLoader(template_dir),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


class VhostRenderer:
    """Renders nginx server blocks for a site."""

    def __init__(self, template_dir: str | None = None) -> None:
        self.env = template_environment(template_dir)
        self.template = self.env.get_template("site.conf.j2")

    def render_site(self, site: SiteSpec, cert: CertPaths | None = None) -> str:
        """Render the complete site file.

        Without ``cert`` the port-80 server proxies to the upstream and
        serves ACME challenges. With ``cert`` port 80 only serves ACME
        challenges and redirects, and a TLS server proxies instead.
        """
        content = self.template.render(
            site=site,
            cert=cert,
            marker=managed_marker(site.domain),
            generated_at=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        )
        return content.rstrip() + "\n"

    def render_http(self, site: SiteSpec) -> str:
        return self.render_site(site, cert=None)

    def render_https(self, site: SiteSpec, cert: CertPaths) -> str:
        return self.render_site(site, cert=cert)
