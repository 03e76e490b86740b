"""proxy-forge: reverse proxy, TLS and firewall provisioning over SSH."""

__version__ = "0.3.0"
