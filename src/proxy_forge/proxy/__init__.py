"""Reverse-proxy (nginx) configuration writer."""

from proxy_forge.proxy.parser import NginxConfigParser
from proxy_forge.proxy.renderer import CertPaths, VhostRenderer
from proxy_forge.proxy.writer import ApplyResult, VhostWriter

__all__ = ["ApplyResult", "CertPaths", "NginxConfigParser", "VhostRenderer", "VhostWriter"]
