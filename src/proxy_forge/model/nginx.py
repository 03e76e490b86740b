"""Parsed nginx configuration (from ``nginx -T``)."""

from dataclasses import dataclass, field


@dataclass
class ServerBlock:
    """An nginx server block, as far as provisioning cares."""

    source_file: str = ""
    line_number: int = 0
    server_names: list[str] = field(default_factory=list)
    listen: list[str] = field(default_factory=list)
    ssl_enabled: bool = False
    ssl_certificate: str | None = None
    ssl_certificate_key: str | None = None
    proxy_passes: list[str] = field(default_factory=list)

    @property
    def ports(self) -> set[int]:
        """Ports this block listens on."""
        ports: set[int] = set()
        for value in self.listen:
            token = value.split()[0] if value.split() else ""
            token = token.rsplit(":", 1)[-1].rstrip("]")
            if token.isdigit():
                ports.add(int(token))
        return ports


@dataclass
class NginxInfo:
    """Result of parsing the full ``nginx -T`` dump."""

    config_path: str = ""
    files: list[str] = field(default_factory=list)
    servers: list[ServerBlock] = field(default_factory=list)

    def servers_for(self, name: str) -> list[ServerBlock]:
        return [s for s in self.servers if name in s.server_names]
