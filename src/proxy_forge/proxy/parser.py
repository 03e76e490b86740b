"""Nginx configuration parser.

Parses the output of ``nginx -T`` into ServerBlock objects, keeping
the source file and line number of each block. Only the directives
needed to detect server_name collisions and TLS state are read.
"""

import re
from dataclasses import dataclass

from proxy_forge.model.manifest import SiteSpec
from proxy_forge.model.nginx import NginxInfo, ServerBlock


@dataclass
class ParseContext:
    """Position tracking while walking the dump."""

    current_file: str = ""
    in_server: bool = False
    brace_depth: int = 0
    server_brace_depth: int = 0


class NginxConfigParser:
    """Parser for nginx -T output."""

    # Example: # configuration file /etc/nginx/nginx.conf:
    FILE_HEADER_RE = re.compile(r"^# configuration file (.*):")
    SERVER_START_RE = re.compile(r"^server\s*\{")

    def parse(self, nginx_t_output: str) -> NginxInfo:
        info = NginxInfo()
        ctx = ParseContext()
        current: ServerBlock | None = None

        for line_num, line in enumerate(nginx_t_output.split("\n"), start=1):
            stripped = line.strip()

            file_match = self.FILE_HEADER_RE.match(stripped)
            if file_match:
                ctx.current_file = file_match.group(1)
                if not info.config_path and ctx.current_file.endswith("nginx.conf"):
                    info.config_path = ctx.current_file
                if ctx.current_file not in info.files:
                    info.files.append(ctx.current_file)
                continue

            # Drop comments, including trailing ones
            stripped = stripped.split("#", 1)[0].strip() if not stripped.startswith("#") else ""
            if not stripped:
                continue

            open_braces = stripped.count("{")
            close_braces = stripped.count("}")

            if not ctx.in_server and self.SERVER_START_RE.match(stripped):
                current = ServerBlock(source_file=ctx.current_file, line_number=line_num)
                ctx.in_server = True
                ctx.server_brace_depth = ctx.brace_depth
                ctx.brace_depth += open_braces - close_braces
                continue

            ctx.brace_depth += open_braces - close_braces

            if ctx.in_server and close_braces and ctx.brace_depth <= ctx.server_brace_depth:
                if current:
                    info.servers.append(current)
                current = None
                ctx.in_server = False
                continue

            if current is not None:
                # Directives directly in the server block sit one level deep
                server_level = ctx.brace_depth == ctx.server_brace_depth + 1
                self._parse_directive(stripped, current, server_level)

        return info

    def _parse_directive(self, line: str, server: ServerBlock, server_level: bool) -> None:
        line = line.rstrip(";").strip()
        parts = line.split(None, 1)
        if not parts:
            return
        directive = parts[0].lower()
        args = parts[1].strip() if len(parts) > 1 else ""

        if directive == "proxy_pass":
            server.proxy_passes.append(args)
            return
        if not server_level:
            return

        if directive == "server_name":
            server.server_names = [n for n in args.split() if n]
        elif directive == "listen":
            server.listen.append(args)
            if " ssl" in f" {args.lower()}":
                server.ssl_enabled = True
        elif directive == "ssl_certificate":
            server.ssl_certificate = args
        elif directive == "ssl_certificate_key":
            server.ssl_certificate_key = args


def find_conflicts(site: SiteSpec, info: NginxInfo, own_file: str) -> list[ServerBlock]:
    """Server blocks outside ``own_file`` that already claim one of the site's names.

    A name served by two files makes nginx pick one silently
    ("conflicting server name ... ignored"), so these are reported
    before the site is enabled.
    """
    conflicts: list[ServerBlock] = []
    own_names = {own_file, own_file.replace("sites-enabled", "sites-available")}
    for server in info.servers:
        if server.source_file in own_names:
            continue
        if any(name in server.server_names for name in site.names):
            conflicts.append(server)
    return conflicts
