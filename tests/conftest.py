"""Pytest configuration and fixtures for proxy-forge tests."""

import shlex
from unittest.mock import MagicMock

import pytest

from proxy_forge.connector.base import BaseConnector, CommandResult
from proxy_forge.connector.ssh import SSHConnector
from proxy_forge.dnsprovider.base import DNSProvider
from proxy_forge.model.manifest import Manifest
from proxy_forge.model.state import DNSRecord


class FakeHost(BaseConnector):
    """In-memory host.

    Files and symlinks live in dicts; ``cat``, ``test``, ``cp``, ``rm -f``
    and ``ln -sf`` act on them. Everything else is answered from ``responses``
    (first matching prefix wins) and defaults to success with no output.
    """

    def __init__(self, files: dict[str, str] | None = None, links: set[str] | None = None) -> None:
        self.host = "fake-host"
        self.files = dict(files or {})
        self.links = set(links or ())
        self.responses: list[tuple[str, object]] = []
        self.commands: list[str] = []

    def respond(self, prefix: str, stdout: str = "", exit_code: int = 0, stderr: str = "") -> None:
        """Register a canned answer. Later registrations take precedence."""
        self.responses.insert(0, (prefix, (stdout, stderr, exit_code)))

    def respond_with(self, prefix: str, handler) -> None:
        """Register a callable ``handler(command) -> CommandResult``."""
        self.responses.insert(0, (prefix, handler))

    def run(self, command, use_sudo=None, timeout=None):
        self.commands.append(command)
        for prefix, answer in self.responses:
            if command.startswith(prefix):
                if callable(answer):
                    return answer(command)
                stdout, stderr, exit_code = answer
                return CommandResult(command=command, stdout=stdout, stderr=stderr, exit_code=exit_code)

        args = shlex.split(command)
        if args[:1] == ["cat"] and len(args) == 2:
            if args[1] not in self.files:
                return CommandResult(command, "", "No such file or directory", 1)
            return CommandResult(command, self.files[args[1]], "", 0)
        if args[:1] == ["test"] and len(args) == 3:
            present = args[2] in self.links if args[1] == "-L" else args[2] in self.files
            return CommandResult(command, "", "", 0 if present else 1)
        if args[:1] == ["cp"] and len(args) == 3:
            if args[1] not in self.files:
                return CommandResult(command, "", "No such file", 1)
            self.files[args[2]] = self.files[args[1]]
        elif args[:2] == ["rm", "-f"]:
            for path in args[2:]:
                self.files.pop(path, None)
                self.links.discard(path)
        elif args[:2] == ["ln", "-sf"]:
            self.links.add(args[3])
        return CommandResult(command=command, stdout="", stderr="", exit_code=0)

    def read_file(self, path):
        return self.files.get(path)

    def file_exists(self, path):
        return path in self.files

    def link_exists(self, path):
        return path in self.links

    def write_file(self, path, content, *, mode=None):
        self.commands.append(f"write {path}")
        self.files[path] = content
        return True

    def ran(self, prefix: str) -> list[str]:
        return [c for c in self.commands if c.startswith(prefix)]


class InMemoryDNSProvider(DNSProvider):
    """DNS provider backed by a list, counting API writes."""

    name = "memory"

    def __init__(self, records: list[DNSRecord] | None = None) -> None:
        self.records = list(records or [])
        self.writes = 0
        self._next_id = 1

    def validate_credentials(self) -> bool:
        return True

    def find_zone(self, domain: str) -> str:
        return "zone-1"

    def list_records(self, name, record_type):
        return [r for r in self.records if r.name == name and r.type == record_type]

    def create_record(self, record):
        self.writes += 1
        record.id = f"rec-{self._next_id}"
        self._next_id += 1
        self.records.append(record)
        return record

    def update_record(self, record):
        self.writes += 1
        self.records = [record if r.id == record.id else r for r in self.records]
        return record

    def delete_record(self, record):
        self.writes += 1
        self.records = [r for r in self.records if r.id != record.id]


@pytest.fixture
def mock_ssh_connector():
    """Create a mock SSH connector for testing."""
    connector = MagicMock(spec=SSHConnector)
    connector.host = "mock-host"
    # MagicMock attributes are truthy
    connector.dry_run = False

    # Default behavior: commands succeed
    connector.run.return_value = CommandResult(
        command="test",
        stdout="",
        stderr="",
        exit_code=0,
    )
    connector.file_exists.return_value = True
    connector.dir_exists.return_value = True
    connector.list_dir.return_value = []

    return connector


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def dns_provider():
    return InMemoryDNSProvider()


@pytest.fixture
def manifest_data():
    return {
        "server": "web-1",
        "sites": [
            {
                "domain": "app.example.com",
                "aliases": ["www.example.com"],
                "upstream": 3000,
                "container": "app",
                "websocket": True,
                "tls": {"email": "ops@example.com"},
                "dns": {"target_ip": "203.0.113.10"},
            },
            {
                "domain": "static.example.com",
                "upstream": "127.0.0.1:8080",
                "tls": {"enabled": False},
            },
        ],
    }


@pytest.fixture
def manifest(manifest_data):
    return Manifest.model_validate(manifest_data)


@pytest.fixture
def sample_nginx_t_output():
    """Sample nginx -T output for parser testing."""
    return '''nginx: the configuration file /etc/nginx/nginx.conf syntax is ok
# configuration file /etc/nginx/nginx.conf:
user www-data;
worker_processes auto;

events {
    worker_connections 768;
}

http {
    include /etc/nginx/mime.types;
    include /etc/nginx/sites-enabled/*;
}

# configuration file /etc/nginx/sites-enabled/default:
server {
    listen 80 default_server;
    server_name _;
    root /var/www/html;
}

# configuration file /etc/nginx/sites-enabled/legacy-app:
server {
    listen 443 ssl;
    server_name app.example.com legacy.example.com;
    ssl_certificate /etc/ssl/legacy.pem;
    ssl_certificate_key /etc/ssl/legacy.key;

    location / {
        proxy_pass http://127.0.0.1:9000;
    }
}
'''


CERTBOT_CERTIFICATES_OUTPUT = """Saving debug log to /var/log/letsencrypt/letsencrypt.log

- - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - -
Found the following certs:
  Certificate Name: app.example.com
    Serial Number: 4a1b2c3d
    Key Type: ECDSA
    Domains: app.example.com www.example.com
    Expiry Date: 2026-12-20 10:00:00+00:00 (VALID: 63 days)
    Certificate Path: /etc/letsencrypt/live/app.example.com/fullchain.pem
    Private Key Path: /etc/letsencrypt/live/app.example.com/privkey.pem
  Certificate Name: old.example.com
    Serial Number: 99
    Key Type: RSA
    Domains: old.example.com
    Expiry Date: 2026-09-01 10:00:00+00:00 (INVALID: EXPIRED)
    Certificate Path: /etc/letsencrypt/live/old.example.com/fullchain.pem
    Private Key Path: /etc/letsencrypt/live/old.example.com/privkey.pem
- - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - - -
"""


@pytest.fixture
def certbot_certificates_output():
    return CERTBOT_CERTIFICATES_OUTPUT
