"""DNS provider interface."""

from abc import ABC, abstractmethod

from proxy_forge.model.state import DNSRecord


def challenge_record_name(domain: str) -> str:
    """Name of the ACME DNS-01 TXT record for ``domain``."""
    domain = domain.strip().rstrip(".")
    if domain.startswith("*."):
        domain = domain[2:]
    return f"_acme-challenge.{domain}"


class DNSProvider(ABC):
    """A DNS hosting API that can manage records in a zone."""

    name = "base"

    @abstractmethod
    def validate_credentials(self) -> bool:
        """True if the stored credentials are accepted by the API."""

    @abstractmethod
    def find_zone(self, domain: str) -> str:
        """Return the zone id that holds ``domain``."""

    @abstractmethod
    def list_records(self, name: str, record_type: str) -> list[DNSRecord]:
        """Records with exactly this name and type."""

    @abstractmethod
    def create_record(self, record: DNSRecord) -> DNSRecord:
        """Create a record, returning it with its provider id."""

    @abstractmethod
    def update_record(self, record: DNSRecord) -> DNSRecord:
        """Update a record identified by ``record.id``."""

    @abstractmethod
    def delete_record(self, record: DNSRecord) -> None:
        """Delete a record identified by ``record.id``."""

    def record_matches(self, current: DNSRecord, content: str, ttl: int, proxied: bool) -> bool:
        """True if ``current`` already holds what an upsert would write."""
        return current.content == content and current.ttl == ttl and current.proxied == proxied

    def needs_upsert(
        self,
        name: str,
        record_type: str,
        content: str,
        ttl: int = 300,
        proxied: bool = False,
    ) -> tuple[list[DNSRecord], bool]:
        """Existing records for ``name``/``record_type`` and whether an upsert would write."""
        existing = self.list_records(name, record_type)
        if len(existing) == 1 and self.record_matches(existing[0], content, ttl, proxied):
            return existing, False
        return existing, True

    def upsert_record(
        self,
        name: str,
        record_type: str,
        content: str,
        ttl: int = 300,
        proxied: bool = False,
    ) -> tuple[DNSRecord, bool]:
        """Make ``name``/``record_type`` hold exactly ``content``.

        Returns:
            (record, changed). ``changed`` is False when the record was
            already correct and nothing was written.
        """
        existing, needed = self.needs_upsert(name, record_type, content, ttl, proxied)
        if not needed:
            return existing[0], False

        wanted = DNSRecord(name=name, type=record_type, content=content, ttl=ttl, proxied=proxied)
        if len(existing) == 1:
            wanted.id = existing[0].id
            return self.update_record(wanted), True

        # zero or several records: collapse to one
        for record in existing:
            self.delete_record(record)
        return self.create_record(wanted), True

    def create_txt(self, name: str, value: str, ttl: int = 120) -> DNSRecord:
        """Add a TXT record. Existing TXT values on the name are kept."""
        for record in self.list_records(name, "TXT"):
            if record.content.strip('"') == value:
                return record
        return self.create_record(DNSRecord(name=name, type="TXT", content=value, ttl=ttl))

    def delete_txt(self, name: str, value: str | None = None) -> int:
        """Delete TXT records on ``name`` (only the one holding ``value`` if given)."""
        deleted = 0
        for record in self.list_records(name, "TXT"):
            if value is not None and record.content.strip('"') != value:
                continue
            self.delete_record(record)
            deleted += 1
        return deleted
