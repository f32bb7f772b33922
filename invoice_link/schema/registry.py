"""Schema Registry: one sealed parser per published schema version.

Versions are dispatched by the explicit tag read from a payload, never
inferred from its structure. The registry is immutable: `with_parser()`
returns a new registry and refuses to replace a version that already
exists, because replacing a parser breaks every link issued under it.
"""

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from invoice_link.codec.errors import SchemaValidation, UnsupportedVersion
from invoice_link.schema.base import VersionedPayload
from invoice_link.schema.models import CURRENT_SCHEMA_VERSION, Invoice
from invoice_link.schema.v1 import InvoiceV1Payload
from invoice_link.schema.v2 import InvoiceV2Payload
from invoice_link.schema.v3 import InvoiceV3Payload

logger = logging.getLogger(__name__)


def validation_issues(error: ValidationError) -> list[tuple[str, str]]:
    """Flatten a pydantic error into (path, message) pairs.

    Args:
        error: Validation error raised by a payload parser

    Returns:
        One pair per offending field, e.g. ("items.0.rate", "String should match ...")
    """
    issues: list[tuple[str, str]] = []
    for detail in error.errors():
        path = ".".join(str(part) for part in detail["loc"]) or "<root>"
        issues.append((path, detail["msg"]))
    return issues


class SchemaRegistry:
    """Maps schema version tags to their payload parsers.

    Attributes:
        current_version: Version produced by the encoder
    """

    def __init__(
        self,
        parsers: Iterable[type[VersionedPayload]],
        current_version: int = CURRENT_SCHEMA_VERSION,
    ) -> None:
        """Initialize registry.

        Args:
            parsers: Payload classes, one per version
            current_version: Version the encoder targets; must be registered

        Raises:
            ValueError: If two parsers claim the same version or the current
                version has no parser
        """
        table: dict[int, type[VersionedPayload]] = {}
        for parser in parsers:
            if parser.SCHEMA_VERSION in table:
                raise ValueError(f"Duplicate parser for schema version {parser.SCHEMA_VERSION}")
            table[parser.SCHEMA_VERSION] = parser
        if current_version not in table:
            raise ValueError(f"No parser registered for current version {current_version}")

        self._parsers: Mapping[int, type[VersionedPayload]] = MappingProxyType(table)
        self.current_version = current_version

    def versions(self) -> list[int]:
        """List registered versions in ascending order."""
        return sorted(self._parsers)

    def get_parser(self, version: object) -> type[VersionedPayload]:
        """Get the parser for a version tag.

        Args:
            version: Tag read from the payload

        Returns:
            Payload class for that version

        Raises:
            UnsupportedVersion: If the tag is not an integer or has no parser
        """
        if isinstance(version, bool) or not isinstance(version, int):
            raise UnsupportedVersion(version, "version tag must be an integer")
        parser = self._parsers.get(version)
        if parser is None:
            available = ", ".join(str(v) for v in self.versions())
            raise UnsupportedVersion(version, f"supported versions: {available}")
        return parser

    def parse(self, version: object, raw: Any) -> Invoice:
        """Validate raw payload data with the parser of its version.

        Args:
            version: Tag read from the payload
            raw: Decoded payload data (dict for JSON and binary payloads)

        Returns:
            Canonical invoice with addresses lowercased and quantities numeric

        Raises:
            UnsupportedVersion: If no parser exists for the tag
            SchemaValidation: If any field is invalid; all violations are reported
        """
        parser = self.get_parser(version)
        try:
            payload = parser.model_validate(raw)
        except ValidationError as e:
            issues = validation_issues(e)
            logger.warning(f"Schema v{version} validation failed with {len(issues)} issue(s)")
            raise SchemaValidation(issues) from e

        logger.debug(f"Parsed invoice with schema v{version}")
        return payload.to_invoice()

    def serialize(self, invoice: Invoice) -> VersionedPayload:
        """Validate an invoice against the current encoder target.

        The result carries the current version tag whatever version the
        invoice was originally decoded from.

        Raises:
            SchemaValidation: If the invoice does not satisfy the current schema
        """
        try:
            return self._parsers[self.current_version].from_invoice(invoice)
        except ValidationError as e:
            raise SchemaValidation(validation_issues(e)) from e

    def with_parser(
        self, parser: type[VersionedPayload], *, current: bool = False
    ) -> "SchemaRegistry":
        """Return a new registry that also knows `parser`.

        Args:
            parser: Payload class for a new version
            current: Make the new version the encoder target

        Raises:
            ValueError: If the version is already registered
        """
        if parser.SCHEMA_VERSION in self._parsers:
            raise ValueError(
                f"Schema version {parser.SCHEMA_VERSION} is already published; "
                f"published parsers cannot be replaced"
            )
        return SchemaRegistry(
            [*self._parsers.values(), parser],
            current_version=parser.SCHEMA_VERSION if current else self.current_version,
        )


DEFAULT_REGISTRY = SchemaRegistry(
    [InvoiceV1Payload, InvoiceV2Payload, InvoiceV3Payload],
    current_version=InvoiceV3Payload.SCHEMA_VERSION,
)
