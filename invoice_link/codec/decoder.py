"""Invoice decoder: payload text back to a canonical invoice.

Binary payloads (``H`` marker) go through base62 -> zlib -> frame unpacker
-> schema parser. Payloads without the marker are treated as legacy JSON
links (schema v1/v2): URL-safe base64 -> zlib -> JSON -> schema parser,
dispatched on the version tag found inside the JSON. Each stage fails with
its own `InvoiceCodecError` subclass; nothing is recovered silently.
"""

import json
import logging
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from invoice_link.codec.binary import unpack_invoice
from invoice_link.codec.compression import decompress
from invoice_link.codec.errors import (
    DecompressionFailed,
    EmptyPayload,
    InvalidFormat,
    InvoiceCodecError,
    PayloadTooLarge,
    UnsupportedVersion,
)
from invoice_link.codec.metrics import invoice_decode_total
from invoice_link.codec.transport import BINARY_MARKER, decode_legacy_transport, decode_transport
from invoice_link.schema.models import Invoice
from invoice_link.schema.registry import DEFAULT_REGISTRY, SchemaRegistry
from invoice_link.shared.config import Settings, get_settings
from invoice_link.totals.engine import verify_embedded_totals

logger = logging.getLogger(__name__)

# Schema versions that were ever issued as plain JSON links
LEGACY_JSON_VERSIONS = frozenset({1, 2})

_LEGACY_FORMAT_ERROR = (
    f"Invalid invoice format: expected Binary V3 ({BINARY_MARKER}-prefix) "
    f"or a legacy JSON payload"
)


class InvoiceDecoder:
    """Decodes binary and legacy JSON payloads."""

    def __init__(self, settings: Settings, registry: SchemaRegistry = DEFAULT_REGISTRY) -> None:
        """Initialize decoder.

        Args:
            settings: Application settings (size guard, totals verification)
            registry: Schema registry used for version dispatch
        """
        self.settings = settings
        self.registry = registry

    def decode(self, payload: str, *, verify_totals: bool | None = None) -> Invoice:
        """Decode payload text.

        Args:
            payload: Text from a link fragment or ``d`` query parameter
            verify_totals: Check the embedded total against the items;
                defaults to `Settings.verify_embedded_totals`

        Returns:
            Canonical invoice with lowercase addresses and numeric quantities

        Raises:
            EmptyPayload: If payload is empty
            PayloadTooLarge: If payload is longer than `Settings.max_payload_chars`
            InvalidFormat: If payload is neither binary nor legacy JSON
            CorruptEncoding: If the transport text or frame bytes are malformed
            DecompressionFailed: If the compressed stream is corrupt
            TruncatedPayload: If the frame ends early
            UnsupportedVersion: If no parser exists for the version tag
            SchemaValidation: If fields violate their version's schema
            TotalsMismatch: If verification is on and the total disagrees
        """
        try:
            if len(payload) > self.settings.max_payload_chars:
                raise PayloadTooLarge(len(payload), self.settings.max_payload_chars)
            if payload.startswith(BINARY_MARKER) or not payload:
                invoice = self._decode_binary(payload)
            else:
                invoice = self._decode_legacy(payload)

            if verify_totals is None:
                verify_totals = self.settings.verify_embedded_totals
            if verify_totals:
                verify_embedded_totals(invoice)
        except InvoiceCodecError as e:
            invoice_decode_total.labels(status="failed", error=e.code).inc()
            logger.warning(f"Rejected invoice payload ({len(payload)} chars): {e}")
            raise

        invoice_decode_total.labels(status="success", error="none").inc()
        return invoice

    def _decode_binary(self, payload: str) -> Invoice:
        compressed = decode_transport(payload)
        frame = decompress(compressed, self.settings.max_decompressed_bytes)
        version, raw = unpack_invoice(frame)
        logger.debug(f"Unpacked binary frame v{version}: {len(frame)} bytes")
        return self.registry.parse(version, raw)

    def _decode_legacy(self, payload: str) -> Invoice:
        data = decode_legacy_transport(payload)
        try:
            text = decompress(data, self.settings.max_decompressed_bytes)
        except DecompressionFailed as e:
            raise InvalidFormat(_LEGACY_FORMAT_ERROR) from e

        try:
            raw = json.loads(text, parse_float=Decimal)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise InvalidFormat(f"{_LEGACY_FORMAT_ERROR}: content is not JSON") from e
        if not isinstance(raw, dict):
            raise InvalidFormat(f"{_LEGACY_FORMAT_ERROR}: content is not a JSON object")

        version = _legacy_version_tag(raw)
        logger.debug(f"Dispatching legacy JSON payload to schema v{version}")
        return self.registry.parse(version, raw)


def _legacy_version_tag(raw: dict[str, Any]) -> int:
    # v1 uses the compact key "v", v2 the full key "version"
    version = raw.get("v", raw.get("version"))
    if version is None:
        raise UnsupportedVersion(None, "payload carries no version tag")
    if isinstance(version, bool) or not isinstance(version, int):
        raise UnsupportedVersion(version, "version tag must be an integer")
    if version not in LEGACY_JSON_VERSIONS:
        raise UnsupportedVersion(version, "not a legacy JSON schema version")
    return version


def decode_invoice(
    payload: str,
    *,
    settings: Settings | None = None,
    registry: SchemaRegistry = DEFAULT_REGISTRY,
    verify_totals: bool | None = None,
) -> Invoice:
    """Decode payload text into an invoice.

    See `InvoiceDecoder.decode` for the raised errors.
    """
    decoder = InvoiceDecoder(settings or get_settings(), registry)
    return decoder.decode(payload, verify_totals=verify_totals)


class HashParseResult(BaseModel):
    """Result of parsing a URL fragment.

    Attributes:
        success: Whether the fragment decoded into an invoice
        invoice: Decoded invoice or None on failure
        error: Error message if decoding failed
        error_type: Codec error code (e.g. 'invalid_format') if decoding failed
    """

    success: bool
    invoice: Invoice | None = None
    error: str | None = None
    error_type: str | None = None


def parse_invoice_hash(fragment: str, *, settings: Settings | None = None) -> HashParseResult:
    """Decode a URL fragment, returning a result instead of raising.

    Args:
        fragment: Fragment with or without the leading ``#``

    Returns:
        HashParseResult with the invoice or the error
    """
    payload = fragment.removeprefix("#")
    if not payload:
        error = EmptyPayload()
        return HashParseResult(success=False, error=str(error), error_type=error.code)

    try:
        invoice = decode_invoice(payload, settings=settings)
    except InvoiceCodecError as e:
        return HashParseResult(success=False, error=str(e), error_type=e.code)
    return HashParseResult(success=True, invoice=invoice)
