"""Invoice encoder: canonical invoice to shareable payload text.

Pipeline: Schema Registry (current version) -> binary packer -> zlib ->
base62 transport. Encoding is deterministic and performs no I/O.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any, cast

from pydantic import ValidationError

from invoice_link.codec.binary import pack_invoice
from invoice_link.codec.compression import compress
from invoice_link.codec.errors import InvoiceCodecError, SchemaValidation
from invoice_link.codec.metrics import invoice_encode_total, invoice_payload_size_bytes
from invoice_link.codec.transport import encode_legacy_transport, encode_transport
from invoice_link.schema.models import Invoice
from invoice_link.schema.registry import DEFAULT_REGISTRY, SchemaRegistry, validation_issues
from invoice_link.schema.v3 import InvoiceV3Payload
from invoice_link.shared.config import Settings, get_settings

logger = logging.getLogger(__name__)


def coerce_invoice(data: Invoice | Mapping[str, Any]) -> Invoice:
    """Accept an `Invoice` or its camelCase dict form.

    Raises:
        SchemaValidation: If the dict does not have the invoice shape
    """
    if isinstance(data, Invoice):
        return data
    try:
        return Invoice.model_validate(data)
    except ValidationError as e:
        raise SchemaValidation(validation_issues(e)) from e


class InvoiceEncoder:
    """Encodes invoices into marker-prefixed binary payloads."""

    def __init__(self, settings: Settings, registry: SchemaRegistry = DEFAULT_REGISTRY) -> None:
        """Initialize encoder.

        Args:
            settings: Application settings (compression level)
            registry: Schema registry whose current version is encoded

        Raises:
            ValueError: If the registry targets a version with no binary layout
        """
        if registry.get_parser(registry.current_version) is not InvoiceV3Payload:
            raise ValueError(
                f"No binary frame layout for schema version {registry.current_version}"
            )
        self.settings = settings
        self.registry = registry

    def encode(self, invoice: Invoice | Mapping[str, Any]) -> str:
        """Encode an invoice.

        Args:
            invoice: Canonical invoice or its camelCase dict form

        Returns:
            Payload text, e.g. ``"H3xT9..."``

        Raises:
            SchemaValidation: If the invoice violates the current schema
        """
        try:
            payload = cast(InvoiceV3Payload, self.registry.serialize(coerce_invoice(invoice)))
            frame = pack_invoice(payload)
            compressed = compress(frame, self.settings.compression_level)
            text = encode_transport(compressed)
        except InvoiceCodecError as e:
            invoice_encode_total.labels(status="failed").inc()
            logger.warning(f"Invoice encoding failed: {e}")
            raise

        invoice_encode_total.labels(status="success").inc()
        invoice_payload_size_bytes.observe(len(text))
        logger.debug(
            f"Encoded invoice {payload.invoice_id}: frame={len(frame)}B "
            f"compressed={len(compressed)}B payload={len(text)} chars"
        )
        return text


def encode_invoice(
    invoice: Invoice | Mapping[str, Any],
    *,
    settings: Settings | None = None,
    registry: SchemaRegistry = DEFAULT_REGISTRY,
) -> str:
    """Encode an invoice with the current schema version.

    Args:
        invoice: Canonical invoice or its camelCase dict form
        settings: Settings override; defaults to `get_settings()`
        registry: Schema registry override

    Returns:
        Payload text starting with the binary transport marker
    """
    return InvoiceEncoder(settings or get_settings(), registry).encode(invoice)


def encode_legacy_payload(raw: Mapping[str, Any], level: int = 9) -> str:
    """Encode raw v1/v2 JSON data with the legacy transport.

    Only used to reproduce links issued before the binary format; new links
    always go through `encode_invoice`.

    Args:
        raw: Payload dict carrying its own ``v`` or ``version`` tag
        level: zlib compression level

    Returns:
        Unmarked URL-safe base64 payload text
    """
    body = json.dumps(raw, separators=(",", ":"), sort_keys=True, default=str)
    return encode_legacy_transport(compress(body.encode("utf-8"), level))
