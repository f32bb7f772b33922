"""Unit tests for the invoice encoder and decoder pipelines.

Tests cover:
- Distinct errors for each kind of bad payload
- Determinism and version tagging of encoded payloads
- Optional embedded-total verification
- Result-object wrapper for URL fragments
- Codec metrics
"""

from typing import Any
from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY

from invoice_link.codec.binary import HEADER_SIZE, pack_invoice
from invoice_link.codec.compression import compress
from invoice_link.codec.decoder import InvoiceDecoder, decode_invoice, parse_invoice_hash
from invoice_link.codec.encoder import InvoiceEncoder, encode_invoice
from invoice_link.codec.errors import (
    CorruptEncoding,
    DecompressionFailed,
    EmptyPayload,
    InvalidFormat,
    InvoiceCodecError,
    PayloadTooLarge,
    SchemaValidation,
    TotalsMismatch,
    TruncatedPayload,
    UnsupportedVersion,
)
from invoice_link.codec.metrics import get_metrics
from invoice_link.codec.transport import ALPHABET, BINARY_MARKER, encode_transport
from invoice_link.schema.models import Invoice
from invoice_link.schema.registry import DEFAULT_REGISTRY, SchemaRegistry
from invoice_link.schema.v2 import InvoiceV2Payload
from invoice_link.schema.v3 import InvoiceV3Payload
from invoice_link.shared.config import Settings
from invoice_link.totals.engine import embed_totals


def wrap_frame(frame: bytes) -> str:
    """Compress and transport-encode a hand-built frame."""
    return encode_transport(compress(frame))


def sample_value(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestDecodeErrors:
    """Tests for the error raised by each decode stage."""

    def test_empty_payload(self, settings: Settings) -> None:
        """Test that an empty payload raises EmptyPayload."""
        with pytest.raises(EmptyPayload, match="payload is empty"):
            decode_invoice("", settings=settings)

    def test_non_marker_payload(self, settings: Settings) -> None:
        """Test that text without marker that is not legacy JSON is an invalid format."""
        with pytest.raises(InvalidFormat, match="expected Binary V3") as exc_info:
            decode_invoice("not-a-valid-payload", settings=settings)

        assert not isinstance(exc_info.value, EmptyPayload)

    def test_marker_only(self, settings: Settings) -> None:
        """Test that a bare marker raises TruncatedPayload."""
        with pytest.raises(TruncatedPayload):
            decode_invoice(BINARY_MARKER, settings=settings)

    def test_marker_with_bad_characters(self, settings: Settings) -> None:
        """Test that non-alphabet characters raise CorruptEncoding."""
        with pytest.raises(CorruptEncoding):
            decode_invoice("H$$$###", settings=settings)

    @pytest.mark.parametrize("garbage", ["H0000000000", "H1", "HzzzzzzzzzzzzzzzzzzzzZZZZ"])
    def test_marker_with_alphabet_garbage(self, settings: Settings, garbage: str) -> None:
        """Test that decodable text that is not zlib raises DecompressionFailed."""
        with pytest.raises(DecompressionFailed):
            decode_invoice(garbage, settings=settings)

    def test_bad_inputs_raise_distinct_errors(self, settings: Settings) -> None:
        """Test that the four canonical bad inputs map to four error types."""
        raised = []
        for payload in ("", "not-a-valid-payload", "H", "H$$$"):
            with pytest.raises(InvoiceCodecError) as exc_info:
                decode_invoice(payload, settings=settings)
            raised.append(type(exc_info.value))

        assert len(set(raised)) == 4

    def test_short_frame(self, settings: Settings) -> None:
        """Test that a frame shorter than the header is truncated."""
        with pytest.raises(TruncatedPayload, match="minimum"):
            decode_invoice(wrap_frame(b"\x03\x00\x00\x00"), settings=settings)

    def test_unknown_frame_version(self, settings: Settings) -> None:
        """Test that an unknown frame version raises UnsupportedVersion."""
        frame = bytes([9]) + bytes(HEADER_SIZE - 1)

        with pytest.raises(UnsupportedVersion, match="9"):
            decode_invoice(wrap_frame(frame), settings=settings)

    def test_cut_frame(self, settings: Settings, invoice: Invoice) -> None:
        """Test that a frame missing bytes raises TruncatedPayload."""
        frame = pack_invoice(DEFAULT_REGISTRY.serialize(invoice))  # type: ignore[arg-type]

        with pytest.raises(TruncatedPayload):
            decode_invoice(wrap_frame(frame[:-3]), settings=settings)

    def test_invalid_fields_in_frame(self, settings: Settings, invoice: Invoice) -> None:
        """Test that a well-formed frame with invalid fields raises SchemaValidation."""
        payload = InvoiceV3Payload.from_invoice(invoice)
        broken = payload.model_copy(update={"invoice_id": "", "decimals": 30})
        frame = pack_invoice(broken)  # type: ignore[arg-type]

        with pytest.raises(SchemaValidation, match="Invalid invoice data") as exc_info:
            decode_invoice(wrap_frame(frame), settings=settings)

        assert len(exc_info.value.issues) == 2

    def test_size_guard(self, settings: Settings, invoice: Invoice) -> None:
        """Test that frames larger than max_decompressed_bytes are refused."""
        payload = encode_invoice(invoice, settings=settings)
        tight = settings.model_copy(update={"max_decompressed_bytes": 32})

        with pytest.raises(DecompressionFailed, match="exceeds 32 bytes"):
            decode_invoice(payload, settings=tight)

    @pytest.mark.parametrize("payload", ["H" + "z" * 200_000, "e" + "A" * 200_000])
    def test_oversized_payload_rejected_before_decoding(
        self, settings: Settings, payload: str
    ) -> None:
        """Test that overlong text is refused without running the transport decoders."""
        with (
            patch("invoice_link.codec.decoder.decode_transport") as binary,
            patch("invoice_link.codec.decoder.decode_legacy_transport") as legacy,
        ):
            with pytest.raises(PayloadTooLarge, match="exceeds 4096 character limit"):
                decode_invoice(payload, settings=settings)

        binary.assert_not_called()
        legacy.assert_not_called()

    def test_payload_limit_from_settings(self, settings: Settings, invoice: Invoice) -> None:
        """Test that a valid payload one character over the limit is refused."""
        payload = encode_invoice(invoice, settings=settings)
        tight = settings.model_copy(update={"max_payload_chars": len(payload) - 1})

        with pytest.raises(PayloadTooLarge) as exc_info:
            decode_invoice(payload, settings=tight)

        assert exc_info.value.length == len(payload)
        assert decode_invoice(payload, settings=settings).invoice_id == "INV-2024-001"


class TestEncode:
    """Tests for the encoder pipeline."""

    def test_payload_has_marker_and_alphabet(self, settings: Settings, invoice: Invoice) -> None:
        """Test that the payload is marker-prefixed base62."""
        payload = encode_invoice(invoice, settings=settings)

        assert payload.startswith(BINARY_MARKER)
        assert set(payload[1:]) <= set(ALPHABET)

    def test_encoding_is_deterministic(self, settings: Settings, invoice: Invoice) -> None:
        """Test that repeated encodes give identical strings."""
        first = encode_invoice(invoice, settings=settings)
        second = encode_invoice(Invoice.model_validate(invoice.to_dict()), settings=settings)

        assert first == second

    def test_decoded_version_is_current(self, settings: Settings, invoice: Invoice) -> None:
        """Test that decoded invoices carry the encoder's version."""
        decoded = decode_invoice(encode_invoice(invoice, settings=settings), settings=settings)

        assert decoded.version == DEFAULT_REGISTRY.current_version == 3

    def test_encode_accepts_dict(self, settings: Settings, invoice_data: dict[str, Any]) -> None:
        """Test that the camelCase dict form can be encoded directly."""
        payload = encode_invoice(invoice_data, settings=settings)

        assert decode_invoice(payload, settings=settings).invoice_id == "INV-2024-001"

    def test_encode_rejects_invalid_invoice(self, settings: Settings, invoice: Invoice) -> None:
        """Test that schema violations stop encoding."""
        broken = invoice.model_copy(
            update={"sender": invoice.sender.model_copy(update={"wallet_address": "0x12"})}
        )

        with pytest.raises(SchemaValidation, match="walletAddress"):
            encode_invoice(broken, settings=settings)

    def test_encode_rejects_percentage_with_newline(
        self, settings: Settings, invoice: Invoice
    ) -> None:
        """Test that a tax value with a trailing newline is not encoded."""
        with pytest.raises(SchemaValidation, match="tax"):
            encode_invoice(invoice.model_copy(update={"tax": "10\n"}), settings=settings)

    def test_encode_rejects_malformed_dict(self, settings: Settings) -> None:
        """Test that dicts missing required keys raise SchemaValidation."""
        with pytest.raises(SchemaValidation):
            encode_invoice({"invoiceId": "X"}, settings=settings)

    def test_compression_level(self, settings: Settings, invoice: Invoice) -> None:
        """Test that the configured level is used and both outputs decode."""
        stored = settings.model_copy(update={"compression_level": 0})

        fast = encode_invoice(invoice, settings=stored)
        best = encode_invoice(invoice, settings=settings)

        assert len(best) < len(fast)
        assert decode_invoice(fast, settings=settings).to_dict() == (
            decode_invoice(best, settings=settings).to_dict()
        )

    def test_encoder_requires_binary_target(self, settings: Settings) -> None:
        """Test that the encoder refuses a registry targeting another version."""
        registry = SchemaRegistry([InvoiceV2Payload], current_version=2)

        with pytest.raises(ValueError, match="No binary frame layout"):
            InvoiceEncoder(settings, registry)


class TestTotalsVerification:
    """Tests for the opt-in embedded-total check."""

    @pytest.fixture
    def tampered_payload(self, settings: Settings, invoice: Invoice) -> str:
        """Payload whose embedded total disagrees with its items."""
        embedded = embed_totals(invoice, magic_dust=42)
        return encode_invoice(embedded.model_copy(update={"total": "1"}), settings=settings)

    def test_trusted_by_default(self, settings: Settings, tampered_payload: str) -> None:
        """Test that embedded totals are trusted unless verification is on."""
        assert decode_invoice(tampered_payload, settings=settings).total == "1"

    def test_verify_flag(self, settings: Settings, tampered_payload: str) -> None:
        """Test that verify_totals=True rejects the mismatch."""
        with pytest.raises(TotalsMismatch):
            decode_invoice(tampered_payload, settings=settings, verify_totals=True)

    def test_verify_setting(self, settings: Settings, tampered_payload: str) -> None:
        """Test that the setting enables verification."""
        strict = settings.model_copy(update={"verify_embedded_totals": True})

        with pytest.raises(TotalsMismatch):
            InvoiceDecoder(strict).decode(tampered_payload)

    def test_flag_overrides_setting(self, settings: Settings, tampered_payload: str) -> None:
        """Test that an explicit False wins over the setting."""
        strict = settings.model_copy(update={"verify_embedded_totals": True})

        invoice = InvoiceDecoder(strict).decode(tampered_payload, verify_totals=False)

        assert invoice.total == "1"

    def test_consistent_total_passes(self, settings: Settings, invoice: Invoice) -> None:
        """Test that a correct embedded total passes verification."""
        payload = encode_invoice(embed_totals(invoice, magic_dust=42), settings=settings)

        decoded = decode_invoice(payload, settings=settings, verify_totals=True)

        assert decoded.total == "6331500042"
        assert decoded.magic_dust == "42"


class TestParseInvoiceHash:
    """Tests for the result-object wrapper."""

    def test_success(self, settings: Settings, invoice: Invoice) -> None:
        """Test that a valid fragment decodes."""
        result = parse_invoice_hash("#" + encode_invoice(invoice, settings=settings))

        assert result.success is True
        assert result.invoice is not None
        assert result.invoice.invoice_id == "INV-2024-001"
        assert result.error is None

    @pytest.mark.parametrize(
        ("fragment", "error_type"),
        [
            ("", "empty_payload"),
            ("#", "empty_payload"),
            ("H", "truncated_payload"),
            ("H$", "corrupt_encoding"),
            ("not-a-valid-payload", "invalid_format"),
            ("H" + "z" * 5000, "payload_too_large"),
        ],
    )
    def test_failure(self, fragment: str, error_type: str) -> None:
        """Test that failures are returned, not raised."""
        result = parse_invoice_hash(fragment)

        assert result.success is False
        assert result.invoice is None
        assert result.error_type == error_type
        assert result.error


class TestCodecMetrics:
    """Tests for codec counters."""

    def test_decode_failures_counted_by_code(self, settings: Settings) -> None:
        """Test that failed decodes are labelled with the error code."""
        labels = {"status": "failed", "error": "truncated_payload"}
        before = sample_value("invoice_decode_total", labels)

        with pytest.raises(TruncatedPayload):
            decode_invoice("H", settings=settings)

        assert sample_value("invoice_decode_total", labels) == before + 1

    def test_encode_success_counted(self, settings: Settings, invoice: Invoice) -> None:
        """Test that successful encodes are counted and sized."""
        before = sample_value("invoice_encode_total", {"status": "success"})
        sizes_before = sample_value("invoice_payload_size_bytes_count")

        encode_invoice(invoice, settings=settings)

        assert sample_value("invoice_encode_total", {"status": "success"}) == before + 1
        assert sample_value("invoice_payload_size_bytes_count") == sizes_before + 1

    def test_get_metrics_exposition(self) -> None:
        """Test that metrics are exposed in Prometheus text format."""
        body, content_type = get_metrics()

        assert b"invoice_decode_total" in body
        assert content_type.startswith("text/plain")
