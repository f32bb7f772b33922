"""Unit tests for decoding links issued before the binary format.

Legacy links carry zlib-compressed JSON in URL-safe base64 without the
binary marker; the schema version is read from inside the JSON.
"""

import json
from decimal import Decimal
from typing import Any

import pytest

from invoice_link.codec.compression import compress
from invoice_link.codec.decoder import decode_invoice, parse_invoice_hash
from invoice_link.codec.encoder import encode_invoice, encode_legacy_payload
from invoice_link.codec.errors import InvalidFormat, SchemaValidation, UnsupportedVersion
from invoice_link.codec.transport import BINARY_MARKER, encode_legacy_transport
from invoice_link.shared.config import Settings


@pytest.fixture
def v1_raw() -> dict[str, Any]:
    """Compact v1 payload as issued by the first release."""
    return {
        "v": 1,
        "id": "INV-2023-042",
        "iss": 1700000000,
        "due": 1702592000,
        "net": 137,
        "cur": "USDC",
        "dec": 6,
        "f": {"n": "Acme", "a": "0xABCDEF0123456789ABCDEF0123456789ABCDEF01"},
        "c": {"n": "Client", "a": "0x2222222222222222222222222222222222222222"},
        "it": [{"d": "Consulting", "q": 2.5, "r": "150000000"}],
        "tax": "10",
    }


@pytest.fixture
def v2_raw(invoice_data: dict[str, Any]) -> dict[str, Any]:
    """Extended v2 payload with embedded totals and unknown keys."""
    return {
        **invoice_data,
        "version": 2,
        "total": "6331500042",
        "magicDust": "42",
        "meta": {"theme": "dark"},
    }


def test_legacy_payload_has_no_marker(v1_raw: dict[str, Any]) -> None:
    """Test that legacy payloads never start with the binary marker."""
    payload = encode_legacy_payload(v1_raw)

    assert not payload.startswith(BINARY_MARKER)
    assert payload.startswith("e")


def test_decode_v1(settings: Settings, v1_raw: dict[str, Any]) -> None:
    """Test that v1 links decode with normalization."""
    invoice = decode_invoice(encode_legacy_payload(v1_raw), settings=settings)

    assert invoice.version == 1
    assert invoice.invoice_id == "INV-2023-042"
    assert invoice.network_id == 137
    assert invoice.sender.wallet_address == "0xabcdef0123456789abcdef0123456789abcdef01"
    assert invoice.items[0].quantity == Decimal("2.5")
    assert invoice.tax == "10"


def test_decode_v1_string_quantity(settings: Settings, v1_raw: dict[str, Any]) -> None:
    """Test that numeric-string quantities are coerced."""
    v1_raw["it"][0]["q"] = "4"

    invoice = decode_invoice(encode_legacy_payload(v1_raw), settings=settings)

    assert invoice.items[0].quantity == Decimal(4)


def test_decode_v2(settings: Settings, v2_raw: dict[str, Any]) -> None:
    """Test that v2 links decode with embedded totals."""
    invoice = decode_invoice(encode_legacy_payload(v2_raw), settings=settings)

    assert invoice.version == 2
    assert invoice.total == "6331500042"
    assert invoice.magic_dust == "42"
    assert invoice.sender.tax_id == "VAT-123"


def test_decode_v2_verifies_totals(settings: Settings, v2_raw: dict[str, Any]) -> None:
    """Test that legacy totals pass verification when consistent."""
    invoice = decode_invoice(encode_legacy_payload(v2_raw), settings=settings, verify_totals=True)

    assert invoice.total == "6331500042"


def test_legacy_reencoded_as_current_version(settings: Settings, v1_raw: dict[str, Any]) -> None:
    """Test that a decoded legacy invoice re-encodes as binary v3."""
    legacy = decode_invoice(encode_legacy_payload(v1_raw), settings=settings)

    upgraded = decode_invoice(encode_invoice(legacy, settings=settings), settings=settings)

    assert upgraded.version == 3
    assert upgraded.model_dump(exclude={"version"}) == legacy.model_dump(exclude={"version"})


@pytest.mark.parametrize("version", [3, 4, 0, "2", True])
def test_non_legacy_versions_rejected(
    settings: Settings, v2_raw: dict[str, Any], version: object
) -> None:
    """Test that JSON payloads only dispatch to the legacy JSON versions."""
    v2_raw["version"] = version

    with pytest.raises(UnsupportedVersion):
        decode_invoice(encode_legacy_payload(v2_raw), settings=settings)


def test_missing_version_rejected(settings: Settings, v2_raw: dict[str, Any]) -> None:
    """Test that a payload without a version tag is never guessed."""
    del v2_raw["version"]

    with pytest.raises(UnsupportedVersion, match="no version tag"):
        decode_invoice(encode_legacy_payload(v2_raw), settings=settings)


@pytest.mark.parametrize("version", [[1], {}, {"a": 1}, 1.5])
def test_non_integer_version_tag_rejected(
    settings: Settings, v1_raw: dict[str, Any], version: object
) -> None:
    """Test that container and fractional tags raise UnsupportedVersion."""
    v1_raw["v"] = version

    with pytest.raises(UnsupportedVersion, match="must be an integer"):
        decode_invoice(encode_legacy_payload(v1_raw), settings=settings)


def test_hash_with_container_version_tag(settings: Settings, v2_raw: dict[str, Any]) -> None:
    """Test that the fragment parser reports an unhashable tag as a result."""
    v2_raw["version"] = {"a": 1}

    result = parse_invoice_hash("#" + encode_legacy_payload(v2_raw), settings=settings)

    assert result.success is False
    assert result.error_type == "unsupported_version"
    assert result.invoice is None


def test_invalid_legacy_fields(settings: Settings, v1_raw: dict[str, Any]) -> None:
    """Test that legacy payloads are validated by their own parser."""
    v1_raw["f"]["a"] = "not-an-address"

    with pytest.raises(SchemaValidation, match="f.a"):
        decode_invoice(encode_legacy_payload(v1_raw), settings=settings)


def test_non_json_content(settings: Settings) -> None:
    """Test that compressed non-JSON content is an invalid format."""
    payload = encode_legacy_transport(compress(b"<html>not json</html>"))

    with pytest.raises(InvalidFormat, match="not JSON"):
        decode_invoice(payload, settings=settings)


def test_non_object_json(settings: Settings) -> None:
    """Test that a JSON array is an invalid format."""
    payload = encode_legacy_transport(compress(json.dumps([1, 2, 3]).encode()))

    with pytest.raises(InvalidFormat, match="not a JSON object"):
        decode_invoice(payload, settings=settings)


def test_uncompressed_base64(settings: Settings) -> None:
    """Test that plain base64 JSON without compression is rejected."""
    payload = encode_legacy_transport(b'{"v": 1}')

    with pytest.raises(InvalidFormat):
        decode_invoice(payload, settings=settings)
