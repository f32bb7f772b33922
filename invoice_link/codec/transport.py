"""Text transport for compressed payloads.

Binary payloads are written as ``"H" + base62(bytes)``. Base62 uses only
``0-9a-zA-Z`` so the text can sit in a URL fragment or query string without
percent-escaping. Legacy JSON payloads use URL-safe base64 without a marker.
"""

import base64
import binascii

from invoice_link.codec.errors import CorruptEncoding, EmptyPayload, InvalidFormat, TruncatedPayload

BINARY_MARKER = "H"
ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
_BASE = len(ALPHABET)
_INDEX = {char: index for index, char in enumerate(ALPHABET)}


def encode_base62(data: bytes) -> str:
    """Encode bytes as base62, keeping leading zero bytes as leading '0' characters."""
    if not data:
        return ""

    number = int.from_bytes(data, "big")
    digits: list[str] = []
    while number:
        number, remainder = divmod(number, _BASE)
        digits.append(ALPHABET[remainder])

    leading_zeros = len(data) - len(data.lstrip(b"\x00"))
    return ALPHABET[0] * leading_zeros + "".join(reversed(digits))


def decode_base62(text: str) -> bytes:
    """Decode base62 text produced by `encode_base62`.

    Raises:
        CorruptEncoding: If the text contains characters outside the alphabet
    """
    if not text:
        return b""

    number = 0
    for position, char in enumerate(text):
        digit = _INDEX.get(char)
        if digit is None:
            raise CorruptEncoding(f"Invalid Base62 character {char!r} at position {position}")
        number = number * _BASE + digit

    leading_zeros = len(text) - len(text.lstrip(ALPHABET[0]))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\x00" * leading_zeros + body


def encode_transport(data: bytes) -> str:
    """Wrap compressed frame bytes as marker-prefixed base62 text."""
    return BINARY_MARKER + encode_base62(data)


def decode_transport(text: str) -> bytes:
    """Unwrap marker-prefixed base62 text.

    Raises:
        EmptyPayload: If text is empty
        InvalidFormat: If the marker is missing
        TruncatedPayload: If nothing follows the marker
        CorruptEncoding: If the body has characters outside the alphabet
    """
    if not text:
        raise EmptyPayload()
    if not text.startswith(BINARY_MARKER):
        raise InvalidFormat(
            f"Invalid invoice format: expected Binary V3 ({BINARY_MARKER}-prefix)"
        )
    body = text[len(BINARY_MARKER) :]
    if not body:
        raise TruncatedPayload("Payload truncated: no data after the transport marker")
    return decode_base62(body)


def encode_legacy_transport(data: bytes) -> str:
    """Encode bytes as unpadded URL-safe base64 (legacy JSON transport)."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def decode_legacy_transport(text: str) -> bytes:
    """Decode unpadded URL-safe base64.

    Raises:
        InvalidFormat: If the text is not URL-safe base64
    """
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidFormat(
            f"Invalid invoice format: expected Binary V3 ({BINARY_MARKER}-prefix) "
            f"or a legacy JSON payload"
        ) from e
