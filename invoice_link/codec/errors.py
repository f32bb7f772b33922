"""Error taxonomy for encoding and decoding invoice payloads.

Every stage of the decode pipeline fails with its own exception type so
callers (and the UI layer above them) can tell a mistyped link apart from
a payload produced by a newer release.
"""


class InvoiceCodecError(Exception):
    """Base class for all codec failures."""

    code = "codec_error"


class InvalidFormat(InvoiceCodecError):
    """Payload lacks the transport marker and is not a legacy JSON payload."""

    code = "invalid_format"


class EmptyPayload(InvalidFormat):
    """Payload is an empty string."""

    code = "empty_payload"

    def __init__(self) -> None:
        super().__init__("Invalid invoice format: payload is empty")


class PayloadTooLarge(InvoiceCodecError):
    """Payload text is longer than any link the encoder produces."""

    code = "payload_too_large"

    def __init__(self, length: int, limit: int) -> None:
        self.length = length
        self.limit = limit
        super().__init__(f"Payload length ({length} characters) exceeds {limit} character limit")


class CorruptEncoding(InvoiceCodecError):
    """Transport text or binary frame contains bytes that cannot be decoded."""

    code = "corrupt_encoding"


class DecompressionFailed(InvoiceCodecError):
    """Compressed stream is empty, corrupt, truncated or too large."""

    code = "decompression_failed"


class TruncatedPayload(InvoiceCodecError):
    """Binary frame ends before all of its fields were read."""

    code = "truncated_payload"


class UnsupportedVersion(InvoiceCodecError):
    """Version tag does not match any published schema parser."""

    code = "unsupported_version"

    def __init__(self, version: object, detail: str | None = None) -> None:
        self.version = version
        message = f"Unsupported invoice schema version: {version!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class SchemaValidation(InvoiceCodecError):
    """One or more fields violate the schema of the payload's version.

    Attributes:
        issues: (path, message) pairs, one per offending field
    """

    code = "schema_validation"

    def __init__(self, issues: list[tuple[str, str]]) -> None:
        self.issues = issues
        details = "; ".join(f"{path}: {message}" for path, message in issues)
        super().__init__(f"Invalid invoice data: {details}")


class UrlSizeExceeded(InvoiceCodecError):
    """Generated URL is larger than the transport budget."""

    code = "url_size_exceeded"

    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(f"URL size ({size} bytes) exceeds {limit} byte limit")


class TotalsMismatch(InvoiceCodecError):
    """Embedded total disagrees with the total recomputed from the line items."""

    code = "totals_mismatch"

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedded total {actual} does not match recomputed total {expected}"
        )
