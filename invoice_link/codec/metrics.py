"""Prometheus metrics for the invoice codec.

Exposes:
- Encode and decode counts by outcome
- Encoded payload size histogram
- URLs rejected for exceeding the size budget

Metrics are observational only; no codec result depends on them.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

invoice_encode_total = Counter(
    "invoice_encode_total",
    "Total invoice encode attempts",
    ["status"],  # success, failed
)

invoice_decode_total = Counter(
    "invoice_decode_total",
    "Total invoice decode attempts",
    ["status", "error"],  # error is the codec error code, "none" on success
)

invoice_payload_size_bytes = Histogram(
    "invoice_payload_size_bytes",
    "Encoded invoice payload length in characters",
    buckets=(100, 250, 500, 750, 1000, 1500, 2000, 4000),
)

invoice_url_rejected_total = Counter(
    "invoice_url_rejected_total",
    "Total generated URLs rejected for exceeding the byte budget",
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
