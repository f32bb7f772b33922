"""URL Generator: shareable invoice links with a byte budget.

Links take one of two forms:

- ``<base>/pay#<payload>`` (fragment form, never sent to a server), with an
  optional ``?og=<preview>`` query for social previews
- ``<base>/pay?d=<payload>`` (query form, kept for older links)

The UTF-8 length of the final URL must not exceed `Settings.url_max_bytes`.
"""

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qs, quote, unquote, urlencode, urlsplit

from invoice_link.codec.decoder import decode_invoice
from invoice_link.codec.encoder import coerce_invoice, encode_invoice
from invoice_link.codec.errors import UrlSizeExceeded
from invoice_link.codec.metrics import invoice_url_rejected_total
from invoice_link.schema.models import Invoice
from invoice_link.shared.config import Settings, get_settings
from invoice_link.urls.og_preview import encode_og_preview

logger = logging.getLogger(__name__)

PAY_PATH = "/pay"
PAYLOAD_PARAM = "d"
PREVIEW_PARAM = "og"


def generate_invoice_url(
    invoice: Invoice | Mapping[str, Any],
    *,
    base_url: str | None = None,
    include_og: bool = False,
    use_fragment: bool = True,
    settings: Settings | None = None,
) -> str:
    """Build a shareable link for an invoice.

    Args:
        invoice: Canonical invoice or its camelCase dict form
        base_url: Application origin; defaults to `Settings.app_base_url`
        include_og: Add the ``og`` social preview parameter
        use_fragment: Put the payload in the fragment (default) or in the
            legacy ``d`` query parameter
        settings: Settings override; defaults to `get_settings()`

    Returns:
        URL such as ``https://voidpay.xyz/pay#H...``

    Raises:
        SchemaValidation: If the invoice cannot be encoded
        UrlSizeExceeded: If the URL is longer than the byte budget
    """
    settings = settings or get_settings()
    invoice = coerce_invoice(invoice)
    payload = encode_invoice(invoice, settings=settings)
    app_url = (base_url or settings.app_base_url).rstrip("/")

    params: dict[str, str] = {}
    if include_og:
        params[PREVIEW_PARAM] = encode_og_preview(invoice)

    if use_fragment:
        query = f"?{urlencode(params, quote_via=quote)}" if params else ""
        url = f"{app_url}{PAY_PATH}{query}#{payload}"
    else:
        params[PAYLOAD_PARAM] = payload
        url = f"{app_url}{PAY_PATH}?{urlencode(params, quote_via=quote)}"

    size = len(url.encode("utf-8"))
    if size > settings.url_max_bytes:
        invoice_url_rejected_total.inc()
        logger.warning(
            f"Invoice {invoice.invoice_id}: URL is {size} bytes, "
            f"limit {settings.url_max_bytes}"
        )
        raise UrlSizeExceeded(size, settings.url_max_bytes)

    logger.debug(f"Generated invoice URL: {size} bytes")
    return url


def extract_payload(url: str) -> str:
    """Get the encoded payload from a link.

    The fragment wins over the ``d`` query parameter.

    Returns:
        Payload text, or "" if the link carries none
    """
    parts = urlsplit(url)
    if parts.fragment:
        return unquote(parts.fragment)
    values = parse_qs(parts.query).get(PAYLOAD_PARAM)
    return values[0] if values else ""


def decode_invoice_url(
    url: str,
    *,
    settings: Settings | None = None,
    verify_totals: bool | None = None,
) -> Invoice:
    """Decode the invoice carried by a link.

    Raises:
        EmptyPayload: If the link has neither a fragment nor a ``d`` parameter
        InvoiceCodecError: Any other decode failure, see `decode_invoice`
    """
    return decode_invoice(extract_payload(url), settings=settings, verify_totals=verify_totals)
