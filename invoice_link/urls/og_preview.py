"""Social preview parameter for shareable links.

The ``og`` query parameter carries a few non-sensitive fields so a server
can render a link preview without seeing the invoice itself:
``id_amount_currency_network[_from][_due]``, for example
``a1b2c3d4_1250.00_USDC_arb_Acme_1231``.
"""

import re
from datetime import datetime, timezone

from pydantic import BaseModel

from invoice_link.schema.models import Invoice
from invoice_link.totals.amounts import format_amount
from invoice_link.totals.engine import invoice_raw_totals

SEPARATOR = "_"
SHORT_ID_LENGTH = 8
MAX_SENDER_LENGTH = 20
MIN_PARTS = 4

NETWORK_CODES = {
    1: "eth",
    42161: "arb",
    10: "op",
    137: "poly",
}
NETWORK_IDS = {code: network_id for network_id, code in NETWORK_CODES.items()}

# Delimiter and characters that would need escaping in a query string
_UNSAFE_RE = re.compile(r"[_#?&=%]")
_DUE_RE = re.compile(r"[0-9]{4}")


class OGPreview(BaseModel):
    """Decoded preview parameter.

    Attributes:
        id: Shortened invoice ID (first 8 characters, dashes removed)
        amount: Total with two decimals and no grouping
        currency: Currency symbol
        network: Network short code (eth, arb, op, poly) or chain ID
        sender: Sender name, at most 20 characters
        due: Due date as MMDD (UTC)
    """

    id: str
    amount: str
    currency: str
    network: str
    sender: str | None = None
    due: str | None = None


def _clean(text: str) -> str:
    return _UNSAFE_RE.sub("", text).strip()


def network_id_from_code(code: str) -> int | None:
    """Map a network short code back to its chain ID."""
    return NETWORK_IDS.get(code.lower())


def encode_og_preview(invoice: Invoice) -> str:
    """Build the ``og`` parameter value for an invoice.

    Args:
        invoice: Invoice being shared

    Returns:
        Preview string, e.g. "a1b2c3d4_1250.00_USDC_arb_Acme_1231"
    """
    totals = invoice_raw_totals(invoice)
    parts = [
        _clean(invoice.invoice_id.replace("-", ""))[:SHORT_ID_LENGTH],
        format_amount(totals.total, invoice.decimals, use_grouping=False, max_decimals=2),
        _clean(invoice.currency),
        NETWORK_CODES.get(invoice.network_id, str(invoice.network_id)),
    ]

    sender = _clean(invoice.sender.name[:MAX_SENDER_LENGTH])
    if sender:
        parts.append(sender)

    due = datetime.fromtimestamp(invoice.due_at, tz=timezone.utc)
    parts.append(due.strftime("%m%d"))
    return SEPARATOR.join(parts)


def decode_og_preview(text: str) -> OGPreview:
    """Parse an ``og`` parameter value.

    A fifth part that is not four digits is the sender name; a last part of
    four digits is the due date.

    Raises:
        ValueError: If fewer than four parts are present
    """
    parts = text.split(SEPARATOR)
    if len(parts) < MIN_PARTS:
        raise ValueError(f"Invalid OG preview format: minimum {MIN_PARTS} parts required")

    extra = parts[MIN_PARTS:]
    sender = extra[0] if extra and extra[0] and not _DUE_RE.fullmatch(extra[0]) else None
    due = extra[-1] if extra and _DUE_RE.fullmatch(extra[-1]) else None
    return OGPreview(
        id=parts[0],
        amount=parts[1],
        currency=parts[2],
        network=parts[3],
        sender=sender,
        due=due,
    )
