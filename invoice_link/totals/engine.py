"""Totals Engine: exact invoice totals over atomic units.

All arithmetic is integer arithmetic on atomic units. A line amount is
``quantity * rate`` rounded half-up to the nearest atomic unit; tax and
discount are percentages of the subtotal rounded the same way; the total
is ``max(0, subtotal + tax - discount)`` plus any magic dust. The same
code path serves 6- and 18-decimal tokens because only the display step
looks at `decimals`.
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel

from invoice_link.codec.errors import TotalsMismatch
from invoice_link.schema.models import Invoice, LineItem
from invoice_link.totals.amounts import DEFAULT_DISPLAY_DECIMALS, format_amount

logger = logging.getLogger(__name__)


class RawTotals(BaseModel):
    """Totals in atomic units, suitable for embedding into a payload.

    Attributes:
        subtotal: Sum of the line amounts
        tax_amount: Tax on the subtotal
        discount_amount: Discount on the subtotal
        total: Final amount due, magic dust included
        magic_dust: Magic dust included in `total`, if any
    """

    subtotal: str
    tax_amount: str
    discount_amount: str
    total: str
    magic_dust: str | None = None


class Totals(BaseModel):
    """Totals formatted for display (e.g. "1,250.00")."""

    subtotal: str
    tax_amount: str
    discount_amount: str
    total: str
    magic_dust: str | None = None


def _quantity(value: Any) -> Decimal:
    # str() first so floats keep their shortest repr instead of binary noise
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid quantity: {value!r}") from e
    if not quantity.is_finite() or quantity < 0:
        raise ValueError(f"Invalid quantity: {value!r}")
    return quantity


def _item_values(item: LineItem | Mapping[str, Any]) -> tuple[Any, Any]:
    if isinstance(item, LineItem):
        return item.quantity, item.rate
    return item.get("quantity", 0), item.get("rate", "0")


def line_amount(quantity: Any, rate: str | int) -> int:
    """Compute ``quantity * rate`` rounded half-up to an atomic unit.

    Args:
        quantity: Number of units (int, Decimal, float or numeric string)
        rate: Price per unit in atomic units

    Returns:
        Line amount in atomic units
    """
    numerator, denominator = _quantity(quantity).as_integer_ratio()
    return (2 * numerator * int(rate) + denominator) // (2 * denominator)


def percentage_of(amount: int, percentage: str | None) -> int:
    """Compute `percentage` percent of `amount`, rounded half-up.

    Args:
        amount: Base in atomic units
        percentage: Percentage string such as "10" or "8.5%"; None or blank means 0

    Returns:
        Portion of `amount` in atomic units
    """
    if percentage is None or not percentage.strip():
        return 0
    text = percentage.strip().removesuffix("%")
    try:
        value = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Invalid percentage: {percentage!r}") from e
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid percentage: {percentage!r}")

    numerator, denominator = value.as_integer_ratio()
    scaled = 100 * denominator
    return (2 * amount * numerator + scaled) // (2 * scaled)


def calculate_raw_totals(
    items: Iterable[LineItem | Mapping[str, Any]],
    *,
    tax: str | None = None,
    discount: str | None = None,
    total: str | None = None,
    magic_dust: str | None = None,
) -> RawTotals:
    """Calculate totals in atomic units.

    A pre-computed `total` carried by the invoice is trusted for the final
    amount; the breakdown is always recomputed from the items.

    Args:
        items: Line items, as `LineItem` models or dicts with quantity and rate
        tax: Tax percentage
        discount: Discount percentage
        total: Pre-computed total in atomic units, magic dust included
        magic_dust: Magic dust in atomic units

    Returns:
        RawTotals with atomic-unit strings
    """
    subtotal = 0
    for item in items:
        quantity, rate = _item_values(item)
        subtotal += line_amount(quantity, rate)

    tax_amount = percentage_of(subtotal, tax)
    discount_amount = percentage_of(subtotal, discount)
    dust = int(magic_dust) if magic_dust else 0

    if total is not None:
        final = int(total)
    else:
        final = max(0, subtotal + tax_amount - discount_amount) + dust

    return RawTotals(
        subtotal=str(subtotal),
        tax_amount=str(tax_amount),
        discount_amount=str(discount_amount),
        total=str(final),
        magic_dust=str(dust) if magic_dust else None,
    )


def calculate_totals(
    items: Iterable[LineItem | Mapping[str, Any]],
    decimals: int,
    *,
    tax: str | None = None,
    discount: str | None = None,
    total: str | None = None,
    magic_dust: str | None = None,
    display_decimals: int = DEFAULT_DISPLAY_DECIMALS,
) -> Totals:
    """Calculate totals formatted for display.

    Args:
        items: Line items with rates in atomic units
        decimals: Token decimals used to scale atomic units for display
        tax: Tax percentage
        discount: Discount percentage
        total: Pre-computed total in atomic units
        magic_dust: Magic dust in atomic units
        display_decimals: Minimum fractional digits shown

    Returns:
        Totals with display strings such as "250.00" or "100.000042"
    """
    raw = calculate_raw_totals(
        items, tax=tax, discount=discount, total=total, magic_dust=magic_dust
    )

    def display(value: str) -> str:
        return format_amount(value, decimals, display_decimals=display_decimals)

    return Totals(
        subtotal=display(raw.subtotal),
        tax_amount=display(raw.tax_amount),
        discount_amount=display(raw.discount_amount),
        total=display(raw.total),
        magic_dust=display(raw.magic_dust) if raw.magic_dust is not None else None,
    )


def invoice_raw_totals(invoice: Invoice) -> RawTotals:
    """Raw totals of an invoice, trusting its embedded total."""
    return calculate_raw_totals(
        invoice.items,
        tax=invoice.tax,
        discount=invoice.discount,
        total=invoice.total,
        magic_dust=invoice.magic_dust,
    )


def invoice_totals(invoice: Invoice) -> Totals:
    """Display totals of an invoice, trusting its embedded total."""
    return calculate_totals(
        invoice.items,
        invoice.decimals,
        tax=invoice.tax,
        discount=invoice.discount,
        total=invoice.total,
        magic_dust=invoice.magic_dust,
    )


def embed_totals(invoice: Invoice, magic_dust: str | int | None = None) -> Invoice:
    """Return a copy of the invoice with `total` and `magic_dust` filled in.

    The total is recomputed from the items; any total already embedded is
    replaced. Encode the result so that the payer sees exactly the amount
    the creator saw.

    Args:
        invoice: Invoice to complete
        magic_dust: Atomic units to add; defaults to the invoice's own magic dust
    """
    dust = str(magic_dust) if magic_dust is not None else invoice.magic_dust
    raw = calculate_raw_totals(
        invoice.items, tax=invoice.tax, discount=invoice.discount, magic_dust=dust
    )
    return invoice.model_copy(update={"total": raw.total, "magic_dust": raw.magic_dust})


def verify_embedded_totals(invoice: Invoice) -> None:
    """Check an embedded total against the total recomputed from the items.

    Invoices without an embedded total pass unchanged.

    Raises:
        TotalsMismatch: If the embedded total differs from
            ``subtotal + tax - discount + magic_dust``
    """
    if invoice.total is None:
        return

    expected = calculate_raw_totals(
        invoice.items,
        tax=invoice.tax,
        discount=invoice.discount,
        magic_dust=invoice.magic_dust,
    )
    if int(expected.total) != int(invoice.total):
        logger.warning(
            f"Invoice {invoice.invoice_id}: embedded total {invoice.total} "
            f"!= recomputed {expected.total}"
        )
        raise TotalsMismatch(expected=expected.total, actual=invoice.total)
