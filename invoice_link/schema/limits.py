"""Invoice field limits.

Single source of truth for field length restrictions. Sized so that a fully
populated invoice still fits the 2000 byte URL budget after compression.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldLimits:
    """Length and range limits applied by the v2 and v3 parsers."""

    invoice_id: int = 50
    name: int = 100
    email: int = 100
    phone: int = 30
    address: int = 200
    tax_id: int = 50
    notes: int = 280
    currency: int = 10
    description: int = 200
    max_items: int = 5
    max_decimals: int = 18
    rate_digits: int = 24
    amount_digits: int = 40
    max_quantity: int = 99999
    max_uint32: int = 2**32 - 1


FIELD_LIMITS = FieldLimits()
