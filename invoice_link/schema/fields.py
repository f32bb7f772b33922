"""Published field types used by the versioned payload parsers.

Parsers of released schema versions depend on these definitions, so an
existing type is never tightened or loosened. A new rule gets a new type.
"""

import re
from decimal import Decimal
from typing import Annotated

from pydantic import AfterValidator, Field, StringConstraints

from invoice_link.schema.limits import FIELD_LIMITS

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PERCENTAGE_RE = re.compile(r"[0-9]+(\.[0-9]+)?%?")


def _lowercase(value: str) -> str:
    return value.lower()


def _canonical_integer(value: str) -> str:
    return str(int(value))


def _check_percentage(value: str) -> str:
    if not PERCENTAGE_RE.fullmatch(value):
        raise ValueError("must be a number between 0 and 100, optionally followed by '%'")
    if Decimal(value.rstrip("%")) > 100:
        raise ValueError("must be between 0 and 100")
    return value


# Addresses are compared case-insensitively; lowercase is canonical
Address = Annotated[
    str,
    StringConstraints(pattern=ADDRESS_PATTERN),
    AfterValidator(_lowercase),
]

# Unix seconds, packed as uint32 in binary frames
Timestamp = Annotated[int, Field(gt=0, le=FIELD_LIMITS.max_uint32)]
NetworkId = Annotated[int, Field(gt=0, le=FIELD_LIMITS.max_uint32)]
Decimals = Annotated[int, Field(ge=0, le=FIELD_LIMITS.max_decimals)]

Percentage = Annotated[str, AfterValidator(_check_percentage)]

# JSON payloads accept any digit string and normalize leading zeros away
LegacyAtomicUnits = Annotated[
    str,
    StringConstraints(pattern=r"^[0-9]+$", max_length=FIELD_LIMITS.amount_digits),
    AfterValidator(_canonical_integer),
]

# Binary payloads only ever carry canonical integers
AtomicUnits = Annotated[
    str,
    StringConstraints(pattern=r"^(0|[1-9][0-9]*)$", max_length=FIELD_LIMITS.amount_digits),
]
Rate = Annotated[
    str,
    StringConstraints(pattern=r"^(0|[1-9][0-9]*)$", max_length=FIELD_LIMITS.rate_digits),
]

Quantity = Annotated[Decimal, Field(gt=0, le=FIELD_LIMITS.max_quantity)]

InvoiceId = Annotated[str, StringConstraints(min_length=1, max_length=FIELD_LIMITS.invoice_id)]
Currency = Annotated[str, StringConstraints(min_length=1, max_length=FIELD_LIMITS.currency)]
Name = Annotated[str, StringConstraints(min_length=1, max_length=FIELD_LIMITS.name)]
Email = Annotated[
    str,
    StringConstraints(pattern=EMAIL_PATTERN, max_length=FIELD_LIMITS.email),
]
PhysicalAddress = Annotated[str, StringConstraints(max_length=FIELD_LIMITS.address)]
Phone = Annotated[str, StringConstraints(max_length=FIELD_LIMITS.phone)]
TaxId = Annotated[str, StringConstraints(max_length=FIELD_LIMITS.tax_id)]
Notes = Annotated[str, StringConstraints(max_length=FIELD_LIMITS.notes)]
Description = Annotated[
    str,
    StringConstraints(min_length=1, max_length=FIELD_LIMITS.description),
]
LegacyRate = Annotated[
    str,
    StringConstraints(pattern=r"^[0-9]+$", max_length=FIELD_LIMITS.rate_digits),
    AfterValidator(_canonical_integer),
]
