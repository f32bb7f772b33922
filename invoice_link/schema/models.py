"""Canonical invoice model.

Every schema version parses into these classes and the encoder serializes
from them. Attribute names are snake_case; the camelCase aliases match the
JSON shape used by links and by `Invoice.to_dict()`.
"""

from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

CURRENT_SCHEMA_VERSION = 3


def _json_number(value: Decimal) -> int | float | str:
    """JSON form of a quantity: int or float when exact, decimal string otherwise."""
    if value == value.to_integral_value():
        return int(value)
    as_float = float(value)
    if Decimal(repr(as_float)) == value:
        return as_float
    return str(value)


JsonNumber = Annotated[Decimal, PlainSerializer(_json_number, when_used="json")]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Party(_CamelModel):
    """Sender or client of an invoice.

    Attributes:
        name: Person or company name
        wallet_address: 0x-prefixed address (compared case-insensitively)
        email: Contact email
        physical_address: Postal address, may span several lines
        phone: Phone number
        tax_id: VAT number or other tax identifier
    """

    name: str
    wallet_address: str | None = None
    email: str | None = None
    physical_address: str | None = None
    phone: str | None = None
    tax_id: str | None = None


class LineItem(_CamelModel):
    """A billed line: `quantity` units at `rate` atomic units each."""

    description: str
    quantity: JsonNumber
    rate: str


class Invoice(_CamelModel):
    """Decoded invoice.

    Monetary values (`rate`, `total`, `magic_dust`) are atomic-unit integer
    strings scaled by ``10 ** decimals``. `tax` and `discount` are percentage
    strings such as ``"10"`` or ``"8.5%"``.
    """

    version: int = CURRENT_SCHEMA_VERSION
    invoice_id: str
    issued_at: int
    due_at: int
    network_id: int
    currency: str
    token_address: str | None = None
    decimals: int
    sender: Party = Field(alias="from")
    client: Party
    items: list[LineItem]
    tax: str | None = None
    discount: str | None = None
    notes: str | None = None
    total: str | None = None
    magic_dust: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape, omitting absent fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
