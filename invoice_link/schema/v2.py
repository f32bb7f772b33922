"""Schema v2: extended camelCase JSON payload.

Adds tax IDs, field length limits and the pre-computed ``total`` /
``magicDust`` pair. Keys match `Invoice.to_dict()` with ``"version": 2``.
"""

from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from invoice_link.schema.base import VersionedPayload
from invoice_link.schema.fields import (
    Address,
    Currency,
    Decimals,
    Description,
    Email,
    InvoiceId,
    LegacyAtomicUnits,
    LegacyRate,
    Name,
    NetworkId,
    Notes,
    Percentage,
    Phone,
    PhysicalAddress,
    Quantity,
    TaxId,
    Timestamp,
)
from invoice_link.schema.limits import FIELD_LIMITS
from invoice_link.schema.models import Invoice


class PartyV2(BaseModel):
    model_config = ConfigDict(
        frozen=True, populate_by_name=True, alias_generator=to_camel, extra="ignore"
    )

    name: Name
    wallet_address: Address | None = None
    email: Email | None = None
    physical_address: PhysicalAddress | None = None
    phone: Phone | None = None
    tax_id: TaxId | None = None


class SenderV2(PartyV2):
    wallet_address: Address


class LineItemV2(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    description: Description
    quantity: Quantity
    rate: LegacyRate


class InvoiceV2Payload(VersionedPayload):
    """Extended v2 payload."""

    SCHEMA_VERSION: ClassVar[int] = 2

    model_config = ConfigDict(alias_generator=to_camel)

    version: Literal[2]
    invoice_id: InvoiceId
    issued_at: Timestamp
    due_at: Timestamp
    network_id: NetworkId
    currency: Currency
    token_address: Address | None = None
    decimals: Decimals
    sender: SenderV2 = Field(alias="from")
    client: PartyV2
    items: list[LineItemV2] = Field(min_length=1, max_length=FIELD_LIMITS.max_items)
    tax: Percentage | None = None
    discount: Percentage | None = None
    notes: Notes | None = None
    total: LegacyAtomicUnits | None = None
    magic_dust: LegacyAtomicUnits | None = None

    @field_validator("due_at")
    @classmethod
    def _due_after_issue(cls, value: int, info: ValidationInfo) -> int:
        issued_at = info.data.get("issued_at")
        if issued_at is not None and value < issued_at:
            raise ValueError("Due date must be on or after issue date")
        return value

    def to_invoice(self) -> Invoice:
        return Invoice.model_validate(self.model_dump())
