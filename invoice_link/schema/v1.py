"""Schema v1: compact-key JSON payload from the first release.

Example::

    {"v": 1, "id": "INV-2024-001", "iss": 1704067200, "due": 1706745600,
     "net": 1, "cur": "USDC", "dec": 6,
     "f": {"n": "Acme", "a": "0x..."}, "c": {"n": "Client"},
     "it": [{"d": "Consulting", "q": 40, "r": "150000000"}],
     "tax": "8.5%", "dsc": "5%"}

Quantities may be numbers or numeric strings.
"""

from decimal import Decimal
from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from invoice_link.schema.base import VersionedPayload
from invoice_link.schema.fields import (
    Address,
    Decimals,
    LegacyAtomicUnits,
    NetworkId,
    Percentage,
    Timestamp,
)
from invoice_link.schema.models import Invoice, LineItem, Party


class PartyV1(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    n: str = Field(min_length=1)
    a: Address | None = None
    e: str | None = None
    ads: str | None = None
    ph: str | None = None

    def to_party(self) -> Party:
        return Party(
            name=self.n,
            wallet_address=self.a,
            email=self.e,
            physical_address=self.ads,
            phone=self.ph,
        )


class SenderV1(PartyV1):
    a: Address


class LineItemV1(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    d: str = Field(min_length=1)
    q: Decimal = Field(gt=0)
    r: LegacyAtomicUnits


class InvoiceV1Payload(VersionedPayload):
    """Compact v1 payload."""

    SCHEMA_VERSION: ClassVar[int] = 1

    v: Literal[1]
    id: str = Field(min_length=1)
    iss: Timestamp
    due: Timestamp
    nt: str | None = None
    net: NetworkId
    cur: str = Field(min_length=1)
    t: Address | None = None
    dec: Decimals
    f: SenderV1
    c: PartyV1
    it: list[LineItemV1] = Field(min_length=1)
    tax: Percentage | None = None
    dsc: Percentage | None = None

    @field_validator("due")
    @classmethod
    def _due_after_issue(cls, value: int, info: ValidationInfo) -> int:
        issued_at = info.data.get("iss")
        if issued_at is not None and value < issued_at:
            raise ValueError("Due date must be on or after issue date")
        return value

    def to_invoice(self) -> Invoice:
        return Invoice(
            version=self.SCHEMA_VERSION,
            invoice_id=self.id,
            issued_at=self.iss,
            due_at=self.due,
            notes=self.nt,
            network_id=self.net,
            currency=self.cur,
            token_address=self.t,
            decimals=self.dec,
            sender=self.f.to_party(),
            client=self.c.to_party(),
            items=[LineItem(description=i.d, quantity=i.q, rate=i.r) for i in self.it],
            tax=self.tax,
            discount=self.dsc,
        )
