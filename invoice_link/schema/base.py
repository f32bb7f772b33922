"""Base class for versioned payload parsers.

Each schema version is one frozen pydantic model that validates the raw
data of that version and converts it to the canonical `Invoice`. Once a
version is published its accepted input shape never changes: subclassing a
published payload class raises `TypeError`, so new requirements always
arrive as a new version.
"""

from abc import abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict

from invoice_link.schema.models import Invoice


class VersionedPayload(BaseModel):
    """Sealed, frozen parser for one schema version."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    SCHEMA_VERSION: ClassVar[int]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for base in cls.__bases__:
            if base is not VersionedPayload and issubclass(base, VersionedPayload):
                raise TypeError(
                    f"{base.__name__} is a published schema and cannot be extended; "
                    f"add a new schema version instead"
                )

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> "VersionedPayload":
        """Validate a canonical invoice as a payload of this version."""
        data = invoice.model_dump(by_alias=True)
        data["version"] = cls.SCHEMA_VERSION
        return cls.model_validate(data)

    @abstractmethod
    def to_invoice(self) -> Invoice:
        """Convert the validated payload to the canonical invoice."""
