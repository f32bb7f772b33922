"""Shared fixtures for invoice codec tests."""

from typing import Any

import pytest

from invoice_link.schema.models import Invoice
from invoice_link.shared.config import Settings

SENDER_WALLET = "0xAbCdEf0123456789abcdef0123456789ABCDEF01"
CLIENT_WALLET = "0x1111111111111111111111111111111111111111"
USDC_ADDRESS = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"

ISSUED_AT = 1704067200  # 2024-01-01 00:00 UTC
DUE_AT = 1706745600  # 2024-02-01 00:00 UTC


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults, independent of the environment."""
    return Settings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
def invoice_data() -> dict[str, Any]:
    """Fully populated invoice in camelCase JSON form."""
    return {
        "invoiceId": "INV-2024-001",
        "issuedAt": ISSUED_AT,
        "dueAt": DUE_AT,
        "networkId": 42161,
        "currency": "USDC",
        "tokenAddress": USDC_ADDRESS,
        "decimals": 6,
        "from": {
            "name": "Acme Studio",
            "walletAddress": SENDER_WALLET,
            "email": "billing@acme.example",
            "physicalAddress": "1 Main Street\nSpringfield",
            "phone": "+1 555 0100",
            "taxId": "VAT-123",
        },
        "client": {
            "name": "Globex",
            "walletAddress": CLIENT_WALLET,
            "email": "ap@globex.example",
        },
        "items": [
            {"description": "Design work", "quantity": "40", "rate": "150000000"},
            {"description": "Hosting", "quantity": "1.5", "rate": "20000000"},
        ],
        "tax": "10",
        "discount": "5%",
        "notes": "Thanks for your business",
    }


@pytest.fixture
def invoice(invoice_data: dict[str, Any]) -> Invoice:
    """Fully populated canonical invoice."""
    return Invoice.model_validate(invoice_data)


@pytest.fixture
def minimal_invoice() -> Invoice:
    """Invoice with only the required fields."""
    return Invoice.model_validate(
        {
            "invoiceId": "INV-1",
            "issuedAt": ISSUED_AT,
            "dueAt": ISSUED_AT,
            "networkId": 1,
            "currency": "ETH",
            "decimals": 18,
            "from": {"name": "Alice", "walletAddress": SENDER_WALLET},
            "client": {"name": "Bob"},
            "items": [{"description": "Work", "quantity": 1, "rate": "1000000000000000000"}],
        }
    )
