"""Binary packer and unpacker for v3 invoice frames.

Frame layout::

    version      u8   (3)
    flags        u16  presence bit per optional field
    issuedAt     u32
    dueAt        varint     seconds after issuedAt
    networkId    varint
    decimals     varint
    token        if HAS_TOKEN: u8 0 + u8 dictionary code,
                 or u8 1 + 20 address bytes
    from wallet  20 bytes   if FROM_WALLET
    client wallet 20 bytes  if CLIENT_WALLET
    invoiceId    string
    currency     u8 1 + u8 dictionary code, or u8 2 + string
    strings      varint length + UTF-8: notes?,
                 from.name, from.{email,physicalAddress,phone,taxId}?,
                 client.name, client.{email,physicalAddress,phone,taxId}?,
                 tax?, discount?
    item count   varint, then per item: description, quantity (decimal
                 string), rate (varint)
    total        varint     if HAS_TOTAL
    magicDust    varint     if HAS_MAGIC_DUST

Absent optional fields are marked by flags, never by sentinel values, so an
empty string survives the round trip. Packing the same payload twice yields
identical bytes.
"""

import logging
from enum import IntFlag
from typing import Any

from invoice_link.codec.buffer import ByteReader, ByteWriter
from invoice_link.codec.dictionary import (
    CURRENCY_NAMES,
    TOKEN_ADDRESSES,
    currency_code,
    token_code,
)
from invoice_link.codec.errors import CorruptEncoding, TruncatedPayload, UnsupportedVersion
from invoice_link.schema.v3 import InvoiceV3Payload, PartyV3

logger = logging.getLogger(__name__)

FRAME_VERSION = 3
# version + flags + issuedAt + one-byte varints for dueAt delta, networkId, decimals
HEADER_SIZE = 1 + 2 + 4 + 1 + 1 + 1

TOKEN_FROM_DICTIONARY = 0
TOKEN_RAW = 1
CURRENCY_FROM_DICTIONARY = 1
CURRENCY_RAW = 2


class Flags(IntFlag):
    HAS_NOTES = 1 << 0
    HAS_TOKEN = 1 << 1
    FROM_WALLET = 1 << 2
    FROM_EMAIL = 1 << 3
    FROM_ADDRESS = 1 << 4
    FROM_PHONE = 1 << 5
    FROM_TAX_ID = 1 << 6
    CLIENT_WALLET = 1 << 7
    CLIENT_EMAIL = 1 << 8
    CLIENT_ADDRESS = 1 << 9
    CLIENT_PHONE = 1 << 10
    CLIENT_TAX_ID = 1 << 11
    HAS_TAX = 1 << 12
    HAS_DISCOUNT = 1 << 13
    HAS_TOTAL = 1 << 14
    HAS_MAGIC_DUST = 1 << 15


# (attribute, JSON key) for optional party strings, in frame order
_PARTY_FIELDS = (
    ("email", "email"),
    ("physical_address", "physicalAddress"),
    ("phone", "phone"),
    ("tax_id", "taxId"),
)
_FROM_FLAGS = (Flags.FROM_EMAIL, Flags.FROM_ADDRESS, Flags.FROM_PHONE, Flags.FROM_TAX_ID)
_CLIENT_FLAGS = (
    Flags.CLIENT_EMAIL,
    Flags.CLIENT_ADDRESS,
    Flags.CLIENT_PHONE,
    Flags.CLIENT_TAX_ID,
)


def _compute_flags(payload: InvoiceV3Payload) -> Flags:
    flags = Flags(0)
    optional = (
        (payload.notes, Flags.HAS_NOTES),
        (payload.token_address, Flags.HAS_TOKEN),
        (payload.sender.wallet_address, Flags.FROM_WALLET),
        (payload.client.wallet_address, Flags.CLIENT_WALLET),
        (payload.tax, Flags.HAS_TAX),
        (payload.discount, Flags.HAS_DISCOUNT),
        (payload.total, Flags.HAS_TOTAL),
        (payload.magic_dust, Flags.HAS_MAGIC_DUST),
    )
    for value, flag in optional:
        if value is not None:
            flags |= flag
    for party, party_flags in ((payload.sender, _FROM_FLAGS), (payload.client, _CLIENT_FLAGS)):
        for (attr, _), flag in zip(_PARTY_FIELDS, party_flags):
            if getattr(party, attr) is not None:
                flags |= flag
    return flags


def _write_party(writer: ByteWriter, party: PartyV3) -> None:
    writer.write_string(party.name)
    for attr, _ in _PARTY_FIELDS:
        value = getattr(party, attr)
        if value is not None:
            writer.write_string(value)


def _write_token(writer: ByteWriter, address: str) -> None:
    code = token_code(address)
    if code is None:
        writer.write_uint(TOKEN_RAW, 1)
        writer.write_address(address)
    else:
        writer.write_uint(TOKEN_FROM_DICTIONARY, 1)
        writer.write_uint(code, 1)


def _write_currency(writer: ByteWriter, currency: str) -> None:
    code = currency_code(currency)
    if code is None:
        writer.write_uint(CURRENCY_RAW, 1)
        writer.write_string(currency)
    else:
        writer.write_uint(CURRENCY_FROM_DICTIONARY, 1)
        writer.write_uint(code, 1)


def pack_invoice(payload: InvoiceV3Payload) -> bytes:
    """Pack a validated v3 payload into a binary frame.

    Args:
        payload: Payload produced by the schema registry

    Returns:
        Frame bytes (uncompressed)

    Raises:
        ValueError: If the due date precedes the issue date
    """
    flags = _compute_flags(payload)
    writer = ByteWriter()

    writer.write_uint(FRAME_VERSION, 1)
    writer.write_uint(int(flags), 2)
    writer.write_uint(payload.issued_at, 4)
    writer.write_varint(payload.due_at - payload.issued_at)
    writer.write_varint(payload.network_id)
    writer.write_varint(payload.decimals)

    if payload.token_address is not None:
        _write_token(writer, payload.token_address)
    for address in (payload.sender.wallet_address, payload.client.wallet_address):
        if address is not None:
            writer.write_address(address)

    writer.write_string(payload.invoice_id)
    _write_currency(writer, payload.currency)
    if payload.notes is not None:
        writer.write_string(payload.notes)
    _write_party(writer, payload.sender)
    _write_party(writer, payload.client)
    if payload.tax is not None:
        writer.write_string(payload.tax)
    if payload.discount is not None:
        writer.write_string(payload.discount)

    writer.write_varint(len(payload.items))
    for item in payload.items:
        writer.write_string(item.description)
        writer.write_string(str(item.quantity))
        writer.write_varint(int(item.rate))

    if payload.total is not None:
        writer.write_varint(int(payload.total))
    if payload.magic_dust is not None:
        writer.write_varint(int(payload.magic_dust))

    frame = writer.getvalue()
    logger.debug(f"Packed v{FRAME_VERSION} frame: {len(frame)} bytes, flags=0x{int(flags):04x}")
    return frame


def _read_party(
    reader: ByteReader, flags: Flags, party_flags: tuple[Flags, ...], prefix: str
) -> dict[str, Any]:
    party: dict[str, Any] = {"name": reader.read_string(f"{prefix}.name")}
    for (_, key), flag in zip(_PARTY_FIELDS, party_flags):
        if flags & flag:
            party[key] = reader.read_string(f"{prefix}.{key}")
    return party


def _read_token(reader: ByteReader) -> str:
    marker = reader.read_uint(1)
    if marker == TOKEN_RAW:
        return reader.read_address()
    if marker != TOKEN_FROM_DICTIONARY:
        raise CorruptEncoding(f"Unknown token marker {marker}")
    code = reader.read_uint(1)
    address = TOKEN_ADDRESSES.get(code)
    if address is None:
        raise CorruptEncoding(f"Unknown token dictionary code {code}")
    return address


def _read_currency(reader: ByteReader) -> str:
    marker = reader.read_uint(1)
    if marker == CURRENCY_RAW:
        return reader.read_string("currency")
    if marker != CURRENCY_FROM_DICTIONARY:
        raise CorruptEncoding(f"Unknown currency marker {marker}")
    code = reader.read_uint(1)
    currency = CURRENCY_NAMES.get(code)
    if currency is None:
        raise CorruptEncoding(f"Unknown currency dictionary code {code}")
    return currency


def _read_v3(reader: ByteReader) -> dict[str, Any]:
    flags = Flags(reader.read_uint(2))
    issued_at = reader.read_uint(4)
    raw: dict[str, Any] = {
        "version": FRAME_VERSION,
        "issuedAt": issued_at,
        "dueAt": issued_at + reader.read_varint(),
        "networkId": reader.read_varint(),
        "decimals": reader.read_varint(),
    }

    token_address = _read_token(reader) if flags & Flags.HAS_TOKEN else None
    from_wallet = reader.read_address() if flags & Flags.FROM_WALLET else None
    client_wallet = reader.read_address() if flags & Flags.CLIENT_WALLET else None
    if token_address is not None:
        raw["tokenAddress"] = token_address

    raw["invoiceId"] = reader.read_string("invoiceId")
    raw["currency"] = _read_currency(reader)
    if flags & Flags.HAS_NOTES:
        raw["notes"] = reader.read_string("notes")
    raw["from"] = _read_party(reader, flags, _FROM_FLAGS, "from")
    raw["client"] = _read_party(reader, flags, _CLIENT_FLAGS, "client")
    if from_wallet is not None:
        raw["from"]["walletAddress"] = from_wallet
    if client_wallet is not None:
        raw["client"]["walletAddress"] = client_wallet
    if flags & Flags.HAS_TAX:
        raw["tax"] = reader.read_string("tax")
    if flags & Flags.HAS_DISCOUNT:
        raw["discount"] = reader.read_string("discount")

    item_count = reader.read_varint()
    items = []
    for index in range(item_count):
        items.append(
            {
                "description": reader.read_string(f"items.{index}.description"),
                "quantity": reader.read_string(f"items.{index}.quantity"),
                "rate": str(reader.read_varint()),
            }
        )
    raw["items"] = items

    if flags & Flags.HAS_TOTAL:
        raw["total"] = str(reader.read_varint())
    if flags & Flags.HAS_MAGIC_DUST:
        raw["magicDust"] = str(reader.read_varint())
    return raw


_FRAME_READERS = {
    FRAME_VERSION: _read_v3,
}


def unpack_invoice(frame: bytes) -> tuple[int, dict[str, Any]]:
    """Unpack a binary frame into raw payload data.

    The result is not validated; pass it to the schema registry with the
    returned version tag.

    Args:
        frame: Decompressed frame bytes

    Returns:
        Tuple of (version tag, raw camelCase payload dict)

    Raises:
        TruncatedPayload: If the frame is shorter than its fields require
        UnsupportedVersion: If the frame version has no known layout
        CorruptEncoding: If a string is not UTF-8 or bytes trail the last field
    """
    if len(frame) < HEADER_SIZE:
        raise TruncatedPayload(
            f"Payload truncated: frame is {len(frame)} bytes, minimum is {HEADER_SIZE}"
        )

    reader = ByteReader(frame)
    version = reader.read_uint(1)
    read_frame = _FRAME_READERS.get(version)
    if read_frame is None:
        raise UnsupportedVersion(version, "unknown binary frame layout")

    raw = read_frame(reader)
    if reader.remaining:
        raise CorruptEncoding(f"Frame has {reader.remaining} unexpected trailing byte(s)")
    return version, raw
