"""Byte buffer builder and reader for binary invoice frames.

Integers are big-endian when fixed-width and unsigned LEB128 varints
otherwise; strings are varint-length-prefixed UTF-8.
"""

from invoice_link.codec.errors import CorruptEncoding, TruncatedPayload

ADDRESS_SIZE = 20
# Longest varint accepted on read; covers every rate and total the schema allows
MAX_VARINT_BYTES = 20


class ByteWriter:
    """Append-only byte buffer with explicit length tracking."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def write_uint(self, value: int, size: int) -> None:
        """Write a fixed-width big-endian unsigned integer.

        Raises:
            ValueError: If value does not fit in `size` bytes
        """
        if value < 0 or value >= 1 << (8 * size):
            raise ValueError(f"Value {value} does not fit in {size} byte(s)")
        self._buffer += value.to_bytes(size, "big")

    def write_varint(self, value: int) -> None:
        """Write an unsigned LEB128 varint of any magnitude."""
        if value < 0:
            raise ValueError("Varints cannot encode negative values")
        while value > 0x7F:
            self._buffer.append((value & 0x7F) | 0x80)
            value >>= 7
        self._buffer.append(value)

    def write_bytes(self, data: bytes) -> None:
        self._buffer += data

    def write_string(self, value: str) -> None:
        encoded = value.encode("utf-8")
        self.write_varint(len(encoded))
        self._buffer += encoded

    def write_address(self, address: str) -> None:
        """Write a 0x-prefixed hex address as 20 raw bytes."""
        raw = bytes.fromhex(address.removeprefix("0x"))
        if len(raw) != ADDRESS_SIZE:
            raise ValueError(f"Invalid address length: {address}")
        self._buffer += raw

    def getvalue(self) -> bytes:
        return bytes(self._buffer)


class ByteReader:
    """Sequential reader over a binary frame.

    Every read checks the remaining length and raises `TruncatedPayload`
    instead of returning short data.
    """

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._offset = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def read_bytes(self, size: int) -> bytes:
        if size > self.remaining:
            raise TruncatedPayload(
                f"Payload truncated: needed {size} byte(s) at offset {self._offset}, "
                f"{self.remaining} left"
            )
        chunk = self._data[self._offset : self._offset + size]
        self._offset += size
        return chunk

    def read_uint(self, size: int) -> int:
        return int.from_bytes(self.read_bytes(size), "big")

    def read_varint(self) -> int:
        value = 0
        for index in range(MAX_VARINT_BYTES):
            byte = self.read_bytes(1)[0]
            value |= (byte & 0x7F) << (7 * index)
            if not byte & 0x80:
                return value
        raise CorruptEncoding(
            f"Varint longer than {MAX_VARINT_BYTES} bytes at offset {self._offset}"
        )

    def read_string(self, field: str) -> str:
        length = self.read_varint()
        raw = self.read_bytes(length)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CorruptEncoding(f"Field '{field}' is not valid UTF-8") from e

    def read_address(self) -> str:
        return "0x" + self.read_bytes(ADDRESS_SIZE).hex()
