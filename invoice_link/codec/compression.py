"""DEFLATE compression for packed invoice frames.

Uses the zlib container so the Adler-32 trailer catches corrupted streams
instead of inflating them into garbage.
"""

import zlib

from invoice_link.codec.errors import DecompressionFailed

DEFAULT_LEVEL = 9
DEFAULT_MAX_OUTPUT = 65536


def compress(data: bytes, level: int = DEFAULT_LEVEL) -> bytes:
    """Compress bytes with zlib.

    Args:
        data: Raw bytes
        level: zlib level (0-9); output is deterministic for a given level

    Returns:
        zlib stream
    """
    return zlib.compress(data, level)


def decompress(data: bytes, max_output: int = DEFAULT_MAX_OUTPUT) -> bytes:
    """Inflate a zlib stream produced by `compress`.

    Args:
        data: zlib stream
        max_output: Largest inflated size accepted

    Returns:
        Original bytes

    Raises:
        DecompressionFailed: If the stream is empty, corrupt, incomplete,
            followed by extra bytes, or inflates beyond `max_output`
    """
    if not data:
        raise DecompressionFailed("Compressed stream is empty")

    inflater = zlib.decompressobj()
    try:
        # One byte past the limit tells an oversized stream from an exact fit
        output = inflater.decompress(data, max_output + 1)
    except zlib.error as e:
        raise DecompressionFailed(f"Compressed stream is corrupt: {e}") from e

    if len(output) > max_output:
        raise DecompressionFailed(f"Decompressed payload exceeds {max_output} bytes")
    if not inflater.eof:
        raise DecompressionFailed("Compressed stream is truncated")
    if inflater.unused_data:
        raise DecompressionFailed(
            f"Compressed stream has {len(inflater.unused_data)} trailing byte(s)"
        )
    return output
