"""Conversions between human-readable amounts and atomic units.

Atomic units are non-negative integer strings scaled by ``10 ** decimals``
(USDC with 6 decimals: "150.50" <-> "150500000"). All conversions use
integer or `Decimal` arithmetic, never floats.
"""

import secrets
from decimal import Decimal, InvalidOperation

DEFAULT_DISPLAY_DECIMALS = 2
# Extra precision shown for amounts such as magic dust
MAX_DISPLAY_DECIMALS = 6

MAGIC_DUST_MIN = 1
MAGIC_DUST_MAX = 999


def parse_amount(human_amount: str, decimals: int) -> str:
    """Convert a human-readable amount to atomic units.

    Args:
        human_amount: Amount such as "150.50"; blank input means zero
        decimals: Token decimals (6 for USDC, 18 for ETH)

    Returns:
        Atomic units as a string, e.g. "150500000"

    Raises:
        ValueError: If the amount is not a non-negative number or has more
            fractional digits than the token supports
    """
    trimmed = human_amount.strip().replace(",", "")
    if trimmed in ("", "."):
        return "0"

    try:
        value = Decimal(trimmed)
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {human_amount!r}") from e
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid amount: {human_amount!r}")

    numerator, denominator = value.as_integer_ratio()
    atomic, remainder = divmod(numerator * 10**decimals, denominator)
    if remainder:
        raise ValueError(f"Amount {human_amount!r} has more than {decimals} decimal places")
    return str(atomic)


def _round_half_up(numerator: int, denominator: int) -> int:
    return (2 * numerator + denominator) // (2 * denominator)


def format_amount(
    atomic_amount: str | int,
    decimals: int,
    *,
    display_decimals: int = DEFAULT_DISPLAY_DECIMALS,
    use_grouping: bool = True,
    max_decimals: int = MAX_DISPLAY_DECIMALS,
) -> str:
    """Convert atomic units to a display string.

    At least `display_decimals` fractional digits are shown. Amounts with
    more significant digits (magic dust) show up to `max_decimals`, rounded
    half-up.

    Args:
        atomic_amount: Atomic units, e.g. "150500000"
        decimals: Token decimals
        display_decimals: Minimum fractional digits
        use_grouping: Insert thousands separators (disable for URLs)
        max_decimals: Cap on fractional digits for high-precision amounts

    Returns:
        Display string, e.g. "150.50", "1,000.00" or "100.000042"

    Raises:
        ValueError: If the amount is negative or not an integer
    """
    atomic = int(atomic_amount)
    if atomic < 0:
        raise ValueError(f"Atomic amount must be non-negative: {atomic_amount}")

    scale = 10**decimals
    fraction = str(atomic % scale).zfill(decimals).rstrip("0") if decimals else ""
    places = max(display_decimals, min(len(fraction), max_decimals))

    shown = _round_half_up(atomic * 10**places, scale)
    whole, frac = divmod(shown, 10**places)
    digits = f"{frac:0{places}d}" if places else ""
    # Rounding can leave trailing zeros beyond the minimum
    while len(digits) > display_decimals and digits.endswith("0"):
        digits = digits[:-1]

    whole_text = f"{whole:,}" if use_grouping else str(whole)
    return f"{whole_text}.{digits}" if digits else whole_text


def generate_magic_dust() -> int:
    """Pick a random magic dust amount between 1 and 999 atomic units."""
    return MAGIC_DUST_MIN + secrets.randbelow(MAGIC_DUST_MAX - MAGIC_DUST_MIN + 1)


def add_magic_dust(total: str, magic_dust: str | int) -> str:
    """Add magic dust to an atomic-unit total."""
    return str(int(total) + int(magic_dust))
