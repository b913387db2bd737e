"""
Minor-unit money conversion.

Amounts are stored as integer cents and shown to clients as decimal
currency values.
"""

from decimal import Decimal

# Floats keep 15 significant decimal digits, so every cent amount up to
# this bound survives int -> float -> Decimal unchanged.
MAX_MINOR_AMOUNT = 10**15 - 1

_CENT = Decimal("0.01")


def to_decimal(minor: int) -> Decimal:
    """Convert cents to an exact two-place Decimal (1999 -> Decimal("19.99"))."""
    if minor < 0 or minor > MAX_MINOR_AMOUNT:
        raise ValueError(f"amount {minor} outside 0..{MAX_MINOR_AMOUNT}")
    return Decimal(minor).scaleb(-2).quantize(_CENT)


def to_display(minor: int | None) -> float | None:
    """Convert cents to the float used in JSON responses."""
    if minor is None:
        return None
    return float(to_decimal(minor))
