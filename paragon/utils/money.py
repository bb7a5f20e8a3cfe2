"""
Money Helpers
=============
All money inside Paragon is integer cents. These helpers convert at the
broker boundary and for display.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")

Number = Union[int, float, str, Decimal]


def round_half_up(value: Number, places: str = "0.01") -> Decimal:
    """Round to the given exponent using half-up (not banker's) rounding."""
    return Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def to_cents(value: Number) -> int:
    """
    Convert a dollar amount to integer cents.

    The value is rounded half-up to 2 decimals first, so 12.345 -> 1235.
    """
    return int(round_half_up(value) * 100)


def to_dollars(cents: int) -> float:
    """Convert integer cents to a float dollar amount (for the broker API)."""
    return float(Decimal(int(cents)) / 100)


def format_dollars(cents: int) -> str:
    """Format integer cents as a two-decimal dollar string, e.g. 1234 -> '12.34'."""
    return str((Decimal(int(cents)) / 100).quantize(CENT))
