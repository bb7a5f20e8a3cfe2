# Paragon Utilities
# =================
# Money conversion, market clock and technical indicators

from .money import to_cents, to_dollars, format_dollars, round_half_up
from .time_utils import EASTERN, get_market_now, market_datetime, minutes_until
from .indicators import IndicatorSnapshot, compute_indicators

__all__ = [
    "to_cents",
    "to_dollars",
    "format_dollars",
    "round_half_up",
    "EASTERN",
    "get_market_now",
    "market_datetime",
    "minutes_until",
    "IndicatorSnapshot",
    "compute_indicators",
]
