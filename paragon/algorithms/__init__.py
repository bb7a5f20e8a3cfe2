# Paragon Decision Algorithms
# ===========================
# Pure functions: allocation, buy rule, trailing-stop sell rule

from .allocate import compute_trading_capital, compute_share_count
from .buy import determine_buy
from .sell import (
    SellSignal,
    ExitReason,
    average_daily_range,
    compute_divorce_buffer,
    determine_sell,
)

__all__ = [
    "compute_trading_capital",
    "compute_share_count",
    "determine_buy",
    "SellSignal",
    "ExitReason",
    "average_daily_range",
    "compute_divorce_buffer",
    "determine_sell",
]
