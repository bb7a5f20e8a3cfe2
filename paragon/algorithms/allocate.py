"""
Allocation Engine
=================
Day budget and per-order share sizing, in integer cents.
"""

import math
from decimal import Decimal


def _fraction_of(total_cents: int, fraction: float) -> int:
    return math.floor(Decimal(int(total_cents)) * Decimal(str(fraction)))


def compute_trading_capital(total_account_value: int, capital_fraction: float) -> int:
    """
    Today's trading budget.

    Args:
        total_account_value: Total equity in cents
        capital_fraction: Fraction of equity available for the day

    Returns:
        Budget in cents, floored
    """
    return max(_fraction_of(total_account_value, capital_fraction), 0)


def compute_share_count(
    total_account_value: int,
    trading_capital_remaining: int,
    quote: int,
    trade_fraction: float,
) -> int:
    """
    Number of shares to buy at ``quote``.

    Order funds are ``trade_fraction`` of total equity. When those funds are
    not strictly below what is left of the day's budget the budget is treated
    as exhausted and no shares are bought.

    Args:
        total_account_value: Total equity in cents
        trading_capital_remaining: Unspent day budget in cents
        quote: Current price in cents
        trade_fraction: Fraction of equity committed per order

    Returns:
        Share count, never negative
    """
    if quote <= 0:
        return 0

    funds = _fraction_of(total_account_value, trade_fraction)
    if funds >= trading_capital_remaining:
        return 0

    return max(funds // quote, 0)
