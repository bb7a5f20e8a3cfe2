"""
Sell Decision Engine
====================
Trailing stop ("divorce") logic. Each open position carries a lower bound that
only ever rises; a quote at or under it sells the position.

The divorce buffer is the fixed distance kept between the day's best quote and
the bound:

    buffer = ADR_MULTIPLIER * ADR + OFFSET     (rounded half-up to cents)
    ADR    = ceil((high - low) / 2)            (cents)
"""

import math
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Union

from ..core.constants import DivorceParams
from ..utils.money import round_half_up

if TYPE_CHECKING:
    from ..session.ledger import Position


class SellSignal(Enum):
    """Returned by determine_sell when the position must be sold"""
    SELL = "SELL"


class ExitReason(Enum):
    """Reason a position was sold"""
    TRAILING_STOP = "TRAILING_STOP"
    TIME_EXIT = "TIME_EXIT"       # Liquidation before close
    RISK_LIMIT = "RISK_LIMIT"     # Daily loss limit breached
    SHUTDOWN = "SHUTDOWN"
    MANUAL = "MANUAL"


def average_daily_range(low: int, high: int) -> int:
    """Half the day's range in cents, rounded up. Zero for an inverted range."""
    if high <= low:
        return 0
    return math.ceil((high - low) / 2)


def compute_divorce_buffer(
    daily_low: int,
    daily_high: int,
    adr_multiplier: float = DivorceParams.ADR_MULTIPLIER,
    offset: float = DivorceParams.OFFSET,
) -> int:
    """
    Trailing distance for a symbol, in cents.

    >>> compute_divorce_buffer(308, 325)
    1
    """
    adr_dollars = Decimal(average_daily_range(daily_low, daily_high)) / 100
    buffer = Decimal(str(adr_multiplier)) * adr_dollars + Decimal(str(offset))
    return int(round_half_up(buffer) * 100)


def determine_sell(quote: int, position: "Position") -> Union[SellSignal, int]:
    """
    Evaluate the trailing stop for one quote.

    Returns:
        SellSignal.SELL when ``quote`` is at or under the lower bound,
        otherwise the (possibly raised) lower bound in cents
    """
    if quote <= position.lower_bound:
        return SellSignal.SELL

    return max(quote - position.divorce_buffer, position.lower_bound)
