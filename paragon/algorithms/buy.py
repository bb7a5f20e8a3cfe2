"""
Buy Decision Engine
===================
"""

from typing import Optional

from ..core.constants import IndicatorParams
from ..utils.indicators import IndicatorSnapshot


def determine_buy(
    quote: int,
    indicators: Optional[IndicatorSnapshot],
    rsi_cutoff: float = IndicatorParams.RSI_CUTOFF,
) -> bool:
    """
    Momentum entry rule.

    Fires when MACD is positive and above its signal line, the quote is still
    under the upper Bollinger band and RSI has reached the cutoff.

    Args:
        quote: Current price in cents
        indicators: Latest snapshot (dollar values), or None
        rsi_cutoff: Minimum RSI

    Returns:
        True to buy
    """
    if indicators is None:
        return False

    return (
        indicators.macd > 0
        and indicators.macd > indicators.signal
        and indicators.bband_high > quote / 100
        and indicators.rsi >= rsi_cutoff
    )
