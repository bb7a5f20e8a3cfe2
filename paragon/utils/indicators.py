"""
Technical Indicators
====================
MACD, Bollinger Bands and RSI over a session's quote history.

Quotes arrive as integer cents; indicator values are expressed in dollars and
rounded so the buy predicate is deterministic across runs.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..core.config import IndicatorConfig

logger = logging.getLogger("paragon.indicators")


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Latest indicator values for one symbol (dollars)"""
    macd: float
    signal: float
    bband_high: float
    bband_mid: float
    bband_low: float
    rsi: float


def calculate_macd(
    close: pd.Series,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> Tuple[pd.Series, pd.Series, pd.Series]:
    """
    Calculate MACD (Moving Average Convergence Divergence).

    Args:
        close: Close prices
        fast_period: Fast EMA period (default: 12)
        slow_period: Slow EMA period (default: 26)
        signal_period: Signal line period (default: 9)

    Returns:
        Tuple of (macd_line, signal_line, histogram)
    """
    close = pd.Series(close)

    fast_ema = close.ewm(span=fast_period, adjust=False).mean()
    slow_ema = close.ewm(span=slow_period, adjust=False).mean()

    macd_line = fast_ema - slow_ema
    signal_line = macd_line.ewm(span=signal_period, adjust=False).mean()
    histogram = macd_line - signal_line

    return macd_line, signal_line, histogram


def calculate_bollinger_bands(
    close: pd.Series,
    period: int = 12,
    std_dev: float = 2.0,
) -> Tuple[pd.Series, pd.Series, pd.Series]:
    """
    Calculate Bollinger Bands.

    Uses the population standard deviation (ddof=0), as TA-Lib does.

    Args:
        close: Close prices
        period: SMA period (default: 12)
        std_dev: Standard deviation multiplier (default: 2.0)

    Returns:
        Tuple of (upper_band, middle_band, lower_band)
    """
    close = pd.Series(close)

    middle = close.rolling(window=period).mean()
    std = close.rolling(window=period).std(ddof=0)

    upper = middle + (std * std_dev)
    lower = middle - (std * std_dev)

    return upper, middle, lower


def calculate_rsi(
    close: pd.Series,
    period: int = 7,
) -> pd.Series:
    """
    Calculate Relative Strength Index (RSI).

    RSI = 100 - (100 / (1 + RS))
    RS = Average Gain / Average Loss

    A window with no losses reads 100.

    Args:
        close: Close prices
        period: Lookback period (default: 7)

    Returns:
        RSI series (0-100)
    """
    close = pd.Series(close)
    delta = close.diff()

    gain = delta.where(delta > 0, 0.0)
    loss = (-delta).where(delta < 0, 0.0)

    # Wilder's smoothing (same as EMA with alpha = 1/period)
    avg_gain = gain.ewm(alpha=1/period, min_periods=period, adjust=False).mean()
    avg_loss = loss.ewm(alpha=1/period, min_periods=period, adjust=False).mean()

    rs = avg_gain / avg_loss.replace(0, np.nan)
    rsi = 100 - (100 / (1 + rs))

    # No losses in the window
    rsi = rsi.mask((avg_loss == 0) & avg_gain.notna(), 100.0)

    return rsi


def compute_indicators(
    prices: Sequence[int],
    params: Optional[IndicatorConfig] = None,
) -> Optional[IndicatorSnapshot]:
    """
    Compute the latest indicator snapshot for a quote history.

    Args:
        prices: Quote history in integer cents, oldest first
        params: Indicator periods and minimum history length

    Returns:
        IndicatorSnapshot, or None while the history holds no more than
        ``params.min_quotes`` quotes or any value is undefined
    """
    params = params or IndicatorConfig()

    if len(prices) <= params.min_quotes:
        return None

    close = pd.Series(prices, dtype="float64") / 100

    macd_line, signal_line, _ = calculate_macd(
        close, params.macd_fast, params.macd_slow, params.macd_signal
    )
    upper, middle, lower = calculate_bollinger_bands(
        close, params.bband_period, params.bband_stddev
    )
    rsi = calculate_rsi(close, params.rsi_period)

    values = [
        macd_line.iloc[-1],
        signal_line.iloc[-1],
        upper.iloc[-1],
        middle.iloc[-1],
        lower.iloc[-1],
        rsi.iloc[-1],
    ]
    if any(v is None or math.isnan(v) for v in values):
        logger.debug("Indicators undefined for %d quotes", len(prices))
        return None

    return IndicatorSnapshot(*(round(float(v), params.precision) for v in values))
