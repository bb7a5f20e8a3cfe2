"""
Trading Constants
=================
All magic numbers and configuration defaults in one place.
"""

from dataclasses import dataclass
from datetime import time
from typing import Final

# ============================================================================
# DEFAULT CAPITAL AND RISK SETTINGS
# ============================================================================
DEFAULT_TRADE_FRACTION: Final[float] = 0.05     # Per-order funds as fraction of equity
DEFAULT_CAPITAL_FRACTION: Final[float] = 0.25   # Day's trading budget as fraction of equity
DEFAULT_MAX_LOSS_FRACTION: Final[float] = 0.05  # Liquidate at 5% realized loss


@dataclass(frozen=True)
class MarketHours:
    """US equity market hours (Eastern), used when the calendar omits them"""

    MARKET_OPEN: time = time(9, 30)
    MARKET_CLOSE: time = time(16, 0)

    # Daily wake-up, when today's calendar is fetched
    WAKEUP: time = time(3, 0)


@dataclass(frozen=True)
class SessionTiming:
    """Session loop timing"""

    TICK_INTERVAL_SECONDS: int = 60
    HOLD_LEAD_MINUTES: int = 30         # No new buys from T-30min
    LIQUIDATION_LEAD_MINUTES: int = 10  # Sell everything at T-10min


@dataclass(frozen=True)
class IndicatorParams:
    """Default indicator parameters"""

    # Quotes required before indicators are computed
    MIN_QUOTES: int = 80

    # MACD
    MACD_FAST: int = 12
    MACD_SLOW: int = 26
    MACD_SIGNAL: int = 9

    # Bollinger Bands
    BB_PERIOD: int = 12
    BB_STD_DEV: float = 2.0

    # RSI
    RSI_PERIOD: int = 7
    RSI_CUTOFF: float = 70.0

    # Rounding applied to every indicator value
    PRECISION: int = 4


@dataclass(frozen=True)
class DivorceParams:
    """Trailing-stop ("divorce") buffer parameters"""

    ADR_MULTIPLIER: float = 0.0485
    OFFSET: float = 0.01


@dataclass(frozen=True)
class Limits:
    """Order retry limits"""

    MAX_SELL_RETRIES: int = 3
    SELL_RETRY_DELAY_SECONDS: float = 1.0


@dataclass(frozen=True)
class Timeouts:
    """API timeouts in seconds"""

    API_REQUEST: int = 30


# ============================================================================
# BROKER
# ============================================================================

TRADIER_ENDPOINT: Final[str] = "https://api.tradier.com/v1"
TRADIER_SANDBOX_ENDPOINT: Final[str] = "https://sandbox.tradier.com/v1"
MARKET_TIMEZONE: Final[str] = "US/Eastern"


# ============================================================================
# FILE AND PATH CONSTANTS
# ============================================================================

# Relative to project root
DATA_DIR: Final[str] = "paragon_data"
DATABASE_FILE: Final[str] = "paragon.db"
LOGS_DIR: Final[str] = "logs"
EXPORTS_DIR: Final[str] = "exports"
