# Paragon Core Module
# ===================
# Central configuration, constants and logging

from .config import Config, BrokerConfig, TradingConfig, IndicatorConfig
from .constants import (
    MarketHours,
    SessionTiming,
    IndicatorParams,
    DivorceParams,
    Limits,
    Timeouts,
)
from .logging_config import setup_logging, get_logger, trade_logger

__all__ = [
    "Config",
    "BrokerConfig",
    "TradingConfig",
    "IndicatorConfig",
    "MarketHours",
    "SessionTiming",
    "IndicatorParams",
    "DivorceParams",
    "Limits",
    "Timeouts",
    "setup_logging",
    "get_logger",
    "trade_logger",
]
