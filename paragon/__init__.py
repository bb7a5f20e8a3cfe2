# Paragon Equities Trading Bot
# ============================
# An automated intraday momentum trader on the Tradier brokerage API

"""
PROJECT STRUCTURE
=================

paragon/
├── __init__.py              # Package initialization
├── main.py                  # Main entry point - wires and starts all services
│
├── core/                    # Core configuration and utilities
│   ├── config.py           # Central configuration (.env driven)
│   ├── constants.py        # Trading constants, market hours, indicator periods
│   └── logging_config.py   # Centralized logging setup, trade log
│
├── utils/                   # Utility functions
│   ├── money.py            # Integer-cent conversions
│   ├── indicators.py       # MACD, Bollinger Bands, RSI
│   └── time_utils.py       # US/Eastern time handling
│
├── algorithms/              # Pure decision rules
│   ├── allocate.py         # Day budget and share sizing
│   ├── buy.py              # Momentum entry rule
│   └── sell.py             # Trailing stop ("divorce") rule
│
├── session/                 # The trading day
│   ├── state.py            # Phases, readiness, per-day state
│   ├── ledger.py           # Positions and pending buys
│   ├── liquidation.py      # Cancel everything, sell everything
│   └── engine.py           # Session state machine and tick loop
│
├── broker/                  # Brokerage access
│   ├── base.py             # Abstract broker
│   ├── models.py           # Typed API responses
│   └── tradier.py          # Tradier REST client (httpx)
│
├── persistence/
│   └── store.py            # SQLite tick store
│
├── risk/
│   └── kill_switch.py      # Daily loss limit and halt record
│
├── jobs/
│   └── scheduler.py        # APScheduler setup for all jobs
│
└── reports/
    └── export.py           # CSV export of stored sessions


USAGE
=====

    # Start trading
    python -m paragon.main

    # Export stored sessions
    python -m paragon.main --export-csv
"""

__version__ = "1.0.0"

from .core.config import Config
from .session.engine import SessionStateMachine
from .broker.tradier import TradierClient
from .persistence.store import TickStore

__all__ = [
    "__version__",
    "Config",
    "SessionStateMachine",
    "TradierClient",
    "TickStore",
]
