"""
Trading-Day State
=================
Everything the engine knows about the current session. Reset at open and
again at close.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional


class SessionPhase(Enum):
    """Lifecycle of one trading day"""
    AWAITING_SESSION_DATE = "AWAITING_SESSION_DATE"
    AWAITING_OPEN = "AWAITING_OPEN"
    TRADING_NORMAL = "TRADING_NORMAL"
    TRADING_HOLD = "TRADING_HOLD"
    LIQUIDATING = "LIQUIDATING"
    CLOSED = "CLOSED"


class ReadinessCondition(Enum):
    """Which decision branches a tick may take"""
    NORMAL = "NORMAL"                       # Buy and sell
    HOLD_NO_NEW_BUYS = "HOLD_NO_NEW_BUYS"   # Sell only
    LIQUIDATING = "LIQUIDATING"             # Selling everything
    HALTED = "HALTED"                       # Nothing

    @property
    def allows_buy(self) -> bool:
        return self is ReadinessCondition.NORMAL

    @property
    def allows_sell(self) -> bool:
        return self in (ReadinessCondition.NORMAL, ReadinessCondition.HOLD_NO_NEW_BUYS)


@dataclass
class SessionState:
    """Mutable state of one trading day (money in cents)"""
    session_date: Optional[date] = None
    opens_at: Optional[datetime] = None
    closes_at: Optional[datetime] = None

    active_symbols: List[str] = field(default_factory=list)
    total_account_value: int = 0
    trading_capital_remaining: int = 0
    net_realized_gain: int = 0
    readiness: ReadinessCondition = ReadinessCondition.NORMAL

    price_history: Dict[str, List[int]] = field(default_factory=dict)
    divorce_buffers: Dict[str, Optional[int]] = field(default_factory=dict)
    tick_seq: Dict[str, int] = field(default_factory=dict)

    def add_symbol(self, symbol: str, divorce_buffer: Optional[int] = None) -> bool:
        """
        Start tracking a symbol. Returns False if it was already active.

        The divorce buffer stays None until a quote with a daily low and high
        has been seen.
        """
        if symbol in self.price_history:
            return False
        self.active_symbols.append(symbol)
        self.price_history[symbol] = []
        self.divorce_buffers[symbol] = divorce_buffer
        self.tick_seq[symbol] = 0
        return True

    def next_seq(self, symbol: str) -> int:
        seq = self.tick_seq.get(symbol, 0)
        self.tick_seq[symbol] = seq + 1
        return seq

    def reset(self) -> None:
        """Forget the day"""
        self.session_date = None
        self.opens_at = None
        self.closes_at = None
        self.active_symbols = []
        self.total_account_value = 0
        self.trading_capital_remaining = 0
        self.net_realized_gain = 0
        self.readiness = ReadinessCondition.NORMAL
        self.price_history = {}
        self.divorce_buffers = {}
        self.tick_seq = {}
