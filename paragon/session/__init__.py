# Paragon Session Module
# ======================
# Trading-day state, ledger, liquidation and the session state machine

from .state import SessionPhase, ReadinessCondition, SessionState
from .ledger import Ledger, LedgerInvariantError, Position, PendingBuyOrder
from .liquidation import Liquidator, LiquidationResult
from .engine import SessionStateMachine, SessionStartError

__all__ = [
    "SessionPhase",
    "ReadinessCondition",
    "SessionState",
    "Ledger",
    "LedgerInvariantError",
    "Position",
    "PendingBuyOrder",
    "Liquidator",
    "LiquidationResult",
    "SessionStateMachine",
    "SessionStartError",
]
