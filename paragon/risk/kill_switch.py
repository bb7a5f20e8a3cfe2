"""
Kill Switch
===========
Records why trading stopped for the day, and the daily loss limit check.
"""

import logging
from datetime import datetime
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import List, Optional
from enum import Enum

from ..utils.money import format_dollars

logger = logging.getLogger("paragon.risk.kill_switch")


class KillSwitchTrigger(Enum):
    """Reasons for kill switch activation"""
    DAILY_LOSS = "DAILY_LOSS"      # Realized loss limit hit
    SESSION_END = "SESSION_END"    # Liquidation before close
    INVARIANT = "INVARIANT"        # Ledger corruption
    SHUTDOWN = "SHUTDOWN"          # Process terminating
    MANUAL = "MANUAL"              # Operator request


@dataclass
class KillSwitchState:
    """Kill switch state"""
    is_active: bool = False
    triggered_at: Optional[str] = None
    trigger_reason: Optional[str] = None
    trigger_type: Optional[str] = None
    positions_closed: int = 0
    orders_cancelled: int = 0
    gain_at_trigger: int = 0  # cents


def loss_limit_breached(net_realized_gain: int, total_account_value: int, max_loss_fraction: float) -> bool:
    """
    True when the day's realized loss is beyond the allowed fraction of equity.

    Args:
        net_realized_gain: Signed realized gain for the day (cents)
        total_account_value: Equity at open (cents)
        max_loss_fraction: e.g. 0.05 for 5%
    """
    threshold = -(Decimal(int(total_account_value)) * Decimal(str(max_loss_fraction)))
    return Decimal(int(net_realized_gain)) < threshold


class KillSwitch:
    """
    Halt record for the trading day.

    Activation is idempotent: the first trigger wins until reset() is called
    by the next opening routine. Previous activations are kept in ``history``.

    Usage:
        kill_switch = KillSwitch()
        if kill_switch.check_and_trigger(state.net_realized_gain, state.total_account_value, 0.05):
            ...liquidate...
            kill_switch.record_actions(orders_cancelled=1, positions_closed=2)
    """

    def __init__(self):
        self._state = KillSwitchState()
        self.history: List[KillSwitchState] = []

    @property
    def is_active(self) -> bool:
        return self._state.is_active

    @property
    def state(self) -> KillSwitchState:
        return self._state

    def activate(self, trigger: KillSwitchTrigger, reason: str, gain: int = 0) -> KillSwitchState:
        """
        Activate the kill switch.

        Args:
            trigger: What triggered the kill switch
            reason: Human-readable reason
            gain: Net realized gain at time of trigger (cents)

        Returns:
            Updated state
        """
        if self._state.is_active:
            return self._state  # Already active

        self._state.is_active = True
        self._state.triggered_at = datetime.now().isoformat()
        self._state.trigger_type = trigger.value
        self._state.trigger_reason = reason
        self._state.gain_at_trigger = gain

        log = logger.critical if trigger in (KillSwitchTrigger.DAILY_LOSS, KillSwitchTrigger.INVARIANT) else logger.warning
        log("KILL SWITCH: %s | %s | gain=%s", trigger.value, reason, format_dollars(gain))
        return self._state

    def record_actions(self, orders_cancelled: int = 0, positions_closed: int = 0) -> None:
        """Attach the liquidation outcome to the active trigger"""
        self._state.orders_cancelled += orders_cancelled
        self._state.positions_closed += positions_closed

    def check_and_trigger(self, net_realized_gain: int, total_account_value: int, max_loss_fraction: float) -> bool:
        """
        Activate on a breached loss limit.

        Returns:
            True if the switch is (now) active
        """
        if self._state.is_active:
            return True

        if loss_limit_breached(net_realized_gain, total_account_value, max_loss_fraction):
            self.activate(
                trigger=KillSwitchTrigger.DAILY_LOSS,
                reason=(
                    f"Realized loss {format_dollars(-net_realized_gain)} exceeds "
                    f"{max_loss_fraction*100:.1f}% of {format_dollars(total_account_value)}"
                ),
                gain=net_realized_gain,
            )
            return True

        return False

    def reset(self) -> None:
        """Re-arm for a new trading day"""
        if self._state.triggered_at:
            self.history.append(KillSwitchState(**asdict(self._state)))
        self._state = KillSwitchState()

    def get_status(self) -> str:
        """Get human-readable status"""
        s = self._state

        if not s.is_active:
            return """
╔══════════════════════════════════════════════════════════════╗
║                    KILL SWITCH STATUS                        ║
╠══════════════════════════════════════════════════════════════╣
║  Status: ✅ INACTIVE (Armed and ready)                       ║
╚══════════════════════════════════════════════════════════════╝
"""

        return f"""
╔══════════════════════════════════════════════════════════════╗
║                    KILL SWITCH STATUS                        ║
╠══════════════════════════════════════════════════════════════╣
║  Status: 🚨 ACTIVE - TRADING HALTED FOR THE DAY              ║
╠══════════════════════════════════════════════════════════════╣
║  Triggered At:    {s.triggered_at or 'N/A':<43}║
║  Trigger Type:    {s.trigger_type or 'N/A':<43}║
║  Reason:          {(s.trigger_reason or 'N/A')[:43]:<43}║
╠══════════════════════════════════════════════════════════════╣
║  Actions Taken:                                              ║
║    Positions Closed: {s.positions_closed:>6}                                  ║
║    Orders Cancelled: {s.orders_cancelled:>6}                                  ║
║    Gain at Trigger:  ${format_dollars(s.gain_at_trigger):>10}                           ║
╚══════════════════════════════════════════════════════════════╝
"""
