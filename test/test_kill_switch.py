"""
Unit Tests for the Kill Switch

Test Coverage:
    - Daily loss limit arithmetic
    - First trigger wins
    - Liquidation outcome recording
    - Reset archives the previous day
"""

import sys
from pathlib import Path

import pytest

# Add project root
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from paragon.risk.kill_switch import KillSwitch, KillSwitchTrigger, loss_limit_breached

# ==================== Fixtures ====================


@pytest.fixture
def kill_switch():
    """Armed kill switch"""
    return KillSwitch()


# ==================== Loss limit ====================


class TestLossLimit:
    """Realized loss against 5% of $1,000.00"""

    def test_loss_beyond_limit(self):
        assert loss_limit_breached(-5_200, 100_000, 0.05) is True

    def test_loss_at_limit(self):
        assert loss_limit_breached(-5_000, 100_000, 0.05) is False

    def test_small_loss(self):
        assert loss_limit_breached(-4_999, 100_000, 0.05) is False

    def test_gain(self):
        assert loss_limit_breached(20_000, 100_000, 0.05) is False

    def test_fraction_is_exact(self):
        # 0.07 * 100 is 7.000000000000001 in binary floating point
        assert loss_limit_breached(-7, 100, 0.07) is False
        assert loss_limit_breached(-8, 100, 0.07) is True


# ==================== Kill switch ====================


class TestKillSwitch:
    """Tests for activation and reset"""

    def test_starts_inactive(self, kill_switch):
        assert not kill_switch.is_active
        assert "INACTIVE" in kill_switch.get_status()

    def test_check_and_trigger(self, kill_switch):
        assert kill_switch.check_and_trigger(-5_200, 100_000, 0.05) is True

        assert kill_switch.is_active
        assert kill_switch.state.trigger_type == "DAILY_LOSS"
        assert kill_switch.state.gain_at_trigger == -5_200

    def test_check_without_breach(self, kill_switch):
        assert kill_switch.check_and_trigger(-100, 100_000, 0.05) is False
        assert not kill_switch.is_active

    def test_first_trigger_wins(self, kill_switch):
        kill_switch.activate(KillSwitchTrigger.SESSION_END, "10 minutes to close")
        kill_switch.activate(KillSwitchTrigger.DAILY_LOSS, "loss")

        assert kill_switch.state.trigger_type == "SESSION_END"
        assert kill_switch.check_and_trigger(0, 100_000, 0.05) is True

    def test_record_actions(self, kill_switch):
        kill_switch.activate(KillSwitchTrigger.MANUAL, "operator")
        kill_switch.record_actions(orders_cancelled=2, positions_closed=3)

        assert kill_switch.state.orders_cancelled == 2
        assert kill_switch.state.positions_closed == 3
        assert "ACTIVE" in kill_switch.get_status()

    def test_reset_archives(self, kill_switch):
        kill_switch.activate(KillSwitchTrigger.INVARIANT, "ledger")
        kill_switch.reset()

        assert not kill_switch.is_active
        assert len(kill_switch.history) == 1
        assert kill_switch.history[0].trigger_type == "INVARIANT"

    def test_reset_when_inactive_keeps_no_history(self, kill_switch):
        kill_switch.reset()
        assert kill_switch.history == []
