"""
Unit Tests for the Job Scheduler and Configuration

Test Coverage:
    - Daily, one-shot and interval jobs on the asyncio loop
    - Job removal is idempotent
    - One-shot jobs run and disappear
    - Environment-driven configuration and validation
"""

import asyncio
import sys
from datetime import datetime, time, timedelta
from pathlib import Path

import pytest

# Add project root
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from paragon.core.config import Config, TradingConfig
from paragon.jobs.scheduler import JobScheduler
from paragon.utils.time_utils import EASTERN, before_close, market_datetime, minutes_until, parse_clock

# ==================== Fixtures ====================


@pytest.fixture
def clean_env(monkeypatch):
    """Environment without any Paragon settings"""
    for name in (
        "TRADIER_ACCOUNT", "TRADIER_TOKEN", "TRADIER_ENDPOINT", "TICK_INTERVAL_SECONDS",
        "TRADE_FRACTION", "CAPITAL_FRACTION", "MAX_LOSS_FRACTION", "MIN_QUOTES",
        "HOLD_LEAD_MINUTES", "LIQUIDATION_LEAD_MINUTES", "WAKEUP_TIME", "PARAGON_DATA_DIR",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ==================== Scheduler ====================


class TestJobScheduler:
    """Tests for APScheduler wiring"""

    def test_register_and_remove_jobs(self):
        async def noop():
            return None

        async def scenario():
            scheduler = JobScheduler()
            scheduler.add_daily_job("daily_check", time(3, 0), noop, name="Daily Check")
            scheduler.add_interval_job("tick", 60, noop, name="Trading tick")
            scheduler.start()

            registered = (scheduler.has_job("daily_check"), scheduler.has_job("tick"))
            status = scheduler.get_status()

            scheduler.remove_job("tick")
            scheduler.remove_job("tick")
            after = scheduler.has_job("tick")
            next_run = scheduler.get_next_run_time("daily_check")

            scheduler.stop()
            return registered, status, after, next_run, scheduler.is_running

        registered, status, after, next_run, running = asyncio.run(scenario())
        assert registered == (True, True)
        assert "Daily at 03:00" in status
        assert "Every 60s" in status
        assert after is False
        assert next_run.hour == 3 and next_run.minute == 0
        assert running is False

    def test_one_shot_job_runs_once(self):
        calls = []

        async def job():
            calls.append(datetime.now())

        async def scenario():
            scheduler = JobScheduler()
            scheduler.start()
            run_at = datetime.now(EASTERN) + timedelta(milliseconds=200)
            scheduler.add_date_job("market_open", run_at, job, name="Market open")
            await asyncio.sleep(1.0)
            remaining = scheduler.has_job("market_open")
            scheduler.stop()
            return remaining

        remaining = asyncio.run(scenario())
        assert len(calls) == 1
        assert remaining is False

    def test_replacing_a_job(self):
        async def first():
            return 1

        async def second():
            return 2

        async def scenario():
            scheduler = JobScheduler()
            scheduler.add_interval_job("tick", 60, first)
            scheduler.add_interval_job("tick", 30, second)
            scheduler.start()
            status = scheduler.get_status()
            scheduler.stop()
            return status

        status = asyncio.run(scenario())
        assert "Every 30s" in status
        assert "Jobs: 1" in status


# ==================== Time helpers ====================


class TestTimeUtils:
    """Tests for market-time arithmetic"""

    def test_market_datetime_is_eastern(self):
        dt = market_datetime(datetime(2024, 7, 1).date(), time(9, 30))
        assert dt.utcoffset() == timedelta(hours=-4)

    def test_before_close(self):
        close = market_datetime(datetime(2024, 3, 15).date(), time(16, 0))
        assert before_close(close, 10) == market_datetime(close.date(), time(15, 50))

    def test_minutes_until(self):
        close = market_datetime(datetime(2024, 3, 15).date(), time(16, 0))
        now = market_datetime(close.date(), time(15, 30))
        assert minutes_until(close, now) == 30
        assert minutes_until(now, close) == -30

    def test_parse_clock(self):
        assert parse_clock(" 09:30 ") == time(9, 30)


# ==================== Configuration ====================


class TestConfig:
    """Tests for .env driven configuration"""

    def test_defaults(self, clean_env):
        trading = TradingConfig.from_env()

        assert trading.tick_interval_seconds == 60
        assert trading.trade_fraction == 0.05
        assert trading.capital_fraction == 0.25
        assert trading.hold_lead_minutes == 30
        assert trading.liquidation_lead_minutes == 10
        assert trading.wakeup_time == time(3, 0)
        assert trading.indicators.min_quotes == 80

    def test_environment_overrides(self, clean_env):
        clean_env.setenv("TICK_INTERVAL_SECONDS", "30")
        clean_env.setenv("TRADE_FRACTION", "0.02")
        clean_env.setenv("MIN_QUOTES", "40")
        clean_env.setenv("WAKEUP_TIME", "04:15")

        trading = TradingConfig.from_env()
        assert trading.tick_interval_seconds == 30
        assert trading.trade_fraction == 0.02
        assert trading.indicators.min_quotes == 40
        assert trading.wakeup_time == time(4, 15)

    def test_load_creates_directories(self, clean_env, tmp_path):
        config = Config.load(str(tmp_path / "data"))

        assert config.logs_dir.is_dir()
        assert config.exports_dir.is_dir()
        assert config.database_path == tmp_path / "data" / "paragon.db"

    def test_missing_credentials(self, clean_env, tmp_path):
        valid, issues = Config.load(str(tmp_path)).validate()

        assert not valid
        assert "TRADIER_ACCOUNT not set" in issues
        assert "TRADIER_TOKEN not set" in issues

    def test_valid_config(self, clean_env, tmp_path):
        clean_env.setenv("TRADIER_ACCOUNT", "VA000001")
        clean_env.setenv("TRADIER_TOKEN", "secret")

        config = Config.load(str(tmp_path))
        assert config.validate() == (True, [])
        assert "PARAGON CONFIGURATION" in config.get_summary()

    def test_equal_fractions_are_rejected(self, clean_env, tmp_path):
        clean_env.setenv("TRADE_FRACTION", "0.25")

        valid, issues = Config.load(str(tmp_path)).validate()
        assert not valid
        assert any("CAPITAL_FRACTION" in issue for issue in issues)

    def test_lead_times_are_checked(self, clean_env, tmp_path):
        clean_env.setenv("LIQUIDATION_LEAD_MINUTES", "30")

        valid, issues = Config.load(str(tmp_path)).validate()
        assert any("LIQUIDATION_LEAD_MINUTES" in issue for issue in issues)
