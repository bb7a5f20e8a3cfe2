"""
Central Configuration
=====================
Load all configuration from environment variables and .env file.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from datetime import time
from typing import Optional
from dotenv import load_dotenv

from .constants import (
    DEFAULT_TRADE_FRACTION,
    DEFAULT_CAPITAL_FRACTION,
    DEFAULT_MAX_LOSS_FRACTION,
    DATA_DIR,
    DATABASE_FILE,
    LOGS_DIR,
    EXPORTS_DIR,
    TRADIER_ENDPOINT,
    DivorceParams,
    IndicatorParams,
    Limits,
    MarketHours,
    SessionTiming,
    Timeouts,
)


# Load .env file from project root
PROJECT_ROOT = Path(__file__).parent.parent.parent
load_dotenv(PROJECT_ROOT / ".env")


def _parse_time(value: str) -> time:
    hours, minutes = value.strip().split(":")
    return time(int(hours), int(minutes))


@dataclass
class BrokerConfig:
    """Tradier API configuration"""
    account: str = ""
    token: str = ""
    endpoint: str = TRADIER_ENDPOINT
    timeout: int = Timeouts.API_REQUEST

    @classmethod
    def from_env(cls) -> "BrokerConfig":
        return cls(
            account=os.getenv("TRADIER_ACCOUNT", ""),
            token=os.getenv("TRADIER_TOKEN", ""),
            endpoint=os.getenv("TRADIER_ENDPOINT", TRADIER_ENDPOINT),
            timeout=int(os.getenv("BROKER_TIMEOUT", str(Timeouts.API_REQUEST))),
        )

    def validate(self) -> tuple[bool, list[str]]:
        """Check if required credentials are present"""
        issues = []
        if not self.account:
            issues.append("TRADIER_ACCOUNT not set")
        if not self.token:
            issues.append("TRADIER_TOKEN not set")
        return len(issues) == 0, issues


@dataclass(frozen=True)
class IndicatorConfig:
    """Indicator periods and the minimum history before they are computed"""
    min_quotes: int = IndicatorParams.MIN_QUOTES
    macd_fast: int = IndicatorParams.MACD_FAST
    macd_slow: int = IndicatorParams.MACD_SLOW
    macd_signal: int = IndicatorParams.MACD_SIGNAL
    bband_period: int = IndicatorParams.BB_PERIOD
    bband_stddev: float = IndicatorParams.BB_STD_DEV
    rsi_period: int = IndicatorParams.RSI_PERIOD
    precision: int = IndicatorParams.PRECISION

    @classmethod
    def from_env(cls) -> "IndicatorConfig":
        return cls(
            min_quotes=int(os.getenv("MIN_QUOTES", str(IndicatorParams.MIN_QUOTES))),
            macd_fast=int(os.getenv("MACD_FAST", str(IndicatorParams.MACD_FAST))),
            macd_slow=int(os.getenv("MACD_SLOW", str(IndicatorParams.MACD_SLOW))),
            macd_signal=int(os.getenv("MACD_SIGNAL", str(IndicatorParams.MACD_SIGNAL))),
            bband_period=int(os.getenv("BBAND_PERIOD", str(IndicatorParams.BB_PERIOD))),
            bband_stddev=float(os.getenv("BBAND_STDDEV", str(IndicatorParams.BB_STD_DEV))),
            rsi_period=int(os.getenv("RSI_PERIOD", str(IndicatorParams.RSI_PERIOD))),
        )


@dataclass
class TradingConfig:
    """Trading parameters configuration"""
    tick_interval_seconds: int = SessionTiming.TICK_INTERVAL_SECONDS
    rsi_cutoff: float = IndicatorParams.RSI_CUTOFF
    trade_fraction: float = DEFAULT_TRADE_FRACTION
    capital_fraction: float = DEFAULT_CAPITAL_FRACTION
    max_loss_fraction: float = DEFAULT_MAX_LOSS_FRACTION

    # Divorce algorithm
    adr_multiplier: float = DivorceParams.ADR_MULTIPLIER
    divorce_offset: float = DivorceParams.OFFSET

    # Session end
    hold_lead_minutes: int = SessionTiming.HOLD_LEAD_MINUTES
    liquidation_lead_minutes: int = SessionTiming.LIQUIDATION_LEAD_MINUTES
    sell_retries: int = Limits.MAX_SELL_RETRIES
    sell_retry_delay: float = Limits.SELL_RETRY_DELAY_SECONDS
    wakeup_time: time = MarketHours.WAKEUP

    indicators: IndicatorConfig = field(default_factory=IndicatorConfig)

    @classmethod
    def from_env(cls) -> "TradingConfig":
        return cls(
            tick_interval_seconds=int(os.getenv("TICK_INTERVAL_SECONDS", str(SessionTiming.TICK_INTERVAL_SECONDS))),
            rsi_cutoff=float(os.getenv("RSI_CUTOFF", str(IndicatorParams.RSI_CUTOFF))),
            trade_fraction=float(os.getenv("TRADE_FRACTION", str(DEFAULT_TRADE_FRACTION))),
            capital_fraction=float(os.getenv("CAPITAL_FRACTION", str(DEFAULT_CAPITAL_FRACTION))),
            max_loss_fraction=float(os.getenv("MAX_LOSS_FRACTION", str(DEFAULT_MAX_LOSS_FRACTION))),
            adr_multiplier=float(os.getenv("ADR_MULTIPLIER", str(DivorceParams.ADR_MULTIPLIER))),
            divorce_offset=float(os.getenv("DIVORCE_OFFSET", str(DivorceParams.OFFSET))),
            hold_lead_minutes=int(os.getenv("HOLD_LEAD_MINUTES", str(SessionTiming.HOLD_LEAD_MINUTES))),
            liquidation_lead_minutes=int(os.getenv("LIQUIDATION_LEAD_MINUTES", str(SessionTiming.LIQUIDATION_LEAD_MINUTES))),
            sell_retries=int(os.getenv("SELL_RETRIES", str(Limits.MAX_SELL_RETRIES))),
            sell_retry_delay=float(os.getenv("SELL_RETRY_DELAY", str(Limits.SELL_RETRY_DELAY_SECONDS))),
            wakeup_time=_parse_time(os.getenv("WAKEUP_TIME", MarketHours.WAKEUP.strftime("%H:%M"))),
            indicators=IndicatorConfig.from_env(),
        )


@dataclass
class Config:
    """
    Central configuration object.

    Usage:
        config = Config.load()
        print(config.trading.tick_interval_seconds)
    """
    broker: BrokerConfig = field(default_factory=BrokerConfig)
    trading: TradingConfig = field(default_factory=TradingConfig)

    # Paths
    project_root: Path = PROJECT_ROOT
    data_dir: Path = field(default_factory=lambda: PROJECT_ROOT / DATA_DIR)
    logs_dir: Path = field(default_factory=lambda: PROJECT_ROOT / DATA_DIR / LOGS_DIR)
    exports_dir: Path = field(default_factory=lambda: PROJECT_ROOT / DATA_DIR / EXPORTS_DIR)

    @property
    def database_path(self) -> Path:
        return self.data_dir / DATABASE_FILE

    @classmethod
    def load(cls, data_dir: Optional[str] = None) -> "Config":
        """Load configuration from environment"""
        data_dir = data_dir or os.getenv("PARAGON_DATA_DIR")
        data_path = Path(data_dir) if data_dir else PROJECT_ROOT / DATA_DIR

        config = cls(
            broker=BrokerConfig.from_env(),
            trading=TradingConfig.from_env(),
            data_dir=data_path,
            logs_dir=data_path / LOGS_DIR,
            exports_dir=data_path / EXPORTS_DIR,
        )

        # Ensure directories exist
        config.data_dir.mkdir(parents=True, exist_ok=True)
        config.logs_dir.mkdir(parents=True, exist_ok=True)
        config.exports_dir.mkdir(parents=True, exist_ok=True)

        return config

    def validate(self) -> tuple[bool, list[str]]:
        """Validate all configuration"""
        issues = []

        broker_valid, broker_issues = self.broker.validate()
        if not broker_valid:
            issues.extend(broker_issues)

        trading = self.trading
        if trading.tick_interval_seconds <= 0:
            issues.append("TICK_INTERVAL_SECONDS must be positive")

        if not (0 < trading.trade_fraction <= 1):
            issues.append("TRADE_FRACTION should be between 0 and 1")

        if not (0 < trading.capital_fraction <= 1):
            issues.append("CAPITAL_FRACTION should be between 0 and 1")

        if trading.trade_fraction >= trading.capital_fraction:
            issues.append("TRADE_FRACTION >= CAPITAL_FRACTION: no order will ever be sized")

        if not (0 < trading.max_loss_fraction <= 1):
            issues.append("MAX_LOSS_FRACTION should be between 0 and 1")

        if trading.liquidation_lead_minutes >= trading.hold_lead_minutes:
            issues.append("LIQUIDATION_LEAD_MINUTES should be shorter than HOLD_LEAD_MINUTES")

        return len(issues) == 0, issues

    def get_summary(self) -> str:
        """Get configuration summary"""
        t = self.trading
        return f"""
╔══════════════════════════════════════════════════════════════╗
║                    PARAGON CONFIGURATION                     ║
╠══════════════════════════════════════════════════════════════╣
║  Tick Interval:   {t.tick_interval_seconds:>10}s                              ║
║  Min Quotes:      {t.indicators.min_quotes:>10}                               ║
║  RSI Cutoff:      {t.rsi_cutoff:>10.1f}                               ║
║  Trade Fraction:  {t.trade_fraction*100:>10.2f}%                              ║
║  Day Budget:      {t.capital_fraction*100:>10.2f}%                              ║
║  Max Loss:        {t.max_loss_fraction*100:>10.2f}%                              ║
╠══════════════════════════════════════════════════════════════╣
║  Endpoint:        {self.broker.endpoint:<43}║
║  Account:         {'✅ Configured' if self.broker.account else '❌ Missing':<42}║
║  Token:           {'✅ Configured' if self.broker.token else '❌ Missing':<42}║
║  Database:        {str(self.database_path)[-42:]:<43}║
╚══════════════════════════════════════════════════════════════╝
"""
