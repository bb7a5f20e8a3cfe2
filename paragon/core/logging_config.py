"""
Logging Configuration
=====================
Centralized logging setup for Paragon.
"""

import os
import sys
import logging
from pathlib import Path
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

from .constants import DATA_DIR, LOGS_DIR


# Default log format
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-24s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Log levels for different components
COMPONENT_LOG_LEVELS = {
    "paragon": logging.INFO,
    "paragon.core": logging.INFO,
    "paragon.session": logging.INFO,
    "paragon.broker": logging.INFO,
    "paragon.jobs": logging.INFO,
    "paragon.persistence": logging.INFO,
    "paragon.indicators": logging.DEBUG,  # More verbose for data issues
}


class ColorFormatter(logging.Formatter):
    """Colored log formatter for console output"""

    COLORS = {
        logging.DEBUG: "\033[36m",     # Cyan
        logging.INFO: "\033[32m",      # Green
        logging.WARNING: "\033[33m",   # Yellow
        logging.ERROR: "\033[31m",     # Red
        logging.CRITICAL: "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelno, self.RESET)
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def _rotating_handler(path: Path, level: int, max_bytes: int, backup_count: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    return handler


def setup_logging(
    log_dir: Optional[Path] = None,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
) -> None:
    """
    Set up logging for Paragon.

    Args:
        log_dir: Directory for log files
        console_level: Logging level for console output
        file_level: Logging level for file output
        max_bytes: Max size of each log file
        backup_count: Number of backup files to keep
    """
    if log_dir is None:
        log_dir = Path(__file__).parent.parent.parent / DATA_DIR / LOGS_DIR

    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger("paragon")
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers will filter
    root_logger.handlers.clear()

    # Console handler with colors
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    if sys.platform != "win32" or os.getenv("TERM"):
        console_handler.setFormatter(ColorFormatter(LOG_FORMAT, LOG_DATE_FORMAT))
    else:
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    root_logger.addHandler(console_handler)

    today = datetime.now().strftime("%Y-%m-%d")

    # Main log file (rotating by size)
    root_logger.addHandler(
        _rotating_handler(log_dir / f"paragon_{today}.log", file_level, max_bytes, backup_count)
    )

    # Trade log (buys, fills, sells and liquidations only)
    trade_handler = _rotating_handler(log_dir / f"trades_{today}.log", logging.INFO, max_bytes, backup_count)
    trade_handler.addFilter(lambda record: "TRADE" in record.getMessage())
    trades = logging.getLogger("paragon.trades")
    trades.handlers.clear()
    trades.addHandler(trade_handler)

    # Error log
    root_logger.addHandler(
        _rotating_handler(log_dir / f"errors_{today}.log", logging.ERROR, max_bytes, backup_count)
    )

    for component, level in COMPONENT_LOG_LEVELS.items():
        logging.getLogger(component).setLevel(level)

    # Suppress noisy third-party loggers
    for noisy_logger in ["httpx", "httpcore", "apscheduler", "asyncio"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    root_logger.info("Logging initialized: %s", log_dir)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a component.

    Args:
        name: Component name (e.g., "session", "broker", "jobs")

    Returns:
        Logger instance with proper hierarchy
    """
    if not name.startswith("paragon"):
        name = f"paragon.{name}"
    return logging.getLogger(name)


def _gain_symbol(gain_cents: int) -> str:
    if gain_cents > 0:
        return "+"
    if gain_cents < 0:
        return "-"
    return "="


class TradeLogger:
    """
    Specialized logger for trade events.

    Logs to both main log and separate trade log file. Prices are integer cents.
    """

    def __init__(self):
        self.logger = get_logger("trades")

    def log_buy_placed(self, symbol: str, shares: int, price: int, order_id: str):
        """Log a limit buy placement"""
        self.logger.info(
            "TRADE:BUY_PLACED | %s | %d @ %.2f | order_id=%s",
            symbol, shares, price / 100, order_id
        )

    def log_buy_filled(self, symbol: str, shares: int, fill_price: int, lower_bound: int, order_id: str):
        """Log a confirmed buy fill"""
        self.logger.info(
            "TRADE:BUY_FILLED | %s | %d @ %.2f | floor=%.2f | order_id=%s",
            symbol, shares, fill_price / 100, lower_bound / 100, order_id
        )

    def log_buy_cancelled(self, symbol: str, shares: int, status: str, order_id: str):
        """Log a pending buy that will never fill"""
        self.logger.warning(
            "TRADE:BUY_CANCELLED | %s | %d | status=%s | order_id=%s",
            symbol, shares, status, order_id
        )

    def log_order_rejected(self, symbol: str, side: str, shares: int, reason: str):
        """Log an order the broker refused"""
        self.logger.warning(
            "TRADE:ORDER_REJECTED | %s | %s %d | reason=%s",
            symbol, side, shares, reason
        )

    def log_sell(self, symbol: str, shares: int, purchase_price: int, sell_price: int, reason: str):
        """Log a sell; the gain column is prefixed with +, - or ="""
        gain = (sell_price - purchase_price) * shares
        self.logger.info(
            "TRADE:SELL | %s | %d | bought=%.2f sold=%.2f | %s %.2f | %s",
            symbol, shares, purchase_price / 100, sell_price / 100,
            _gain_symbol(gain), abs(gain) / 100, reason
        )

    def log_liquidation(self, symbol: str, price: int, gain: int, reason: str):
        """Log a forced exit"""
        self.logger.info(
            "TRADE:LIQUIDATION | %s @ %.2f | gain=%.2f | %s",
            symbol, price / 100, gain / 100, reason
        )


# Global trade logger instance
trade_logger = TradeLogger()
