"""
Tick Store
==========
SQLite persistence for the daily per-symbol time series.

Tables:
- sessions: one row per (symbol, date) with the day's divorce buffer
- ticks:    one row per (symbol, date, seq); every value column is nullable
- trades:   buy/fill/cancel/sell events for the audit trail

All money columns are integer cents; indicator columns are dollars.
"""

import logging
import sqlite3
import threading
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from ..utils.indicators import IndicatorSnapshot

logger = logging.getLogger("paragon.persistence.store")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class TickRecord:
    """One persisted tick for one symbol"""
    symbol: str
    session_date: str
    seq: int
    quote: Optional[int] = None
    macd: Optional[float] = None
    macd_signal: Optional[float] = None
    bband_high: Optional[float] = None
    bband_mid: Optional[float] = None
    bband_low: Optional[float] = None
    rsi: Optional[float] = None
    lower_bound: Optional[int] = None

    @classmethod
    def build(
        cls,
        symbol: str,
        session_date: Union[str, date],
        seq: int,
        quote: Optional[int],
        indicators: Optional[IndicatorSnapshot],
        lower_bound: Optional[int],
    ) -> "TickRecord":
        ind = indicators
        return cls(
            symbol=symbol,
            session_date=str(session_date),
            seq=seq,
            quote=quote,
            macd=ind.macd if ind else None,
            macd_signal=ind.signal if ind else None,
            bband_high=ind.bband_high if ind else None,
            bband_mid=ind.bband_mid if ind else None,
            bband_low=ind.bband_low if ind else None,
            rsi=ind.rsi if ind else None,
            lower_bound=lower_bound,
        )


class TickStore:
    """
    Single source of truth for SQLite access.

    One connection is held for the life of the process; writes are issued
    from a worker thread via ``asyncio.to_thread`` so a lock serializes them.
    Use ``":memory:"`` for tests.
    """

    def __init__(self, path: Union[str, Path] = ":memory:"):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.path, timeout=30, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init()

    # -------------------------
    # Init / migrations
    # -------------------------
    def _init(self) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    symbol TEXT NOT NULL,
                    session_date TEXT NOT NULL,
                    divorce_buffer INTEGER,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (symbol, session_date)
                )
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS ticks (
                    symbol TEXT NOT NULL,
                    session_date TEXT NOT NULL,
                    seq INTEGER NOT NULL,
                    recorded_at TEXT NOT NULL,
                    quote INTEGER,
                    macd REAL,
                    macd_signal REAL,
                    bband_high REAL,
                    bband_mid REAL,
                    bband_low REAL,
                    rsi REAL,
                    lower_bound INTEGER,
                    PRIMARY KEY (symbol, session_date, seq)
                )
                """
            )
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS trades (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    recorded_at TEXT NOT NULL,
                    session_date TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    order_id TEXT,
                    shares INTEGER,
                    price INTEGER,
                    gain INTEGER
                )
                """
            )

    # -------------------------
    # Writes
    # -------------------------
    def start_session(self, symbol: str, session_date: Union[str, date], divorce_buffer: Optional[int]) -> None:
        """Create (or refresh) the day's row for a symbol."""
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO sessions (symbol, session_date, divorce_buffer, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(symbol, session_date) DO UPDATE SET divorce_buffer = excluded.divorce_buffer
                """,
                (symbol, str(session_date), divorce_buffer, utc_now_iso()),
            )

    def append_tick(self, record: TickRecord) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO ticks (
                    symbol, session_date, seq, recorded_at, quote,
                    macd, macd_signal, bband_high, bband_mid, bband_low, rsi, lower_bound
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.symbol, record.session_date, record.seq, utc_now_iso(), record.quote,
                    record.macd, record.macd_signal, record.bband_high, record.bband_mid,
                    record.bband_low, record.rsi, record.lower_bound,
                ),
            )

    def record_trade(
        self,
        session_date: Union[str, date],
        symbol: str,
        event_type: str,
        order_id: Optional[str] = None,
        shares: Optional[int] = None,
        price: Optional[int] = None,
        gain: Optional[int] = None,
    ) -> None:
        """Append a BUY_PLACED / BUY_FILLED / BUY_CANCELLED / SELL event."""
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO trades (recorded_at, session_date, symbol, event_type, order_id, shares, price, gain)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (utc_now_iso(), str(session_date), symbol, event_type, order_id, shares, price, gain),
            )

    # -------------------------
    # Reads
    # -------------------------
    def list_sessions(self) -> List[Tuple[str, str, Optional[int]]]:
        """(symbol, session_date, divorce_buffer) for every stored session, oldest first"""
        with self._lock:
            rows = self._conn.execute(
                "SELECT symbol, session_date, divorce_buffer FROM sessions ORDER BY session_date, symbol"
            ).fetchall()
        return [(r["symbol"], r["session_date"], r["divorce_buffer"]) for r in rows]

    def get_divorce_buffer(self, symbol: str, session_date: Union[str, date]) -> Optional[int]:
        with self._lock:
            row = self._conn.execute(
                "SELECT divorce_buffer FROM sessions WHERE symbol = ? AND session_date = ?",
                (symbol, str(session_date)),
            ).fetchone()
        return row["divorce_buffer"] if row else None

    def get_ticks(self, symbol: str, session_date: Union[str, date]) -> List[TickRecord]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT symbol, session_date, seq, quote, macd, macd_signal,
                       bband_high, bband_mid, bband_low, rsi, lower_bound
                FROM ticks WHERE symbol = ? AND session_date = ? ORDER BY seq
                """,
                (symbol, str(session_date)),
            ).fetchall()
        return [TickRecord(**dict(r)) for r in rows]

    def iter_trades(self, session_date: Union[str, date]) -> Iterator[sqlite3.Row]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM trades WHERE session_date = ? ORDER BY id", (str(session_date),)
            ).fetchall()
        return iter(rows)

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info("Database closed: %s", self.path)
