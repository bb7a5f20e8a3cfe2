"""
Unit Tests for the Tick Store and CSV Export

Test Coverage:
    - Session rows and divorce buffer upsert
    - Tick records with nullable columns, ordered by sequence
    - Trade audit trail
    - CSV layout, empty cells for missing values
"""

import csv
import sys
from datetime import date
from pathlib import Path

import pytest

# Add project root
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from paragon.persistence.store import TickRecord, TickStore
from paragon.reports.export import COLUMNS, ReportExporter, tick_row
from paragon.utils.indicators import IndicatorSnapshot

# ==================== Fixtures ====================


@pytest.fixture
def store():
    """In-memory store"""
    store = TickStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def snapshot():
    """Indicator snapshot in dollars"""
    return IndicatorSnapshot(macd=0.1234, signal=0.1, bband_high=151.5, bband_mid=150.0, bband_low=148.5, rsi=72.25)


@pytest.fixture
def filled_store(store, snapshot):
    """AAPL on 2024-03-15: a null tick, a quote-only tick and a full tick"""
    store.start_session("AAPL", "2024-03-15", 11)
    store.append_tick(TickRecord.build("AAPL", "2024-03-15", 0, None, None, None))
    store.append_tick(TickRecord.build("AAPL", "2024-03-15", 1, 15_000, None, None))
    store.append_tick(TickRecord.build("AAPL", "2024-03-15", 2, 15_010, snapshot, 14_999))
    return store


# ==================== Store ====================


class TestSessions:
    """Tests for the sessions table"""

    def test_start_session(self, store):
        store.start_session("AAPL", date(2024, 3, 15), 11)

        assert store.list_sessions() == [("AAPL", "2024-03-15", 11)]
        assert store.get_divorce_buffer("AAPL", "2024-03-15") == 11

    def test_unknown_buffer_then_known(self, store):
        store.start_session("AAPL", "2024-03-15", None)
        assert store.get_divorce_buffer("AAPL", "2024-03-15") is None

        store.start_session("AAPL", "2024-03-15", 25)
        assert store.get_divorce_buffer("AAPL", "2024-03-15") == 25
        assert len(store.list_sessions()) == 1

    def test_missing_session(self, store):
        assert store.get_divorce_buffer("AAPL", "2024-03-15") is None

    def test_sessions_ordered_by_date(self, store):
        store.start_session("MSFT", "2024-03-15", 50)
        store.start_session("AAPL", "2024-03-14", 10)
        store.start_session("AAPL", "2024-03-15", 11)

        assert [(s, d) for s, d, _ in store.list_sessions()] == [
            ("AAPL", "2024-03-14"), ("AAPL", "2024-03-15"), ("MSFT", "2024-03-15"),
        ]


class TestTicks:
    """Tests for the ticks table"""

    def test_ticks_in_sequence_order(self, filled_store):
        ticks = filled_store.get_ticks("AAPL", date(2024, 3, 15))
        assert [t.seq for t in ticks] == [0, 1, 2]

    def test_null_tick(self, filled_store):
        tick = filled_store.get_ticks("AAPL", "2024-03-15")[0]
        assert tick.quote is None
        assert tick.macd is None
        assert tick.lower_bound is None

    def test_quote_only_tick(self, filled_store):
        tick = filled_store.get_ticks("AAPL", "2024-03-15")[1]
        assert tick.quote == 15_000
        assert tick.rsi is None

    def test_full_tick(self, filled_store, snapshot):
        tick = filled_store.get_ticks("AAPL", "2024-03-15")[2]
        assert tick.quote == 15_010
        assert tick.macd == snapshot.macd
        assert tick.macd_signal == snapshot.signal
        assert tick.bband_low == snapshot.bband_low
        assert tick.rsi == snapshot.rsi
        assert tick.lower_bound == 14_999

    def test_same_sequence_is_replaced(self, store):
        store.append_tick(TickRecord.build("AAPL", "2024-03-15", 0, 100, None, None))
        store.append_tick(TickRecord.build("AAPL", "2024-03-15", 0, 200, None, None))

        ticks = store.get_ticks("AAPL", "2024-03-15")
        assert len(ticks) == 1
        assert ticks[0].quote == 200

    def test_ticks_scoped_by_symbol_and_date(self, filled_store):
        assert filled_store.get_ticks("MSFT", "2024-03-15") == []
        assert filled_store.get_ticks("AAPL", "2024-03-14") == []


class TestTrades:
    """Tests for the trade audit trail"""

    def test_record_trades(self, store):
        store.record_trade("2024-03-15", "AAPL", "BUY_PLACED", "1", 10, 15_000)
        store.record_trade(date(2024, 3, 15), "AAPL", "SELL", "2", 10, 15_100, 1_000)

        rows = list(store.iter_trades("2024-03-15"))
        assert [r["event_type"] for r in rows] == ["BUY_PLACED", "SELL"]
        assert rows[0]["gain"] is None
        assert rows[1]["gain"] == 1_000

    def test_file_database(self, tmp_path):
        path = tmp_path / "nested" / "paragon.db"
        store = TickStore(path)
        store.start_session("AAPL", "2024-03-15", 11)
        store.close()

        reopened = TickStore(path)
        assert reopened.list_sessions() == [("AAPL", "2024-03-15", 11)]
        reopened.close()


# ==================== Export ====================


class TestExport:
    """Tests for the CSV report"""

    def test_tick_row_formats(self, filled_store):
        full = filled_store.get_ticks("AAPL", "2024-03-15")[2]
        row = tick_row(full)

        assert row["quotes"] == "150.10"
        assert row["divorce"] == "149.99"
        assert row["MACD"] == "0.1234"
        assert row["RSI"] == "72.2500"

    def test_tick_row_empty_cells(self, filled_store):
        null_tick = filled_store.get_ticks("AAPL", "2024-03-15")[0]
        assert set(tick_row(null_tick).values()) == {""}

    def test_export_sessions(self, filled_store, tmp_path):
        exporter = ReportExporter(tmp_path / "exports")
        paths = exporter.export_sessions(filled_store)

        assert paths == [tmp_path / "exports" / "2024-03-15" / "AAPL.csv"]
        with open(paths[0], newline="") as f:
            rows = list(csv.reader(f))

        assert rows[0] == COLUMNS
        assert len(rows) == 4
        assert rows[1] == [""] * len(COLUMNS)
        assert rows[2][0] == "150.00"
        assert rows[2][1] == ""

    def test_export_filtered_by_date(self, filled_store, tmp_path):
        filled_store.start_session("MSFT", "2024-03-14", 50)
        exporter = ReportExporter(tmp_path)

        paths = exporter.export_sessions(filled_store, session_date="2024-03-14")
        assert paths == [tmp_path / "2024-03-14" / "MSFT.csv"]

    def test_export_nothing(self, store, tmp_path):
        assert ReportExporter(tmp_path).export_sessions(store) == []
