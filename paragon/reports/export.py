"""
Report Exporter
===============
Export the stored tick series to CSV, one file per symbol and session:

    <output_dir>/<session date>/<SYMBOL>.csv

Columns: quotes, divorce (trailing lower bound), BBAND Low/Mid/High, MACD,
MACD Signal, RSI. Missing values are written as empty cells.
"""

import csv
import logging
from pathlib import Path
from typing import Dict, List, Optional

from ..persistence.store import TickRecord, TickStore
from ..utils.money import format_dollars

logger = logging.getLogger("paragon.reports.export")

COLUMNS = [
    "quotes",
    "divorce",
    "BBAND Low",
    "BBAND Mid",
    "BBAND High",
    "MACD",
    "MACD Signal",
    "RSI",
]


def _dollars(cents: Optional[int]) -> str:
    return format_dollars(cents) if cents is not None else ""


def _value(value: Optional[float]) -> str:
    return f"{value:.4f}" if value is not None else ""


def tick_row(record: TickRecord) -> Dict[str, str]:
    """CSV row for one tick"""
    return {
        "quotes": _dollars(record.quote),
        "divorce": _dollars(record.lower_bound),
        "BBAND Low": _value(record.bband_low),
        "BBAND Mid": _value(record.bband_mid),
        "BBAND High": _value(record.bband_high),
        "MACD": _value(record.macd),
        "MACD Signal": _value(record.macd_signal),
        "RSI": _value(record.rsi),
    }


class ReportExporter:
    """
    Export stored sessions to CSV.

    Usage:
        exporter = ReportExporter(output_dir=config.exports_dir)
        paths = exporter.export_sessions(store)
    """

    def __init__(self, output_dir: Path = Path("./paragon_data/exports")):
        """
        Initialize exporter.

        Args:
            output_dir: Directory for exports
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def export_session(self, store: TickStore, symbol: str, session_date: str) -> Optional[Path]:
        """
        Export one symbol's day.

        Returns:
            Path to the exported file, or None if it could not be written
        """
        records = store.get_ticks(symbol, session_date)
        filepath = self.output_dir / session_date / f"{symbol}.csv"

        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            with open(filepath, "w", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=COLUMNS)
                writer.writeheader()
                writer.writerows(tick_row(r) for r in records)
        except OSError as e:
            logger.error("Failed to export %s %s: %s", symbol, session_date, e)
            return None

        logger.info("Exported %d ticks to %s", len(records), filepath)
        return filepath

    def export_sessions(self, store: TickStore, session_date: Optional[str] = None) -> List[Path]:
        """
        Export every stored session (or only those of ``session_date``).

        Returns:
            Paths of the files written
        """
        sessions = store.list_sessions()
        if session_date is not None:
            sessions = [s for s in sessions if s[1] == session_date]

        if not sessions:
            logger.warning("No sessions to export")
            return []

        paths = []
        for symbol, day, _ in sessions:
            path = self.export_session(store, symbol, day)
            if path is not None:
                paths.append(path)

        logger.info("Export finished: %d files in %s", len(paths), self.output_dir)
        return paths
