"""
Paragon Trading Bot
===================
Main entry point for the automated equities trading bot.

This bot:
1. Checks the market calendar every morning at 03:00 ET
2. Opens a session at the bell: reads equity, watchlist and daily ranges
3. Polls quotes every tick and buys on MACD/Bollinger/RSI momentum
4. Trails every position with a rising stop ("divorce" bound)
5. Stops buying 30 minutes before the close and sells everything 10 minutes before

Usage:
    python -m paragon.main

    # Verbose console
    python -m paragon.main --debug

    # Export stored sessions to CSV and exit
    python -m paragon.main --export-csv

WARNING: The default endpoint trades real money. Point TRADIER_ENDPOINT at the
sandbox first.
"""

import sys
import signal
import asyncio
import logging
import argparse
from pathlib import Path
from typing import Optional

# Core modules
from .core.config import Config
from .core.logging_config import setup_logging

# Broker & persistence
from .broker.tradier import TradierClient
from .persistence.store import TickStore

# Jobs
from .jobs.scheduler import JobScheduler

# Session
from .session.engine import SessionStateMachine

# Reports
from .reports.export import ReportExporter

# Utils
from .utils.time_utils import get_market_now


logger = logging.getLogger("paragon.main")

BANNER = r"""
  ____
 |  _ \ __ _ _ __ __ _  __ _  ___  _ __
 | |_) / _` | '__/ _` |/ _` |/ _ \| '_ \
 |  __/ (_| | | | (_| | (_| | (_) | | | |
 |_|   \__,_|_|  \__,_|\__, |\___/|_| |_|
                       |___/
"""


class TradingBot:
    """
    Main trading bot class.

    Wires config -> logging -> broker -> store -> scheduler -> session engine.
    """

    def __init__(self, config: Config, debug: bool = False):
        """
        Initialize the trading bot.

        Args:
            config: Bot configuration
            debug: Log DEBUG to the console
        """
        self.config = config
        self.running = False

        setup_logging(
            log_dir=config.logs_dir,
            console_level=logging.DEBUG if debug else logging.INFO,
        )

        logger.info(BANNER)
        logger.info("=" * 60)
        logger.info("INITIALIZING PARAGON")
        logger.info("=" * 60)

        self.broker = TradierClient(config.broker)
        logger.info("Broker endpoint: %s", config.broker.endpoint)

        self.store = TickStore(config.database_path)
        logger.info("Database: %s", config.database_path)

        # Created in run(): the scheduler needs the running loop
        self.scheduler: Optional[JobScheduler] = None
        self.engine: Optional[SessionStateMachine] = None
        self._stop_event: Optional[asyncio.Event] = None

    def _setup_jobs(self) -> None:
        """Configure scheduled jobs"""
        wakeup = self.config.trading.wakeup_time
        self.scheduler.add_daily_job(
            job_id=SessionStateMachine.DAILY_JOB,
            run_time=wakeup,
            func=self.engine.run_daily_check,
            name="Daily Check",
        )
        logger.info("Scheduled: Daily Check @ %s ET", wakeup.strftime("%H:%M"))

    async def run(self) -> None:
        """Start the bot and block until a termination signal arrives"""
        if self.running:
            logger.warning("Bot is already running")
            return

        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self.scheduler = JobScheduler(event_loop=loop)
        self.engine = SessionStateMachine(
            broker=self.broker,
            store=self.store,
            config=self.config.trading,
            scheduler=self.scheduler,
        )
        self._setup_jobs()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._shutdown_handler, sig)
            except NotImplementedError:
                # Windows: Ctrl+C surfaces as KeyboardInterrupt instead
                pass

        self.running = True
        now = get_market_now()
        logger.info("=" * 60)
        logger.info("STARTING PARAGON")
        logger.info("Time: %s ET", now.strftime("%Y-%m-%d %H:%M:%S"))
        logger.info("=" * 60)

        self.scheduler.start()

        # Catch up on today in case we started after the wake-up time
        await self.engine.run_daily_check()

        logger.info("Bot is running. Press Ctrl+C to stop.")
        try:
            await self._stop_event.wait()
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop the trading bot"""
        if not self.running:
            return

        logger.info("Stopping trading bot...")
        self.running = False

        if self.scheduler is not None:
            self.scheduler.stop()
        if self.engine is not None:
            await self.engine.shutdown()
            logger.info("\n%s", self.engine.get_status())

        await self.broker.close()
        self.store.close()

        logger.info("Trading bot stopped")

    def _shutdown_handler(self, signum) -> None:
        """Handle shutdown signals"""
        logger.info("Received signal %s", signal.Signals(signum).name)
        if self._stop_event is not None:
            self._stop_event.set()


def export_csv(config: Config, output_dir: Optional[str]) -> int:
    """Write every stored session to CSV"""
    setup_logging(log_dir=config.logs_dir)
    store = TickStore(config.database_path)
    try:
        exporter = ReportExporter(Path(output_dir) if output_dir else config.exports_dir)
        paths = exporter.export_sessions(store)
    finally:
        store.close()
    print(f"Exported {len(paths)} files")
    return 0


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="Paragon Equities Trading Bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m paragon.main                         # Start trading
  python -m paragon.main --debug                 # Verbose console output
  python -m paragon.main --data-dir /srv/paragon # Custom data directory
  python -m paragon.main --export-csv            # Export stored sessions to CSV
  python -m paragon.main --export-csv ./out      # ...into ./out
        """,
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        help="Directory for the database, logs and exports (default: paragon_data/)",
    )
    parser.add_argument(
        "--export-csv",
        nargs="?",
        const="",
        default=None,
        metavar="DIR",
        help="Export stored sessions to CSV and exit",
    )

    args = parser.parse_args()

    config = Config.load(args.data_dir)

    if args.export_csv is not None:
        sys.exit(export_csv(config, args.export_csv or None))

    valid, issues = config.validate()
    if not valid:
        for issue in issues:
            print(f"Config error: {issue}", file=sys.stderr)
        sys.exit(2)

    print(config.get_summary())

    bot = TradingBot(config, debug=args.debug)

    try:
        asyncio.run(bot.run())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.exception("Bot crashed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
