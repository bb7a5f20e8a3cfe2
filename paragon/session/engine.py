"""
Session State Machine
=====================
Drives one trading day:

    AWAITING_SESSION_DATE -> AWAITING_OPEN -> TRADING_NORMAL -> TRADING_HOLD
        -> LIQUIDATING -> CLOSED -> AWAITING_SESSION_DATE

Jobs (registered on the JobScheduler):
- daily_check (cron, wake-up time): read the market calendar, plan the day
- market_open (one-shot): opening routine
- tick (interval): trading loop
- market_close (one-shot): closing routine

Exactly one tick or lifecycle transition runs at a time. A tick that finds
another one in flight is skipped; lifecycle transitions wait their turn.
"""

import asyncio
import logging
import sqlite3
from datetime import datetime
from typing import Callable, Optional, Sequence

from ..algorithms.allocate import compute_share_count, compute_trading_capital
from ..algorithms.buy import determine_buy
from ..algorithms.sell import ExitReason, SellSignal, compute_divorce_buffer, determine_sell
from ..broker.base import Broker
from ..broker.models import BrokerError, OrderSide, OrderStatus, Quote
from ..core.config import IndicatorConfig, TradingConfig
from ..core.constants import MarketHours
from ..core.logging_config import trade_logger
from ..persistence.store import TickRecord, TickStore
from ..risk.kill_switch import KillSwitch, KillSwitchTrigger
from ..utils.indicators import IndicatorSnapshot, compute_indicators
from ..utils.money import format_dollars
from ..utils.time_utils import before_close, get_market_now, market_datetime
from .ledger import Ledger, LedgerInvariantError
from .liquidation import LiquidationResult, Liquidator
from .state import ReadinessCondition, SessionPhase, SessionState


logger = logging.getLogger("paragon.session.engine")

IndicatorFn = Callable[[Sequence[int], IndicatorConfig], Optional[IndicatorSnapshot]]


class SessionStartError(Exception):
    """Opening routine could not complete; the day is abandoned"""
    pass


class SessionStateMachine:
    """
    The trading engine.

    Usage:
        engine = SessionStateMachine(broker, store, config.trading, scheduler)
        scheduler.add_daily_job(engine.DAILY_JOB, config.trading.wakeup_time, engine.run_daily_check)
        await engine.run_daily_check()
    """

    DAILY_JOB = "daily_check"
    OPEN_JOB = "market_open"
    TICK_JOB = "tick"
    CLOSE_JOB = "market_close"

    def __init__(
        self,
        broker: Broker,
        store: TickStore,
        config: TradingConfig,
        scheduler=None,
        clock: Optional[Callable[[], datetime]] = None,
        indicator_fn: IndicatorFn = compute_indicators,
        kill_switch: Optional[KillSwitch] = None,
    ):
        """
        Args:
            broker: Brokerage client
            store: Tick persistence
            config: Trading parameters
            scheduler: JobScheduler (anything with add_date_job / add_interval_job / remove_job)
            clock: Returns the current aware market time (default: wall clock)
            indicator_fn: Indicator adapter
            kill_switch: Halt record (default: a fresh one)
        """
        self.broker = broker
        self.store = store
        self.config = config
        self.scheduler = scheduler
        self.clock = clock or get_market_now
        self.indicator_fn = indicator_fn
        self.kill_switch = kill_switch or KillSwitch()

        self.phase = SessionPhase.AWAITING_SESSION_DATE
        self.state = SessionState()
        self.ledger = Ledger()
        self.liquidator = Liquidator(broker, config.sell_retries, config.sell_retry_delay)
        self.last_liquidation: Optional[LiquidationResult] = None

        self._lock = asyncio.Lock()
        self._shutting_down = False

    @property
    def is_trading(self) -> bool:
        return self.phase in (SessionPhase.TRADING_NORMAL, SessionPhase.TRADING_HOLD)

    # ==================== Scheduling helpers ====================

    def _schedule_once(self, job_id: str, run_at: datetime, func, name: str) -> None:
        if self.scheduler is not None:
            self.scheduler.add_date_job(job_id, run_at, func, name=name)

    def _schedule_ticks(self) -> None:
        if self.scheduler is not None:
            self.scheduler.add_interval_job(
                self.TICK_JOB, self.config.tick_interval_seconds, self.tick, name="Trading tick"
            )

    def _unschedule(self, *job_ids: str) -> None:
        if self.scheduler is None:
            return
        for job_id in job_ids:
            self.scheduler.remove_job(job_id)

    # ==================== Daily check ====================

    async def run_daily_check(self) -> SessionPhase:
        """
        Read today's market calendar and plan the session.

        Closed day: stay idle. Before the open: schedule the opening routine.
        Inside the trading window: open now. Past the liquidation lead: idle.
        """
        async with self._lock:
            if self._shutting_down:
                return self.phase

            if self.phase not in (SessionPhase.AWAITING_SESSION_DATE, SessionPhase.CLOSED):
                logger.info("Daily check skipped: session is %s", self.phase.value)
                return self.phase

            now = self.clock()
            try:
                days = await self.broker.get_market_calendar(now.month, now.year)
            except BrokerError as e:
                logger.error("Market calendar unavailable (%s); retrying at next daily check", e)
                self.phase = SessionPhase.AWAITING_SESSION_DATE
                return self.phase

            today = next((d for d in days if d.day == now.date()), None)
            if today is None or not today.is_open:
                logger.info("Market closed on %s; waiting for next session date", now.date())
                self.phase = SessionPhase.AWAITING_SESSION_DATE
                return self.phase

            opens_at = market_datetime(today.day, today.opens_at or MarketHours.MARKET_OPEN)
            closes_at = market_datetime(today.day, today.closes_at or MarketHours.MARKET_CLOSE)
            liquidate_at = before_close(closes_at, self.config.liquidation_lead_minutes)

            self.state.reset()
            self.state.session_date = today.day
            self.state.opens_at = opens_at
            self.state.closes_at = closes_at

            if now < opens_at:
                self._schedule_once(self.OPEN_JOB, opens_at, self.open_session, "Market open")
                self.phase = SessionPhase.AWAITING_OPEN
                logger.info(
                    "Market open on %s: %s - %s",
                    today.day, opens_at.strftime("%H:%M"), closes_at.strftime("%H:%M"),
                )
            elif now < liquidate_at:
                logger.info("Market already open; starting session now")
                await self._open_session()
            else:
                logger.info("Too late to trade today (closes %s)", closes_at.strftime("%H:%M"))
                self.state.reset()
                self.phase = SessionPhase.AWAITING_SESSION_DATE

            return self.phase

    # ==================== Opening routine ====================

    async def open_session(self) -> bool:
        """Run the opening routine (market_open job)"""
        async with self._lock:
            if self._shutting_down:
                return False
            return await self._open_session()

    async def _open_session(self) -> bool:
        try:
            await self._run_opening_routine()
        except SessionStartError as e:
            logger.error("Opening routine failed: %s. No trading today", e)
            self._unschedule(self.TICK_JOB, self.CLOSE_JOB)
            self.state.reset()
            self.ledger.clear()
            self.phase = SessionPhase.AWAITING_SESSION_DATE
            return False
        return True

    async def _run_opening_routine(self) -> None:
        state = self.state
        if state.session_date is None or state.closes_at is None:
            raise SessionStartError("no session planned")

        logger.info("=" * 60)
        logger.info("OPENING SESSION %s", state.session_date)
        logger.info("=" * 60)

        session_date, opens_at, closes_at = state.session_date, state.opens_at, state.closes_at
        state.reset()
        state.session_date, state.opens_at, state.closes_at = session_date, opens_at, closes_at
        self.ledger.clear()
        self.kill_switch.reset()
        self.last_liquidation = None

        try:
            balance = await self.broker.get_account_balance()
            symbols = await self.broker.get_watchlist()
            quotes = await self.broker.get_quotes(symbols) if symbols else {}
        except BrokerError as e:
            raise SessionStartError(str(e)) from e

        state.total_account_value = balance.total_equity
        state.trading_capital_remaining = compute_trading_capital(
            balance.total_equity, self.config.capital_fraction
        )

        for symbol in symbols:
            buffer = self._divorce_buffer_for(quotes.get(symbol))
            state.add_symbol(symbol, buffer)
            await self._persist(self.store.start_session, symbol, session_date, buffer)

        self._schedule_ticks()
        self._schedule_once(self.CLOSE_JOB, closes_at, self.close_session, "Market close")

        state.readiness = ReadinessCondition.NORMAL
        self.phase = SessionPhase.TRADING_NORMAL

        logger.info("  Equity:          $%s", format_dollars(state.total_account_value))
        logger.info("  Trading capital: $%s", format_dollars(state.trading_capital_remaining))
        logger.info("  Symbols:         %s", ", ".join(symbols) or "(none)")
        logger.info("  Closes at:       %s", closes_at.strftime("%H:%M"))

    def _divorce_buffer_for(self, quote: Optional[Quote]) -> Optional[int]:
        if quote is None or quote.low is None or quote.high is None:
            return None
        return compute_divorce_buffer(
            quote.low, quote.high, self.config.adr_multiplier, self.config.divorce_offset
        )

    # ==================== Tick ====================

    async def tick(self) -> None:
        """One pass of the trading loop (tick job)"""
        if self._shutting_down:
            return
        if self._lock.locked():
            logger.warning("Previous tick or transition still running; skipping tick")
            return

        async with self._lock:
            if not self.is_trading:
                return
            try:
                await self._tick()
            except LedgerInvariantError as e:
                logger.critical("LEDGER INVARIANT VIOLATED: %s. Trading halted", e)
                self.state.readiness = ReadinessCondition.HALTED
                self.kill_switch.activate(KillSwitchTrigger.INVARIANT, str(e), self.state.net_realized_gain)
                self._unschedule(self.TICK_JOB)
                raise

    async def _tick(self) -> None:
        state = self.state
        cfg = self.config
        now = self.clock()

        await self._refresh_watchlist()

        # Risk check
        if self.kill_switch.check_and_trigger(
            state.net_realized_gain, state.total_account_value, cfg.max_loss_fraction
        ):
            await self._liquidate(ExitReason.RISK_LIMIT)
            await self._close_session()
            return

        # Session end
        if now >= before_close(state.closes_at, cfg.liquidation_lead_minutes):
            if state.readiness not in (ReadinessCondition.LIQUIDATING, ReadinessCondition.HALTED):
                self.kill_switch.activate(
                    KillSwitchTrigger.SESSION_END,
                    f"{cfg.liquidation_lead_minutes} minutes to close",
                    state.net_realized_gain,
                )
                await self._liquidate(ExitReason.TIME_EXIT)
            else:
                self.kill_switch.activate(
                    KillSwitchTrigger.SESSION_END,
                    f"flat with {cfg.hold_lead_minutes} minutes to close",
                    state.net_realized_gain,
                )
                self._unschedule(self.TICK_JOB)
            self.phase = SessionPhase.LIQUIDATING
            state.readiness = ReadinessCondition.HALTED
            return

        if now >= before_close(state.closes_at, cfg.hold_lead_minutes) and state.readiness in (
            ReadinessCondition.NORMAL, ReadinessCondition.HOLD_NO_NEW_BUYS
        ):
            if self.ledger.is_flat():
                logger.info("Flat with %d minutes to close; idle until close", cfg.hold_lead_minutes)
                state.readiness = ReadinessCondition.HALTED
            elif state.readiness is ReadinessCondition.NORMAL:
                logger.info("%d minutes to close; no new buys", cfg.hold_lead_minutes)
                state.readiness = ReadinessCondition.HOLD_NO_NEW_BUYS
            self.phase = SessionPhase.TRADING_HOLD

        if state.readiness is ReadinessCondition.HALTED:
            return

        symbols = list(state.active_symbols)
        try:
            quotes = await self.broker.get_quotes(symbols)
        except BrokerError as e:
            logger.warning("Quote fetch failed for %d symbols: %s", len(symbols), e)
            quotes = {}

        for symbol in symbols:
            await self._process_symbol(symbol, quotes.get(symbol))

    async def _refresh_watchlist(self) -> None:
        """Pick up symbols added to the watchlist today. Removals wait for tomorrow."""
        try:
            symbols = await self.broker.get_watchlist()
        except BrokerError as e:
            logger.warning("Watchlist refresh failed: %s", e)
            return

        for symbol in symbols:
            if self.state.add_symbol(symbol):
                logger.info("%s joined the watchlist", symbol)
                await self._persist(self.store.start_session, symbol, self.state.session_date, None)

    async def _process_symbol(self, symbol: str, quote: Optional[Quote]) -> None:
        state = self.state
        seq = state.next_seq(symbol)

        price = quote.last if quote is not None else None
        if price is None or price <= 0:
            logger.warning("%s: no quote this tick", symbol)
            await self._record(symbol, seq, None, None)
            return

        if state.divorce_buffers.get(symbol) is None:
            buffer = self._divorce_buffer_for(quote)
            if buffer is not None:
                state.divorce_buffers[symbol] = buffer
                await self._persist(self.store.start_session, symbol, state.session_date, buffer)

        history = state.price_history[symbol]
        history.append(price)

        try:
            indicators = self.indicator_fn(history, self.config.indicators)
        except Exception as e:
            logger.warning("%s: indicator computation failed: %s", symbol, e)
            indicators = None

        if indicators is None:
            await self._record(symbol, seq, price, None)
            return

        if self.ledger.has_pending_buy(symbol):
            await self._poll_pending_buy(symbol)

        readiness = state.readiness
        if (
            readiness.allows_buy
            and not self.ledger.has_position(symbol)
            and not self.ledger.has_pending_buy(symbol)
        ):
            if state.divorce_buffers.get(symbol) is None:
                logger.debug("%s: no daily range yet; not buying", symbol)
            elif determine_buy(price, indicators, self.config.rsi_cutoff):
                await self._place_buy(symbol, price)
        elif self.ledger.has_position(symbol) and readiness.allows_sell:
            await self._evaluate_sell(symbol, price)

        position = self.ledger.get_position(symbol)
        await self._record(symbol, seq, price, indicators, position.lower_bound if position else None)

    async def _poll_pending_buy(self, symbol: str) -> None:
        state = self.state
        pending = self.ledger.get_pending_buy(symbol)
        try:
            order = await self.broker.get_order_status(pending.order_id)
        except BrokerError as e:
            logger.warning("%s: status of order %s unavailable: %s", symbol, pending.order_id, e)
            return

        if order.status is OrderStatus.FILLED:
            fill_price = order.avg_fill_price or pending.requested_price
            shares = order.filled_shares or pending.requested_shares
            buffer = state.divorce_buffers.get(symbol)
            if buffer is None:
                buffer = compute_divorce_buffer(0, 0, self.config.adr_multiplier, self.config.divorce_offset)
                logger.warning("%s: filled before a daily range was known; divorce buffer %d", symbol, buffer)
            position = self.ledger.confirm_fill(
                symbol, shares, fill_price,
                lower_bound=fill_price - buffer,
                divorce_buffer=buffer,
            )
            trade_logger.log_buy_filled(symbol, shares, fill_price, position.lower_bound, pending.order_id)
            await self._record_trade(symbol, "BUY_FILLED", pending.order_id, shares, fill_price)

        elif order.status.is_dead:
            self.ledger.cancel_pending_buy(symbol)
            state.trading_capital_remaining += pending.estimated_cost
            trade_logger.log_buy_cancelled(symbol, pending.requested_shares, order.status.value, pending.order_id)
            await self._record_trade(symbol, "BUY_CANCELLED", pending.order_id, pending.requested_shares,
                                     pending.requested_price)

        else:
            logger.debug("%s: order %s still %s", symbol, pending.order_id, order.status.value)

    async def _place_buy(self, symbol: str, price: int) -> None:
        state = self.state
        shares = compute_share_count(
            state.total_account_value, state.trading_capital_remaining, price, self.config.trade_fraction
        )
        if shares <= 0:
            logger.debug("%s: buy signal but trading capital exhausted", symbol)
            return

        try:
            ack = await self.broker.place_limit_order(symbol, OrderSide.BUY, shares, price)
        except BrokerError as e:
            trade_logger.log_order_rejected(symbol, OrderSide.BUY.value, shares, str(e))
            return

        self.ledger.open_pending_buy(symbol, ack.order_id, shares, price)
        state.trading_capital_remaining -= shares * price
        trade_logger.log_buy_placed(symbol, shares, price, ack.order_id)
        await self._record_trade(symbol, "BUY_PLACED", ack.order_id, shares, price)

    async def _evaluate_sell(self, symbol: str, price: int) -> None:
        position = self.ledger.get_position(symbol)
        decision = determine_sell(price, position)

        if decision is SellSignal.SELL:
            try:
                ack = await self.broker.place_market_order(symbol, OrderSide.SELL, position.shares)
            except BrokerError as e:
                trade_logger.log_order_rejected(symbol, OrderSide.SELL.value, position.shares, str(e))
                return

            self.ledger.close_position(symbol)
            gain = position.gain_at(price)
            self.state.net_realized_gain += gain
            trade_logger.log_sell(symbol, position.shares, position.purchase_price, price,
                                  ExitReason.TRAILING_STOP.value)
            await self._record_trade(symbol, "SELL", ack.order_id, position.shares, price, gain)

        elif decision > position.lower_bound:
            self.ledger.update_lower_bound(symbol, decision)

    # ==================== Liquidation & close ====================

    async def liquidate(self, reason: ExitReason = ExitReason.MANUAL) -> Optional[LiquidationResult]:
        """Sell everything now and stop trading for the day"""
        async with self._lock:
            if not self.is_trading:
                logger.info("Nothing to liquidate: session is %s", self.phase.value)
                return None
            self.kill_switch.activate(KillSwitchTrigger.MANUAL, reason.value, self.state.net_realized_gain)
            return await self._liquidate(reason)

    async def _liquidate(self, reason: ExitReason) -> LiquidationResult:
        state = self.state
        self.phase = SessionPhase.LIQUIDATING
        state.readiness = ReadinessCondition.LIQUIDATING
        self._unschedule(self.TICK_JOB)

        prices = {symbol: history[-1] for symbol, history in state.price_history.items() if history}
        result = await self.liquidator.run(self.ledger, prices, reason)

        state.net_realized_gain += result.realized_gain
        state.trading_capital_remaining += result.refunded_capital
        self.kill_switch.record_actions(result.orders_cancelled, result.positions_closed)

        for detail in result.details:
            if detail["event"] == "SELL" and not detail["closed"]:
                continue
            await self._record_trade(
                detail["symbol"], detail["event"], detail["order_id"],
                detail["shares"], detail["price"], detail.get("gain"),
            )

        state.readiness = ReadinessCondition.HALTED
        self.last_liquidation = result
        return result

    async def close_session(self) -> None:
        """Run the closing routine (market_close job)"""
        async with self._lock:
            await self._close_session()

    async def _close_session(self) -> None:
        if self.phase in (SessionPhase.AWAITING_SESSION_DATE, SessionPhase.AWAITING_OPEN):
            logger.debug("No session to close")
            return

        self._unschedule(self.TICK_JOB, self.CLOSE_JOB, self.OPEN_JOB)
        state = self.state

        leftover_positions = self.ledger.all_open_positions()
        leftover_orders = self.ledger.all_pending_buys()
        if leftover_positions or leftover_orders:
            logger.critical(
                "Session closing with %d open positions and %d pending buys: %s",
                len(leftover_positions), len(leftover_orders),
                ", ".join(p.symbol for p in leftover_positions + leftover_orders),
            )

        self.phase = SessionPhase.CLOSED
        logger.info("=" * 60)
        logger.info("SESSION CLOSED %s", state.session_date)
        logger.info("  Net realized gain: $%s", format_dollars(state.net_realized_gain))
        logger.info("=" * 60)

        state.reset()
        self.ledger.clear()
        self.phase = SessionPhase.AWAITING_SESSION_DATE

    async def shutdown(self, liquidate: bool = False) -> None:
        """
        Stop accepting ticks, wait for any in-flight one, and drop session timers.

        Args:
            liquidate: Also sell everything before returning
        """
        self._shutting_down = True
        async with self._lock:
            self._unschedule(self.TICK_JOB, self.OPEN_JOB, self.CLOSE_JOB)
            if liquidate and self.is_trading and not self.ledger.is_flat():
                self.kill_switch.activate(KillSwitchTrigger.SHUTDOWN, "process shutdown", self.state.net_realized_gain)
                await self._liquidate(ExitReason.SHUTDOWN)
        logger.info("Session engine stopped (%s)", self.phase.value)

    # ==================== Persistence ====================

    async def _persist(self, func, *args) -> None:
        try:
            await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            logger.error("Persistence write failed (%s): %s", getattr(func, "__name__", func), e)

    async def _record(
        self,
        symbol: str,
        seq: int,
        quote: Optional[int],
        indicators: Optional[IndicatorSnapshot],
        lower_bound: Optional[int] = None,
    ) -> None:
        record = TickRecord.build(symbol, self.state.session_date, seq, quote, indicators, lower_bound)
        await self._persist(self.store.append_tick, record)

    async def _record_trade(
        self,
        symbol: str,
        event_type: str,
        order_id: Optional[str],
        shares: Optional[int],
        price: Optional[int],
        gain: Optional[int] = None,
    ) -> None:
        await self._persist(
            self.store.record_trade, self.state.session_date, symbol, event_type, order_id, shares, price, gain
        )

    # ==================== Status ====================

    def get_status(self) -> str:
        s = self.state
        return "\n".join([
            f"Phase:             {self.phase.value}",
            f"Readiness:         {s.readiness.value}",
            f"Session date:      {s.session_date or 'N/A'}",
            f"Symbols:           {len(s.active_symbols)}",
            f"Capital remaining: ${format_dollars(s.trading_capital_remaining)}",
            f"Realized gain:     ${format_dollars(s.net_realized_gain)}",
            f"Open positions:    {len(self.ledger.all_open_positions())}",
            f"Pending buys:      {len(self.ledger.all_pending_buys())}",
        ])
