"""
Liquidation
===========
Cancel every pending buy and market-sell every open position.
Shares a cancelled buy had already bought are sold with the rest.

Runs before the close and when the daily loss limit is hit. This is a
critical path that MUST succeed:
- Each sell is retried up to ``max_retries`` times
- Positions that still fail stay in the ledger and are logged CRITICAL for
  manual intervention
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Tuple
from dataclasses import dataclass, field

from ..algorithms.sell import ExitReason
from ..broker.base import Broker
from ..broker.models import BrokerError, OrderSide
from ..core.logging_config import trade_logger
from ..utils.money import format_dollars
from .ledger import Ledger, PendingBuyOrder


logger = logging.getLogger("paragon.session.liquidation")


@dataclass
class LiquidationResult:
    """Result of a liquidation"""
    timestamp: str = ""
    orders_cancelled: int = 0
    orders_failed: int = 0
    partial_fills: int = 0       # cancelled buys that had already bought shares
    positions_closed: int = 0
    positions_failed: int = 0
    realized_gain: int = 0       # cents
    refunded_capital: int = 0    # cents, estimated cost of cancelled buys

    details: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.positions_failed == 0 and self.orders_failed == 0


class Liquidator:
    """
    Flatten the ledger through the broker.

    Usage:
        liquidator = Liquidator(broker, max_retries=3)
        result = await liquidator.run(ledger, last_prices, ExitReason.TIME_EXIT)
    """

    def __init__(self, broker: Broker, max_retries: int = 3, retry_delay: float = 1.0):
        self.broker = broker
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def run(
        self,
        ledger: Ledger,
        prices: Mapping[str, int],
        reason: ExitReason = ExitReason.TIME_EXIT,
    ) -> LiquidationResult:
        """
        Run the liquidation.

        Args:
            ledger: Ledger to flatten
            prices: Last known quote per symbol (cents), used to estimate gains
            reason: Why positions are being sold

        Returns:
            LiquidationResult
        """
        logger.info("=" * 60)
        logger.info("LIQUIDATING (%s)", reason.value)
        logger.info("=" * 60)

        result = LiquidationResult(timestamp=datetime.now().isoformat())

        # Cancel pending buys first so nothing fills behind us
        for pending in ledger.all_pending_buys():
            try:
                await self.broker.cancel_order(pending.order_id)
            except BrokerError as e:
                result.orders_failed += 1
                result.errors.append(f"Cancel {pending.symbol} order {pending.order_id}: {e}")
                logger.error("Failed to cancel buy %s for %s: %s", pending.order_id, pending.symbol, e)
                continue

            filled_shares, fill_price = await self._filled_portion(pending, result)
            if filled_shares:
                # Shares bought before the cancel become a position and are sold below
                ledger.confirm_fill(pending.symbol, filled_shares, fill_price,
                                    lower_bound=fill_price, divorce_buffer=0)
                result.partial_fills += 1
                result.refunded_capital += (pending.requested_shares - filled_shares) * pending.requested_price
                result.details.append({
                    "event": "BUY_FILLED",
                    "symbol": pending.symbol,
                    "order_id": pending.order_id,
                    "shares": filled_shares,
                    "price": fill_price,
                })
                trade_logger.log_buy_filled(pending.symbol, filled_shares, fill_price, fill_price, pending.order_id)
                continue

            ledger.cancel_pending_buy(pending.symbol)
            result.orders_cancelled += 1
            result.refunded_capital += pending.estimated_cost
            result.details.append({
                "event": "BUY_CANCELLED",
                "symbol": pending.symbol,
                "order_id": pending.order_id,
                "shares": pending.requested_shares,
                "price": pending.requested_price,
            })
            trade_logger.log_buy_cancelled(pending.symbol, pending.requested_shares, reason.value, pending.order_id)

        positions = ledger.all_open_positions()
        if not positions:
            logger.info("No open positions to close")

        for position in positions:
            symbol = position.symbol
            price = prices.get(symbol) or position.purchase_price

            closed = False
            order_id = None
            for attempt in range(1, self.max_retries + 1):
                try:
                    ack = await self.broker.place_market_order(symbol, OrderSide.SELL, position.shares)
                    logger.info("Sell %s accepted (order %s)", symbol, ack.order_id)
                    order_id = ack.order_id
                    closed = True
                    break
                except BrokerError as e:
                    logger.error("Attempt %d/%d to sell %s failed: %s", attempt, self.max_retries, symbol, e)

                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay)  # Brief pause before retry

            gain = position.gain_at(price)
            result.details.append({
                "event": "SELL",
                "symbol": symbol,
                "order_id": order_id,
                "shares": position.shares,
                "purchase_price": position.purchase_price,
                "price": price,
                "gain": gain,
                "closed": closed,
            })

            if closed:
                ledger.close_position(symbol)
                result.positions_closed += 1
                result.realized_gain += gain
                trade_logger.log_liquidation(symbol, price, gain, reason.value)
            else:
                result.positions_failed += 1
                result.errors.append(f"Failed to sell {symbol} after {self.max_retries} attempts")
                logger.error("FAILED to sell %s!", symbol)

        logger.info("=" * 60)
        logger.info("LIQUIDATION COMPLETE")
        logger.info("  Orders cancelled: %d", result.orders_cancelled)
        logger.info("  Partial fills:    %d", result.partial_fills)
        logger.info("  Positions closed: %d", result.positions_closed)
        logger.info("  Positions failed: %d", result.positions_failed)
        logger.info("  Realized gain:    %s", format_dollars(result.realized_gain))
        logger.info("=" * 60)

        if result.positions_failed or result.orders_failed:
            logger.critical(
                "ALERT: %d positions and %d orders could not be closed! Manual intervention required!",
                result.positions_failed, result.orders_failed,
            )

        return result

    async def _filled_portion(self, pending: PendingBuyOrder, result: LiquidationResult) -> Tuple[int, int]:
        """Shares and average price the cancelled buy had already bought"""
        try:
            order = await self.broker.get_order_status(pending.order_id)
        except BrokerError as e:
            result.errors.append(f"Status of cancelled {pending.symbol} order {pending.order_id}: {e}")
            logger.critical(
                "Cannot confirm whether cancelled buy %s for %s bought shares: %s. Check the account!",
                pending.order_id, pending.symbol, e,
            )
            return 0, 0

        filled = min(order.filled_shares, pending.requested_shares)
        if filled <= 0:
            return 0, 0
        return filled, order.avg_fill_price or pending.requested_price
