"""
Position & Order Ledger
=======================
Open positions and unfilled buy orders for the trading day.

A symbol holds at most one of the two at any time. Every mutation checks its
precondition and raises LedgerInvariantError instead of repairing state: a
violation means the engine has a bug and trading must stop.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger("paragon.session.ledger")


class LedgerInvariantError(Exception):
    """Ledger would be left in an impossible state"""
    pass


@dataclass
class Position:
    """An open long position (money in cents)"""
    symbol: str
    purchase_price: int
    shares: int
    lower_bound: int
    divorce_buffer: int
    order_id: str = ""

    @property
    def cost(self) -> int:
        return self.purchase_price * self.shares

    def gain_at(self, price: int) -> int:
        """Realized gain if sold at ``price``"""
        return (price - self.purchase_price) * self.shares


@dataclass(frozen=True)
class PendingBuyOrder:
    """A limit buy placed but not yet filled"""
    symbol: str
    order_id: str
    requested_shares: int
    requested_price: int

    @property
    def estimated_cost(self) -> int:
        return self.requested_shares * self.requested_price


class Ledger:
    """
    Bookkeeping for positions and pending buys.

    Usage:
        ledger = Ledger()
        ledger.open_pending_buy("AAPL", "1234", 10, 15000)
        position = ledger.confirm_fill("AAPL", 10, 14990, lower_bound=14960, divorce_buffer=30)
        ...
        ledger.close_position("AAPL")
    """

    def __init__(self):
        self._positions: Dict[str, Position] = {}
        self._pending: Dict[str, PendingBuyOrder] = {}

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    def open_pending_buy(self, symbol: str, order_id: str, shares: int, price: int) -> PendingBuyOrder:
        """Record a placed limit buy."""
        if symbol in self._positions:
            raise LedgerInvariantError(f"{symbol}: buy placed while a position is open")
        if symbol in self._pending:
            raise LedgerInvariantError(f"{symbol}: second pending buy (existing order {self._pending[symbol].order_id})")
        if shares <= 0:
            raise LedgerInvariantError(f"{symbol}: pending buy for {shares} shares")

        order = PendingBuyOrder(symbol, str(order_id), shares, price)
        self._pending[symbol] = order
        logger.debug("Pending buy %s: %d @ %d (order %s)", symbol, shares, price, order_id)
        return order

    def confirm_fill(
        self,
        symbol: str,
        filled_shares: int,
        filled_price: int,
        lower_bound: int,
        divorce_buffer: int,
    ) -> Position:
        """Turn the symbol's pending buy into a position."""
        if symbol in self._positions:
            raise LedgerInvariantError(f"{symbol}: fill confirmed while a position is open")
        pending = self._pending.get(symbol)
        if pending is None:
            raise LedgerInvariantError(f"{symbol}: fill confirmed with no pending buy")
        if filled_shares <= 0:
            raise LedgerInvariantError(f"{symbol}: fill for {filled_shares} shares")

        del self._pending[symbol]
        position = Position(
            symbol=symbol,
            purchase_price=filled_price,
            shares=filled_shares,
            lower_bound=lower_bound,
            divorce_buffer=divorce_buffer,
            order_id=pending.order_id,
        )
        self._positions[symbol] = position
        return position

    def cancel_pending_buy(self, symbol: str) -> PendingBuyOrder:
        """Forget the symbol's pending buy and return it."""
        pending = self._pending.pop(symbol, None)
        if pending is None:
            raise LedgerInvariantError(f"{symbol}: no pending buy to cancel")
        return pending

    def close_position(self, symbol: str) -> Position:
        """Remove and return the symbol's position."""
        position = self._positions.pop(symbol, None)
        if position is None:
            raise LedgerInvariantError(f"{symbol}: no position to close")
        return position

    def update_lower_bound(self, symbol: str, new_bound: int) -> Position:
        """Raise a position's trailing lower bound. Lowering it is an error."""
        position = self._positions.get(symbol)
        if position is None:
            raise LedgerInvariantError(f"{symbol}: no position to update")
        if new_bound < position.lower_bound:
            raise LedgerInvariantError(
                f"{symbol}: lower bound would drop from {position.lower_bound} to {new_bound}"
            )
        position.lower_bound = new_bound
        return position

    def clear(self) -> None:
        self._positions.clear()
        self._pending.clear()

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def has_position(self, symbol: str) -> bool:
        return symbol in self._positions

    def has_pending_buy(self, symbol: str) -> bool:
        return symbol in self._pending

    def get_position(self, symbol: str) -> Optional[Position]:
        return self._positions.get(symbol)

    def get_pending_buy(self, symbol: str) -> Optional[PendingBuyOrder]:
        return self._pending.get(symbol)

    def all_open_positions(self) -> List[Position]:
        return list(self._positions.values())

    def all_pending_buys(self) -> List[PendingBuyOrder]:
        return list(self._pending.values())

    def is_flat(self) -> bool:
        """No positions and no pending buys"""
        return not self._positions and not self._pending
