"""
Broker Interface
================
The operations the session engine needs from a brokerage. Money is integer
cents on both sides of this interface.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from .models import AccountBalance, MarketDay, OrderAck, OrderSide, OrderState, Quote


class Broker(ABC):
    """Async brokerage client"""

    @abstractmethod
    async def get_quotes(self, symbols: Sequence[str]) -> Dict[str, Quote]:
        """Latest quote per symbol. Unknown symbols are left out."""

    @abstractmethod
    async def get_account_balance(self) -> AccountBalance:
        ...

    @abstractmethod
    async def place_limit_order(self, symbol: str, side: OrderSide, quantity: int, price: int) -> OrderAck:
        ...

    @abstractmethod
    async def place_market_order(self, symbol: str, side: OrderSide, quantity: int) -> OrderAck:
        ...

    @abstractmethod
    async def cancel_order(self, order_id: str) -> None:
        ...

    @abstractmethod
    async def get_order_status(self, order_id: str) -> OrderState:
        ...

    @abstractmethod
    async def get_watchlist(self) -> List[str]:
        """Symbols on the trading watchlist, in order"""

    @abstractmethod
    async def get_market_calendar(self, month: Optional[int] = None, year: Optional[int] = None) -> List[MarketDay]:
        ...

    async def close(self) -> None:
        """Release network resources"""
        return None
