"""
Tradier Broker Client
=====================
REST client for the Tradier brokerage API (https://documentation.tradier.com).

Read-only calls are retried on transport errors and 5xx responses. Order
placement is never retried: a timed-out POST may still have reached the
exchange.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..core.config import BrokerConfig
from ..utils.money import format_dollars
from .base import Broker
from .models import (
    AccountBalance,
    BrokerDataError,
    BrokerError,
    MarketDay,
    OrderAck,
    OrderSide,
    OrderState,
    OrderType,
    Quote,
    parse_balance,
    parse_calendar,
    parse_order_ack,
    parse_order_state,
    parse_quotes,
    parse_watchlist,
    raise_for_api_errors,
)

logger = logging.getLogger("paragon.broker.tradier")


class TradierClient(Broker):
    """
    Tradier brokerage over httpx.

    Usage:
        client = TradierClient(config.broker)
        quotes = await client.get_quotes(["AAPL", "MSFT"])
        await client.close()
    """

    WATCHLIST = "default"

    def __init__(
        self,
        config: BrokerConfig,
        client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        self.config = config
        self.account = config.account
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        headers = {
            "Authorization": f"Bearer {config.token}",
            "Accept": "application/json",
        }
        if client is None:
            client = httpx.AsyncClient(
                base_url=config.endpoint.rstrip("/") + "/",
                headers=headers,
                timeout=config.timeout,
            )
        else:
            client.headers.update(headers)
        self.client = client

    # ==================== Market Data ====================

    async def get_quotes(self, symbols: Sequence[str]) -> Dict[str, Quote]:
        if not symbols:
            return {}
        payload = await self._request("GET", "markets/quotes", params={"symbols": ",".join(symbols)})
        return parse_quotes(payload)

    async def get_market_calendar(self, month: Optional[int] = None, year: Optional[int] = None) -> List[MarketDay]:
        params = {}
        if month is not None:
            params["month"] = month
        if year is not None:
            params["year"] = year
        payload = await self._request("GET", "markets/calendar", params=params or None)
        return parse_calendar(payload)

    # ==================== Account ====================

    async def get_account_balance(self) -> AccountBalance:
        payload = await self._request("GET", f"accounts/{self.account}/balances")
        return parse_balance(payload)

    async def get_watchlist(self) -> List[str]:
        payload = await self._request("GET", f"watchlists/{self.WATCHLIST}")
        return parse_watchlist(payload)

    # ==================== Orders ====================

    async def place_limit_order(self, symbol: str, side: OrderSide, quantity: int, price: int) -> OrderAck:
        data = self._order_form(symbol, side, quantity, OrderType.LIMIT)
        data["price"] = format_dollars(price)
        logger.debug("Placing %s limit %s %d @ %s", side.value, symbol, quantity, data["price"])
        payload = await self._request("POST", f"accounts/{self.account}/orders", data=data, retry=False)
        return parse_order_ack(payload, symbol, side.value, quantity, price)

    async def place_market_order(self, symbol: str, side: OrderSide, quantity: int) -> OrderAck:
        data = self._order_form(symbol, side, quantity, OrderType.MARKET)
        logger.debug("Placing %s market %s %d", side.value, symbol, quantity)
        payload = await self._request("POST", f"accounts/{self.account}/orders", data=data, retry=False)
        return parse_order_ack(payload, symbol, side.value, quantity)

    async def cancel_order(self, order_id: str) -> None:
        payload = await self._request("DELETE", f"accounts/{self.account}/orders/{order_id}", retry=False)
        parse_order_ack(payload)

    async def get_order_status(self, order_id: str) -> OrderState:
        payload = await self._request("GET", f"accounts/{self.account}/orders/{order_id}")
        return parse_order_state(payload)

    async def close(self) -> None:
        await self.client.aclose()

    # ==================== HTTP Helper Methods ====================

    @staticmethod
    def _order_form(symbol: str, side: OrderSide, quantity: int, order_type: OrderType) -> Dict[str, Any]:
        return {
            "class": "equity",
            "symbol": symbol,
            "side": side.value,
            "quantity": str(quantity),
            "type": order_type.value,
            "duration": "day",
        }

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        retry: bool = True,
    ) -> Any:
        """
        Make an HTTP request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Path relative to the API endpoint
            params: Query parameters
            data: Form body
            retry: Retry transport errors and 5xx responses

        Raises:
            BrokerError: transport failure, HTTP error or API-reported error
            BrokerDataError: body is not JSON
        """
        attempts = self.max_retries if retry else 1

        for attempt in range(attempts):
            try:
                response = await self.client.request(method, path, params=params, data=data)
                response.raise_for_status()
                break

            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                logger.warning(
                    "%s %s: HTTP %d on attempt %d/%d", method, path, status, attempt + 1, attempts
                )
                if status < 500 or attempt == attempts - 1:
                    raise BrokerError(f"{method} {path}: HTTP {status}: {e.response.text[:200]}") from e

            except httpx.HTTPError as e:
                logger.warning(
                    "%s %s: %s on attempt %d/%d", method, path, e, attempt + 1, attempts
                )
                if attempt == attempts - 1:
                    raise BrokerError(f"{method} {path}: {e}") from e

            await asyncio.sleep(self.retry_delay * (attempt + 1))

        try:
            payload = response.json()
        except ValueError as e:
            raise BrokerDataError(f"{method} {path}: response is not JSON") from e

        raise_for_api_errors(payload)
        return payload
