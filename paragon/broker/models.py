"""
Broker Response Models
======================
Typed views of the Tradier JSON payloads. Parsing happens here, at the edge,
so the engine never touches raw dictionaries. Anything that does not look like
the documented shape raises BrokerDataError. Quotes are the exception: a
bad entry only blanks that symbol's quote.

Tradier collapses one-element lists into a bare object (and empty lists into
``null`` or the string ``"null"``), so every list field goes through
``_as_list``.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, List, Optional

from ..utils.money import to_cents


logger = logging.getLogger("paragon.broker.models")


class BrokerError(Exception):
    """Transport, HTTP or API-reported failure"""
    pass


class BrokerDataError(BrokerError):
    """Response did not have the expected shape"""
    pass


class OrderSide(Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(Enum):
    MARKET = "market"
    LIMIT = "limit"


class OrderStatus(Enum):
    """Tradier order states"""
    OPEN = "open"
    PENDING = "pending"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    CANCELED = "canceled"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CALCULATED = "calculated"
    ACCEPTED_FOR_BIDDING = "accepted_for_bidding"
    ERROR = "error"
    PENDING_CANCEL = "pending_cancel"

    @property
    def is_dead(self) -> bool:
        """Will never fill (further)"""
        return self in (
            OrderStatus.CANCELED,
            OrderStatus.REJECTED,
            OrderStatus.EXPIRED,
            OrderStatus.ERROR,
        )


@dataclass(frozen=True)
class Quote:
    """Latest quote for one symbol (cents). Fields are None before the first trade."""
    symbol: str
    last: Optional[int]
    low: Optional[int]
    high: Optional[int]


@dataclass(frozen=True)
class AccountBalance:
    total_equity: int
    cash_available: int


@dataclass(frozen=True)
class OrderAck:
    """Broker acknowledgement of a placed order"""
    order_id: str
    status: str
    symbol: str = ""
    side: str = ""
    quantity: int = 0
    price: Optional[int] = None


@dataclass(frozen=True)
class OrderState:
    """Current status of an order"""
    order_id: str
    status: OrderStatus
    filled_shares: int
    avg_fill_price: Optional[int]


@dataclass(frozen=True)
class MarketDay:
    """One calendar day; times are US/Eastern wall clock"""
    day: date
    is_open: bool
    opens_at: Optional[time] = None
    closes_at: Optional[time] = None


# ============================================================================
# PARSING HELPERS
# ============================================================================

def _as_list(value: Any) -> List[Any]:
    if value is None or value == "null":
        return []
    if isinstance(value, list):
        return value
    return [value]


def _section(payload: Any, key: str) -> Any:
    if not isinstance(payload, dict) or key not in payload:
        raise BrokerDataError(f"Response missing '{key}'")
    return payload[key]


def _cents(value: Any, field_name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise BrokerDataError(f"'{field_name}' is not a number: {value!r}")
    try:
        return to_cents(value)
    except ArithmeticError as e:
        raise BrokerDataError(f"'{field_name}' is not a number: {value!r}") from e


def _required_cents(obj: Dict[str, Any], field_name: str) -> int:
    value = _cents(obj.get(field_name), field_name)
    if value is None:
        raise BrokerDataError(f"Response missing '{field_name}'")
    return value


def _int(value: Any, field_name: str) -> int:
    if value is None:
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError) as e:
        raise BrokerDataError(f"'{field_name}' is not a number: {value!r}") from e


def _clock(value: Any) -> Optional[time]:
    if not value:
        return None
    try:
        return datetime.strptime(str(value), "%H:%M").time()
    except ValueError as e:
        raise BrokerDataError(f"Bad clock time: {value!r}") from e


# ============================================================================
# PARSERS
# ============================================================================

def parse_quotes(payload: Any) -> Dict[str, Quote]:
    """``{"quotes": {"quote": obj | [obj]}}`` -> {symbol: Quote}"""
    quotes = _section(payload, "quotes")
    if quotes is None or quotes == "null":
        return {}
    if not isinstance(quotes, dict):
        raise BrokerDataError("'quotes' is not an object")

    result = {}
    for raw in _as_list(quotes.get("quote")):
        if not isinstance(raw, dict) or not raw.get("symbol"):
            logger.warning("Skipping quote without a symbol: %r", raw)
            continue
        symbol = str(raw["symbol"])
        try:
            result[symbol] = Quote(
                symbol=symbol,
                last=_cents(raw.get("last"), "last"),
                low=_cents(raw.get("low"), "low"),
                high=_cents(raw.get("high"), "high"),
            )
        except BrokerDataError as e:
            logger.warning("%s: unusable quote: %s", symbol, e)
            result[symbol] = Quote(symbol=symbol, last=None, low=None, high=None)
    return result


def parse_balance(payload: Any) -> AccountBalance:
    """``{"balances": {"total_equity": .., "cash": {"cash_available": ..}}}``"""
    balances = _section(payload, "balances")
    if not isinstance(balances, dict):
        raise BrokerDataError("'balances' is not an object")

    total_equity = _required_cents(balances, "total_equity")

    cash = balances.get("cash")
    margin = balances.get("margin")
    if isinstance(cash, dict) and cash.get("cash_available") is not None:
        cash_available = _required_cents(cash, "cash_available")
    elif isinstance(margin, dict) and margin.get("stock_buying_power") is not None:
        cash_available = _required_cents(margin, "stock_buying_power")
    else:
        cash_available = _cents(balances.get("total_cash"), "total_cash") or 0

    return AccountBalance(total_equity=total_equity, cash_available=cash_available)


def parse_order_ack(payload: Any, symbol: str = "", side: str = "", quantity: int = 0,
                    price: Optional[int] = None) -> OrderAck:
    """``{"order": {"id": .., "status": "ok"}}``"""
    order = _section(payload, "order")
    if not isinstance(order, dict) or order.get("id") is None:
        raise BrokerDataError(f"Malformed order acknowledgement: {order!r}")
    return OrderAck(
        order_id=str(order["id"]),
        status=str(order.get("status", "")),
        symbol=symbol,
        side=side,
        quantity=quantity,
        price=price,
    )


def parse_order_state(payload: Any) -> OrderState:
    """``{"order": {"id", "status", "exec_quantity", "avg_fill_price"}}``"""
    order = _section(payload, "order")
    if not isinstance(order, dict) or order.get("id") is None:
        raise BrokerDataError(f"Malformed order: {order!r}")
    try:
        status = OrderStatus(str(order.get("status")))
    except ValueError as e:
        raise BrokerDataError(f"Unknown order status: {order.get('status')!r}") from e

    filled = _int(order.get("exec_quantity"), "exec_quantity")
    avg_price = _cents(order.get("avg_fill_price"), "avg_fill_price")
    if avg_price == 0 and filled == 0:
        avg_price = None

    return OrderState(
        order_id=str(order["id"]),
        status=status,
        filled_shares=filled,
        avg_fill_price=avg_price,
    )


def parse_watchlist(payload: Any) -> List[str]:
    """``{"watchlist": {"items": {"item": obj | [obj] | null}}}`` -> symbols in order"""
    watchlist = _section(payload, "watchlist")
    if not isinstance(watchlist, dict):
        raise BrokerDataError("'watchlist' is not an object")

    items = watchlist.get("items")
    if items is None or items == "null":
        return []
    if not isinstance(items, dict):
        raise BrokerDataError("'items' is not an object")

    symbols = []
    for item in _as_list(items.get("item")):
        if not isinstance(item, dict) or not item.get("symbol"):
            raise BrokerDataError(f"Malformed watchlist item: {item!r}")
        if item["symbol"] not in symbols:
            symbols.append(item["symbol"])
    return symbols


def parse_calendar(payload: Any) -> List[MarketDay]:
    """``{"calendar": {"days": {"day": [{"date", "status", "open": {"start", "end"}}]}}}``"""
    calendar = _section(payload, "calendar")
    if not isinstance(calendar, dict):
        raise BrokerDataError("'calendar' is not an object")
    days = calendar.get("days")
    if not isinstance(days, dict):
        raise BrokerDataError("'days' is not an object")

    result = []
    for raw in _as_list(days.get("day")):
        if not isinstance(raw, dict) or not raw.get("date"):
            raise BrokerDataError(f"Malformed calendar day: {raw!r}")
        try:
            day = date.fromisoformat(raw["date"])
        except ValueError as e:
            raise BrokerDataError(f"Bad calendar date: {raw['date']!r}") from e

        is_open = raw.get("status") == "open"
        hours = raw.get("open") if isinstance(raw.get("open"), dict) else {}
        result.append(
            MarketDay(
                day=day,
                is_open=is_open,
                opens_at=_clock(hours.get("start")) if is_open else None,
                closes_at=_clock(hours.get("end")) if is_open else None,
            )
        )
    return result


def raise_for_api_errors(payload: Any) -> None:
    """Tradier reports request failures as ``{"errors": {"error": msg | [msg]}}``."""
    if isinstance(payload, dict) and "errors" in payload:
        errors = payload["errors"]
        messages = _as_list(errors.get("error")) if isinstance(errors, dict) else [errors]
        raise BrokerError("; ".join(str(m) for m in messages) or "API error")
