# Paragon Broker Module
# =====================
# Broker interface, typed responses and the Tradier client

from .base import Broker
from .models import (
    BrokerError,
    BrokerDataError,
    OrderSide,
    OrderStatus,
    Quote,
    AccountBalance,
    OrderAck,
    OrderState,
    MarketDay,
)
from .tradier import TradierClient

__all__ = [
    "Broker",
    "BrokerError",
    "BrokerDataError",
    "OrderSide",
    "OrderStatus",
    "Quote",
    "AccountBalance",
    "OrderAck",
    "OrderState",
    "MarketDay",
    "TradierClient",
]
