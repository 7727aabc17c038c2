"""Exchange access: the gateway interface and the Predict.fun REST client."""
from __future__ import annotations

from predict_ladder_bot.exchange.gateway import (
    CancelGroupResult,
    CancelRequest,
    CancelResult,
    GatewayError,
    MarketBid,
    OpenOrderResult,
    OrderDetails,
    OrderGateway,
    OrderSide,
    OrderStatus,
    OrderType,
    RemoteOrder,
)

__all__ = [
    "CancelGroupResult",
    "CancelRequest",
    "CancelResult",
    "GatewayError",
    "MarketBid",
    "OpenOrderResult",
    "OrderDetails",
    "OrderGateway",
    "OrderSide",
    "OrderStatus",
    "OrderType",
    "RemoteOrder",
]
