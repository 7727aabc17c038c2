"""Order book snapshots."""
from __future__ import annotations

from predict_ladder_bot.market_data.orderbook import OrderBookProvider, depth_above

__all__ = [
    "OrderBookProvider",
    "depth_above",
]
