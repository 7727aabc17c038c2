from __future__ import annotations

import logging

from predict_ladder_bot.exchange.gateway import MarketBid, OrderGateway
from predict_ladder_bot.utils.price_helpers import DEFAULT_TICK_SIZE, price_to_ticks

logger = logging.getLogger(__name__)


def depth_above(bids: list[MarketBid], price: float, tick_size: float = DEFAULT_TICK_SIZE) -> float:
  """
  Sum of bid value strictly above price.

  bids must be best first; the walk stops at the first bid at or below price.
  Prices are compared in ticks so 0.1 + 0.2 style drift cannot flip a level.
  """
  limit = price_to_ticks(price, tick_size)
  total = 0.0
  for bid in bids:
    if price_to_ticks(bid.price, tick_size) <= limit:
      break
    total += bid.value
  return total


class OrderBookProvider:
  """Fetches bid snapshots through the gateway, degrading to an empty book."""

  def __init__(self, gateway: OrderGateway):
    self.gateway = gateway

  def fetch_order_book(self, market_id: int) -> list[MarketBid]:
    try:
      return self.gateway.fetch_order_book(market_id)
    except Exception as e:
      logger.warning("[%s] Order book fetch failed: %s", market_id, e)
      return []
