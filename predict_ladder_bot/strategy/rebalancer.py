"""
Per-tick ladder maintenance.

Each pass, for a market that is not cooling down:

1. trim the ladder to max_orders by cancelling the lowest rungs
2. refill missing rungs at the bottom
3. shift the ladder down when the book has fallen to (or thinned above) our
   top order, or up when the best bid has moved more than a tick above it
   and there is enough value resting ahead of the new levels

Shifts always cancel first and then place as many orders as were actually
cancelled.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TYPE_CHECKING

from predict_ladder_bot.config.models import LadderConfig
from predict_ladder_bot.exchange.gateway import MarketBid
from predict_ladder_bot.market.tracking import TrackedMarket, TrackedOrder
from predict_ladder_bot.market_data.orderbook import OrderBookProvider, depth_above
from predict_ladder_bot.strategy.cooldown import check_cooldown, in_cooldown
from predict_ladder_bot.utils.price_helpers import DEFAULT_TICK_SIZE, price_to_ticks, ticks_to_price

if TYPE_CHECKING:
    from predict_ladder_bot.orders.placer import LadderOrderPlacer

logger = logging.getLogger(__name__)


def down_shift_count(orders: list[TrackedOrder], best_bid: float, tick_size: float = DEFAULT_TICK_SIZE) -> int:
    """Orders priced at or above the best bid, at least 1, at most len(orders)."""
    best_ticks = price_to_ticks(best_bid, tick_size)
    n = 0
    for order in orders:
        if price_to_ticks(order.price, tick_size) >= best_ticks:
            n += 1
        else:
            break
    return min(max(1, n), len(orders))


def up_shift_count(
    bids: list[MarketBid],
    top_price: float,
    ladder_len: int,
    value_threshold: float,
    tick_size: float = DEFAULT_TICK_SIZE,
) -> int:
    """
    How many rungs the ladder may climb.

    Candidate levels are top + i ticks for i up to the tick gap to the best
    bid (capped at ladder_len); the count is the longest run from i = 1 whose
    depth above each level stays at or over value_threshold.
    """
    if not bids or ladder_len <= 0:
        return 0

    top_ticks = price_to_ticks(top_price, tick_size)
    gap = price_to_ticks(bids[0].price, tick_size) - top_ticks
    candidate = min(gap, ladder_len)

    valid = 0
    for i in range(1, candidate + 1):
        target = ticks_to_price(top_ticks + i, tick_size)
        if depth_above(bids, target, tick_size) >= value_threshold:
            valid = i
        else:
            break
    return valid


class LadderRebalancer:
    """Runs one maintenance pass per market per tick."""

    def __init__(
        self,
        provider: OrderBookProvider,
        placer: "LadderOrderPlacer",
        cfg: Optional[LadderConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self.placer = placer
        self.cfg = cfg or LadderConfig()
        self.clock = clock

    def rebalance(self, market: TrackedMarket) -> None:
        cfg = self.cfg

        if check_cooldown(market, self.clock()):
            if market.orders:
                remaining = int((market.cooldown_until - self.clock()) // 60) + 1
                logger.info(
                    "[%s] In cooldown (%d min left), cancelling %d order(s)",
                    market.id, remaining, len(market.orders),
                )
                self.placer.cancel_all(market)
            return

        if len(market.orders) > cfg.max_orders:
            excess = len(market.orders) - cfg.max_orders
            logger.info("[%s] Trimming %d excess order(s)", market.id, excess)
            self.placer.cancel_bottom(market, excess)
            if in_cooldown(market):
                return

        bids = self.provider.fetch_order_book(market.id)
        if not bids:
            return

        if len(market.orders) < cfg.max_orders:
            needed = cfg.max_orders - len(market.orders)
            logger.info("[%s] Placing %d order(s) at the bottom", market.id, needed)
            self.placer.open_bottom(market, needed, bids)

        if not market.orders:
            return

        tick = cfg.tick_size
        best_ticks = price_to_ticks(bids[0].price, tick)
        top = market.top.price
        top_ticks = price_to_ticks(top, tick)
        depth_above_top = depth_above(bids, top, tick)

        if best_ticks <= top_ticks or depth_above_top < cfg.value_threshold:
            n = down_shift_count(market.orders, bids[0].price, tick)
            logger.info(
                "[%s] Rebalancing down %d order(s) (best=%.3f top=%.3f depth=%.2f)",
                market.id, n, bids[0].price, top, depth_above_top,
            )
            cancelled = self.placer.cancel_top(market, n)
            if cancelled > 0 and not in_cooldown(market):
                self.placer.open_bottom(market, cancelled, bids)

        elif best_ticks > top_ticks + 1:
            n = up_shift_count(bids, top, len(market.orders), cfg.value_threshold, tick)
            if n > 0:
                logger.info("[%s] Rebalancing up %d order(s) (best=%.3f top=%.3f)", market.id, n, bids[0].price, top)
                cancelled = self.placer.cancel_bottom(market, n)
                if cancelled > 0 and not in_cooldown(market):
                    self.placer.open_top(market, cancelled)
