"""
Depth-anchored initial ladder placement.

The ladder starts one tick below the first bid level at which the
cumulative bid value (best first) exceeds the depth threshold, so there
is always a cushion of resting liquidity ahead of our orders.
"""
from __future__ import annotations

from typing import Optional

from predict_ladder_bot.exchange.gateway import MarketBid
from predict_ladder_bot.utils.price_helpers import DEFAULT_TICK_SIZE, price_to_ticks, ticks_to_price

DEFAULT_SCAN_DEPTH = 6
DEFAULT_MAX_ORDERS = 5
DEFAULT_MIN_DEPTH_USD = 500.0


def find_depth_index(
    bids: list[MarketBid],
    min_depth_usd: float = DEFAULT_MIN_DEPTH_USD,
    scan_depth: int = DEFAULT_SCAN_DEPTH,
) -> Optional[int]:
    """Smallest index k < scan_depth where sum(value[0..k]) > min_depth_usd, else None."""
    cumulative = 0.0
    for i, bid in enumerate(bids[:scan_depth]):
        cumulative += bid.value
        if cumulative > min_depth_usd:
            return i
    return None


def ladder_anchor(
    bids: list[MarketBid],
    min_depth_usd: float = DEFAULT_MIN_DEPTH_USD,
    tick_size: float = DEFAULT_TICK_SIZE,
    scan_depth: int = DEFAULT_SCAN_DEPTH,
) -> Optional[float]:
    """Highest price of a fresh ladder, or None when depth is insufficient."""
    k = find_depth_index(bids, min_depth_usd, scan_depth)
    if k is None:
        return None
    return ticks_to_price(price_to_ticks(bids[k].price, tick_size) - 1, tick_size)


def initial_ladder_prices(
    bids: list[MarketBid],
    min_depth_usd: float = DEFAULT_MIN_DEPTH_USD,
    tick_size: float = DEFAULT_TICK_SIZE,
    max_orders: int = DEFAULT_MAX_ORDERS,
    scan_depth: int = DEFAULT_SCAN_DEPTH,
) -> list[float]:
    """
    Prices for a new ladder, highest first.

    Args:
        bids: Bid levels, best first
        min_depth_usd: Cumulative value that must rest ahead of the ladder
        tick_size: Price increment between rungs
        max_orders: Ladder size cap
        scan_depth: How many bid levels to consider for the anchor

    Returns:
        Strictly decreasing tick-aligned prices, all > 0. Empty when the
        first scan_depth levels never exceed min_depth_usd. The deeper the
        anchor sits in the book, the fewer rungs are placed
        (min(max_orders, scan_depth - k)).
    """
    k = find_depth_index(bids, min_depth_usd, scan_depth)
    if k is None:
        return []

    anchor_ticks = price_to_ticks(bids[k].price, tick_size) - 1
    count = min(max_orders, scan_depth - k)

    prices: list[float] = []
    for i in range(count):
        ticks = anchor_ticks - i
        if ticks <= 0:
            break
        prices.append(ticks_to_price(ticks, tick_size))
    return prices
