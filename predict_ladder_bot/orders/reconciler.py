"""Synchronization of tracked ladders with the exchange's open-order list."""
from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Optional

from predict_ladder_bot.exchange.gateway import OrderGateway, OrderSide, RemoteOrder
from predict_ladder_bot.market.tracking import TrackedMarket, TrackedOrder
from predict_ladder_bot.orders.storage import OrderStore
from predict_ladder_bot.utils.price_helpers import DEFAULT_TICK_SIZE, round_to_tick

logger = logging.getLogger(__name__)


def price_from_amounts(
    side: Optional[OrderSide],
    maker_amount: Optional[Decimal],
    taker_amount: Optional[Decimal],
    tick_size: float = DEFAULT_TICK_SIZE,
) -> float:
    """
    Per-share price of an order from its signed amounts.

    A BUY pays collateral (maker) for shares (taker), so price = maker / taker.
    A SELL gives shares for collateral, so price = taker / maker.

    Raises:
        ValueError: unknown side or missing/non-positive amounts
    """
    if side is None:
        raise ValueError("unknown order side")
    if maker_amount is None or taker_amount is None:
        raise ValueError("missing maker/taker amount")
    if maker_amount <= 0 or taker_amount <= 0:
        raise ValueError(f"non-positive amounts maker={maker_amount} taker={taker_amount}")

    if side == OrderSide.BUY:
        ratio = maker_amount / taker_amount
    else:
        ratio = taker_amount / maker_amount
    return round_to_tick(float(ratio), tick_size)


class OrderReconciler:
    """
    Makes the exchange the source of truth for which of our orders rest.

    Orders the exchange lists but we do not track are adopted (and saved to
    the store); tracked orders it no longer lists are dropped silently, since
    they were filled or cancelled elsewhere and do not count as our
    cancellations.
    """

    def __init__(self, gateway: OrderGateway, store: OrderStore, tick_size: float = DEFAULT_TICK_SIZE):
        self.gateway = gateway
        self.store = store
        self.tick_size = tick_size

    def reconcile(self, markets: list[TrackedMarket]) -> bool:
        """
        Sync every tracked market against the full open-order listing.

        Returns False (and changes nothing) if the listing could not be
        fetched in full.
        """
        try:
            remote_orders = self.gateway.list_all_open_orders()
        except Exception as e:
            logger.warning("Open-order sync skipped, listing failed: %s", e)
            return False

        by_market: dict[int, list[RemoteOrder]] = defaultdict(list)
        for order in remote_orders:
            by_market[order.market_id].append(order)

        for market in markets:
            self._reconcile_market(market, by_market.get(market.id, []))
        return True

    def _reconcile_market(self, market: TrackedMarket, remote_orders: list[RemoteOrder]) -> None:
        tracked_refs = market.order_refs()
        remote_refs: set[str] = set()

        for remote in remote_orders:
            remote_refs.add(remote.order_ref)
            if remote.order_ref in tracked_refs:
                continue

            try:
                price = price_from_amounts(remote.side, remote.maker_amount, remote.taker_amount, self.tick_size)
            except ValueError as e:
                logger.warning("[%s] Cannot price untracked order %s...: %s", market.id, remote.order_ref[:10], e)
                continue

            logger.info("[%s] Adopting untracked order %s... @ %.3f", market.id, remote.order_ref[:10], price)
            market.orders.append(TrackedOrder(price=price, order_ref=remote.order_ref))
            tracked_refs.add(remote.order_ref)
            self.store.add_order(remote.order_ref, remote.order_id, market.id, market.title)

        stale = tracked_refs - remote_refs
        if stale:
            market.remove_refs(stale)
            for ref in stale:
                self.store.delete_order(ref)
            logger.info("[%s] Dropped %d order(s) no longer open on the exchange", market.id, len(stale))

        market.sort_orders()
