"""Order placement and batch cancellation for ladder rungs."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from predict_ladder_bot.config.models import LadderConfig
from predict_ladder_bot.exchange.gateway import CancelRequest, MarketBid, OrderGateway, OrderSide, OrderType
from predict_ladder_bot.market.tracking import TrackedMarket, TrackedOrder
from predict_ladder_bot.orders.storage import OrderStore
from predict_ladder_bot.strategy.cooldown import record_cancellations
from predict_ladder_bot.strategy.initializer import ladder_anchor
from predict_ladder_bot.utils.price_helpers import is_valid_price, price_to_ticks, ticks_to_price

logger = logging.getLogger(__name__)


class LadderOrderPlacer:
    """
    Places and cancels ladder orders, keeping the TrackedMarket in step.

    Responsibilities:
    - Open BUY limit orders at given rungs
    - Cancel a set of tracked orders in one batch
    - Count confirmed cancellations towards the market's cooldown
    - Clear every open order on the account
    """

    def __init__(
        self,
        gateway: OrderGateway,
        cfg: Optional[LadderConfig] = None,
        clock: Callable[[], float] = time.time,
        store: Optional[OrderStore] = None,
    ):
        self.gateway = gateway
        self.cfg = cfg or LadderConfig()
        self.clock = clock
        self.store = store

    # ── placement ─────────────────────────────────────────────

    def place_buy(self, market: TrackedMarket, price: float) -> Optional[TrackedOrder]:
        """
        Open one BUY limit order and track it.

        Returns:
            The new TrackedOrder, or None if the price is out of range or the
            exchange rejected it
        """
        if not is_valid_price(price, self.cfg.tick_size):
            logger.warning("[%s] Refusing order @ %.3f: outside (0, 1)", market.id, price)
            return None

        result = self.gateway.open_order(
            market_id=market.id,
            amount_usd=self.cfg.order_amount_usd,
            price=price,
            side=OrderSide.BUY,
            order_type=OrderType.LIMIT,
        )
        if not result.success or not result.order_ref:
            logger.warning("[%s] Order @ %.3f not placed: %s", market.id, price, result.error)
            return None

        order = TrackedOrder(price=price, order_ref=result.order_ref)
        market.orders.append(order)
        market.sort_orders()
        return order

    def open_bottom(self, market: TrackedMarket, count: int, bids: list[MarketBid]) -> int:
        """
        Place up to count orders below the ladder, descending one tick at a time.

        An empty ladder starts from the depth anchor of bids instead. Stops
        before a price would reach zero. Returns the number placed.
        """
        if count <= 0:
            return 0

        tick = self.cfg.tick_size
        if market.orders:
            start_ticks = price_to_ticks(market.bottom.price, tick) - 1
        else:
            anchor = ladder_anchor(bids, self.cfg.min_depth_usd, tick, self.cfg.scan_depth)
            if anchor is None:
                logger.info("[%s] Insufficient depth, cannot place orders", market.id)
                return 0
            start_ticks = price_to_ticks(anchor, tick)

        placed = 0
        for i in range(count):
            ticks = start_ticks - i
            if ticks <= 0:
                break
            if self.place_buy(market, ticks_to_price(ticks, tick)) is not None:
                placed += 1
        return placed

    def open_top(self, market: TrackedMarket, count: int) -> int:
        """
        Place up to count orders above the ladder, ascending one tick at a time
        from just over the current top.

        A rejected rung is left empty. Stops before a price would reach 1.0.
        Returns the number placed.
        """
        if count <= 0 or market.top is None:
            return 0

        tick = self.cfg.tick_size
        ceiling = price_to_ticks(1.0, tick)
        start_ticks = price_to_ticks(market.top.price, tick) + 1

        placed = 0
        for i in range(count):
            ticks = start_ticks + i
            if ticks >= ceiling:
                break
            if self.place_buy(market, ticks_to_price(ticks, tick)) is not None:
                placed += 1
        return placed

    # ── cancellation ──────────────────────────────────────────

    def _stored_details(self, order_ref: str) -> Optional[dict[str, Any]]:
        if self.store is None:
            return None
        record = self.store.get_order(order_ref)
        details = record.get("details") if record else None
        if isinstance(details, dict) and isinstance(details.get("order"), dict):
            return details
        return None

    def cancel_request_for(self, order_ref: str, market_id: int) -> Optional[CancelRequest]:
        """
        Build the cancel request for one order.

        Flags and signed payload come from the details cached in the order
        store; the gateway is asked only when nothing usable is stored.
        Returns None when neither source has them.
        """
        stored = self._stored_details(order_ref)
        if stored is not None:
            return CancelRequest(
                order_ref=order_ref,
                market_id=market_id,
                is_neg_risk=bool(stored.get("isNegRisk", False)),
                is_yield_bearing=bool(stored.get("isYieldBearing", False)),
                payload=stored["order"],
            )

        try:
            details = self.gateway.get_order(order_ref)
        except Exception as e:
            logger.warning("[%s] No details for order %s..., not cancelling it: %s", market_id, order_ref[:10], e)
            return None
        return CancelRequest(
            order_ref=order_ref,
            market_id=market_id,
            is_neg_risk=details.is_neg_risk,
            is_yield_bearing=details.is_yield_bearing,
            payload=details.payload,
        )

    def cancel_orders(self, market: TrackedMarket, orders: list[TrackedOrder]) -> int:
        """
        Cancel orders in one gateway batch.

        Orders whose details can't be found are left alone. Only the
        references of groups the gateway confirmed are untracked, and only
        those count towards the cooldown.

        Returns:
            Number of orders actually cancelled
        """
        cancel_requests: list[CancelRequest] = []
        for order in orders:
            req = self.cancel_request_for(order.order_ref, market.id)
            if req is not None:
                cancel_requests.append(req)

        if not cancel_requests:
            return 0

        try:
            result = self.gateway.cancel_orders(cancel_requests)
        except Exception as e:
            logger.error("[%s] Batch cancel of %d order(s) failed: %s", market.id, len(cancel_requests), e)
            return 0

        requested = {r.order_ref for r in cancel_requests}
        cancelled = result.cancelled_refs & requested
        if not result.success:
            logger.warning("[%s] Batch cancel partial: %d/%d confirmed", market.id, len(cancelled), len(requested))

        removed = market.remove_refs(cancelled)
        record_cancellations(
            market,
            removed,
            self.clock(),
            threshold=self.cfg.cancel_threshold,
            cooldown_sec=self.cfg.cooldown_sec,
        )
        return removed

    def cancel_top(self, market: TrackedMarket, count: int) -> int:
        return self.cancel_orders(market, market.orders[:max(count, 0)])

    def cancel_bottom(self, market: TrackedMarket, count: int) -> int:
        if count <= 0:
            return 0
        return self.cancel_orders(market, market.orders[-count:])

    def cancel_all(self, market: TrackedMarket) -> int:
        return self.cancel_orders(market, list(market.orders))

    def cancel_account_orders(self, markets: list[TrackedMarket]) -> int:
        """
        Cancel every open order on the account, tracked or not.

        Confirmed references are dropped from whichever of markets tracks
        them. Operator-driven, so nothing counts towards a cooldown. A failed
        listing cancels nothing.

        Returns:
            Number of orders cancelled
        """
        try:
            remote = self.gateway.list_all_open_orders()
        except Exception as e:
            logger.error("Cannot list open orders, nothing cancelled: %s", e)
            return 0

        if not remote:
            logger.info("No open orders to cancel")
            return 0

        cancel_requests = [
            req for req in (self.cancel_request_for(o.order_ref, o.market_id) for o in remote)
            if req is not None
        ]
        if not cancel_requests:
            return 0

        try:
            result = self.gateway.cancel_orders(cancel_requests)
        except Exception as e:
            logger.error("Cancel of %d open order(s) failed: %s", len(cancel_requests), e)
            return 0

        cancelled = result.cancelled_refs & {r.order_ref for r in cancel_requests}
        for market in markets:
            market.remove_refs(cancelled)
        logger.info("Cancelled %d/%d open order(s)", len(cancelled), len(remote))
        return len(cancelled)
