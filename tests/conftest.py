"""
Shared fakes and fixtures.

FakeGateway keeps an in-memory order book of our orders. Amounts are
stored so that maker / taker equals the order price, the same shape the
exchange reports for BUY orders.
"""
from __future__ import annotations

import itertools
from decimal import Decimal
from typing import Iterator, Optional

import pytest

from predict_ladder_bot.config.models import LadderConfig
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
from predict_ladder_bot.market.tracking import TrackedMarket, TrackedOrder
from predict_ladder_bot.market_data.orderbook import OrderBookProvider
from predict_ladder_bot.orders.placer import LadderOrderPlacer
from predict_ladder_bot.orders.storage import OrderStore
from predict_ladder_bot.position.liquidator import PositionLiquidator
from predict_ladder_bot.strategy.rebalancer import LadderRebalancer

SHARES = Decimal(100)


def make_bids(levels: list[tuple[float, float]]) -> list[MarketBid]:
    """Build bids from (price, value) pairs, best first."""
    return [MarketBid(price=p, quantity=v / p, value=v) for p, v in levels]


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway(OrderGateway):

    def __init__(self):
        self.books: dict[int, list[MarketBid]] = {}
        self.orders: dict[str, dict] = {}
        self.calls: list[str] = []
        self.failing_books: set[int] = set()
        self.failing_lookups: set[str] = set()
        self.failing_groups: set[tuple[bool, bool]] = set()
        self.rejected_prices: set[float] = set()
        self.list_fails = False
        self.extra_remote: list[RemoteOrder] = []
        self.neg_risk_refs: set[str] = set()
        self._ids = itertools.count(1)

    # ── helpers ───────────────────────────────────────────────

    def seed_order(
        self,
        market_id: int,
        price: float,
        status: OrderStatus = OrderStatus.OPEN,
        neg_risk: bool = False,
    ) -> str:
        n = next(self._ids)
        ref = f"0x{n:064x}"
        self.orders[ref] = {
            "market_id": market_id,
            "price": price,
            "status": status,
            "order_id": str(n),
            "neg_risk": neg_risk,
        }
        if neg_risk:
            self.neg_risk_refs.add(ref)
        return ref

    def open_prices(self, market_id: int) -> list[float]:
        return sorted(
            (o["price"] for o in self.orders.values()
             if o["market_id"] == market_id and o["status"] == OrderStatus.OPEN),
            reverse=True,
        )

    def count(self, call: str) -> int:
        return self.calls.count(call)

    # ── OrderGateway ──────────────────────────────────────────

    def fetch_order_book(self, market_id: int) -> list[MarketBid]:
        self.calls.append("fetch_order_book")
        if market_id in self.failing_books:
            raise GatewayError("book unavailable")
        return list(self.books.get(market_id, []))

    def open_order(
        self,
        market_id: int,
        amount_usd: str,
        price: float,
        side: OrderSide = OrderSide.BUY,
        order_type: OrderType = OrderType.LIMIT,
    ) -> OpenOrderResult:
        self.calls.append("open_order")
        if price in self.rejected_prices:
            return OpenOrderResult(success=False, error="rejected")
        ref = self.seed_order(market_id, price, neg_risk=False)
        return OpenOrderResult(success=True, order_ref=ref, order_id=self.orders[ref]["order_id"])

    def cancel_orders(self, cancel_requests: list[CancelRequest]) -> CancelResult:
        self.calls.append("cancel_orders")
        grouped: dict[tuple[bool, bool], list[CancelRequest]] = {}
        for req in cancel_requests:
            grouped.setdefault((req.is_neg_risk, req.is_yield_bearing), []).append(req)

        groups = []
        for key, reqs in grouped.items():
            ok = key not in self.failing_groups
            if ok:
                for r in reqs:
                    self.orders[r.order_ref]["status"] = OrderStatus.CANCELLED
            groups.append(CancelGroupResult(
                is_neg_risk=key[0],
                is_yield_bearing=key[1],
                order_refs=[r.order_ref for r in reqs],
                success=ok,
                error=None if ok else "group failed",
            ))
        return CancelResult(success=all(g.success for g in groups), groups=groups)

    def get_order(self, order_ref: str) -> OrderDetails:
        self.calls.append("get_order")
        if order_ref in self.failing_lookups or order_ref not in self.orders:
            raise GatewayError(f"order {order_ref} not found")
        o = self.orders[order_ref]
        return OrderDetails(
            order_ref=order_ref,
            status=o["status"],
            market_id=o["market_id"],
            side=OrderSide.BUY,
            maker_amount=Decimal(str(o["price"])) * SHARES,
            taker_amount=SHARES,
            is_neg_risk=o["neg_risk"],
            is_yield_bearing=False,
            order_id=o["order_id"],
            payload={"hash": order_ref},
        )

    def iter_open_orders(self) -> Iterator[RemoteOrder]:
        self.calls.append("list_open_orders")
        if self.list_fails:
            raise GatewayError("listing failed")
        for ref, o in list(self.orders.items()):
            if o["status"] != OrderStatus.OPEN:
                continue
            yield RemoteOrder(
                market_id=o["market_id"],
                order_ref=ref,
                side=OrderSide.BUY,
                maker_amount=Decimal(str(o["price"])) * SHARES,
                taker_amount=SHARES,
                order_id=o["order_id"],
            )
        yield from self.extra_remote


class FakeLiquidator(PositionLiquidator):

    def __init__(self, gateway: FakeGateway, sells: bool = False, raises: bool = False):
        self.gateway = gateway
        self.sells = sells
        self.raises = raises

    def liquidate_all_positions(self) -> bool:
        self.gateway.calls.append("liquidate")
        if self.raises:
            raise GatewayError("positions unavailable")
        return self.sells


def seed_ladder(gateway: FakeGateway, market: TrackedMarket, prices: list[float], neg_risk: Optional[set[float]] = None) -> None:
    """Rest orders at prices on the fake exchange and track them on market."""
    neg_risk = neg_risk or set()
    for price in prices:
        ref = gateway.seed_order(market.id, price, neg_risk=price in neg_risk)
        market.orders.append(TrackedOrder(price=price, order_ref=ref))
    market.sort_orders()


def prices_of(market: TrackedMarket) -> list[float]:
    return [o.price for o in market.orders]


@pytest.fixture
def ladder_cfg() -> LadderConfig:
    return LadderConfig(
        tick_size=0.001,
        max_orders=5,
        scan_depth=6,
        min_depth_usd=500.0,
        value_threshold=500.0,
        order_amount_usd="1",
        cancel_threshold=10,
        cooldown_sec=1800.0,
        tick_interval_sec=30.0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def store():
    s = OrderStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def market() -> TrackedMarket:
    return TrackedMarket(id=101, title="Will it rain tomorrow?")


@pytest.fixture
def placer(gateway, ladder_cfg, clock, store) -> LadderOrderPlacer:
    return LadderOrderPlacer(gateway, ladder_cfg, clock=clock, store=store)


@pytest.fixture
def rebalancer(gateway, placer, ladder_cfg, clock) -> LadderRebalancer:
    return LadderRebalancer(OrderBookProvider(gateway), placer, ladder_cfg, clock=clock)
