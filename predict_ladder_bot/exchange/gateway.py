"""Order execution gateway interface and the value types it exchanges with the core."""
from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterator, Optional


class GatewayError(RuntimeError):
    """A gateway call failed (transport error or unsuccessful API envelope)."""


class OrderSide(enum.IntEnum):
    BUY = 0
    SELL = 1

    @classmethod
    def parse(cls, raw: Any) -> Optional["OrderSide"]:
        """Map 0/1 or "BUY"/"SELL" to a side; anything else is None."""
        if isinstance(raw, bool):
            return None
        if isinstance(raw, int):
            return cls(raw) if raw in (0, 1) else None
        if isinstance(raw, str):
            value = raw.strip().upper()
            if value in ("0", "BUY"):
                return cls.BUY
            if value in ("1", "SELL"):
                return cls.SELL
        return None


class OrderType(str, enum.Enum):
    LIMIT = "LIMIT"
    MARKET = "MARKET"


class OrderStatus(str, enum.Enum):
    OPEN = "OPEN"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    INVALIDATED = "INVALIDATED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: Any) -> "OrderStatus":
        try:
            return cls(str(raw).upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class MarketBid:
    """One bid level. value is the level's notional (price * quantity)."""
    price: float
    quantity: float
    value: float

    @classmethod
    def from_level(cls, price: Any, quantity: Any) -> "MarketBid":
        p = float(price)
        q = float(quantity)
        return cls(price=p, quantity=q, value=p * q)


@dataclass(frozen=True)
class RemoteOrder:
    """An open order as reported by the exchange's open-order listing."""
    market_id: int
    order_ref: str
    side: Optional[OrderSide]
    maker_amount: Optional[Decimal]
    taker_amount: Optional[Decimal]
    order_id: Optional[str] = None


@dataclass(frozen=True)
class OrderDetails:
    order_ref: str
    status: OrderStatus
    market_id: Optional[int] = None
    side: Optional[OrderSide] = None
    maker_amount: Optional[Decimal] = None
    taker_amount: Optional[Decimal] = None
    is_neg_risk: bool = False
    is_yield_bearing: bool = False
    order_id: Optional[str] = None
    payload: Optional[dict[str, Any]] = None  # signed order body, needed to cancel


@dataclass
class OpenOrderResult:
    success: bool
    order_ref: Optional[str] = None
    order_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class CancelRequest:
    order_ref: str
    market_id: int
    is_neg_risk: bool
    is_yield_bearing: bool
    payload: Optional[dict[str, Any]] = None


@dataclass
class CancelGroupResult:
    """Outcome of cancelling one (neg_risk, yield_bearing) group."""
    is_neg_risk: bool
    is_yield_bearing: bool
    order_refs: list[str]
    success: bool
    error: Optional[str] = None


@dataclass
class CancelResult:
    success: bool
    groups: list[CancelGroupResult] = field(default_factory=list)

    @property
    def cancelled_refs(self) -> set[str]:
        """References belonging to groups that reported success."""
        return {ref for g in self.groups if g.success for ref in g.order_refs}


class OrderGateway(abc.ABC):
    """
    Everything the ladder core needs from the exchange.

    Implementations raise GatewayError for failed reads; open_order and
    cancel_orders report failure through their result objects.
    """

    @abc.abstractmethod
    def fetch_order_book(self, market_id: int) -> list[MarketBid]:
        """Bids for a market, best (highest price) first."""
        ...

    @abc.abstractmethod
    def open_order(
        self,
        market_id: int,
        amount_usd: str,
        price: float,
        side: OrderSide = OrderSide.BUY,
        order_type: OrderType = OrderType.LIMIT,
    ) -> OpenOrderResult:
        ...

    @abc.abstractmethod
    def cancel_orders(self, cancel_requests: list[CancelRequest]) -> CancelResult:
        """Cancel a batch; grouping by risk/yield flags is handled internally."""
        ...

    @abc.abstractmethod
    def get_order(self, order_ref: str) -> OrderDetails:
        ...

    @abc.abstractmethod
    def iter_open_orders(self) -> Iterator[RemoteOrder]:
        """
        Lazily walk every page of the account's open orders.

        Each call starts a fresh walk from the first page.
        """
        ...

    def get_order_status(self, order_ref: str) -> OrderStatus:
        return self.get_order(order_ref).status

    def list_all_open_orders(self) -> list[RemoteOrder]:
        """
        Materialize iter_open_orders().

        A failure on any page propagates; a partial listing is never returned,
        since reconciliation would read the missing orders as gone.
        """
        return list(self.iter_open_orders())
