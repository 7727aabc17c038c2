"""Tracked ladder state per market, and loading of the selected markets."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from predict_ladder_bot.orders.storage import OrderStore

logger = logging.getLogger(__name__)


@dataclass
class TrackedOrder:
    """One resting order of ours. order_ref is the exchange order hash."""
    price: float
    order_ref: str


@dataclass
class TrackedMarket:
    """
    Ladder state for one market.

    orders is kept sorted by price, highest first. cancel_count and
    cooldown_until are driven by strategy.cooldown.
    """
    id: int
    title: str
    orders: list[TrackedOrder] = field(default_factory=list)
    cancel_count: int = 0
    cooldown_until: Optional[float] = None

    def sort_orders(self) -> None:
        self.orders.sort(key=lambda o: o.price, reverse=True)

    @property
    def top(self) -> Optional[TrackedOrder]:
        return self.orders[0] if self.orders else None

    @property
    def bottom(self) -> Optional[TrackedOrder]:
        return self.orders[-1] if self.orders else None

    def order_refs(self) -> set[str]:
        return {o.order_ref for o in self.orders}

    def has_order_at(self, price: float) -> bool:
        return any(abs(o.price - price) < 1e-9 for o in self.orders)

    def remove_refs(self, refs: set[str]) -> int:
        """Drop the orders whose reference is in refs. Returns how many were dropped."""
        before = len(self.orders)
        self.orders = [o for o in self.orders if o.order_ref not in refs]
        return before - len(self.orders)


def load_selected_markets(path: str | Path, store: Optional[OrderStore] = None) -> list[TrackedMarket]:
    """
    Read the market filter's output: a JSON list of {"id", "title", ...}.

    Entries without a usable id are skipped. A missing title falls back to
    the one stored with earlier orders, if a store is given. A missing or
    unreadable file raises.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        raw = json.load(f)

    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a JSON list of markets")

    markets: list[TrackedMarket] = []
    seen: set[int] = set()
    for entry in raw:
        try:
            market_id = int(entry["id"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping market entry without a valid id: %r", entry)
            continue
        if market_id in seen:
            continue
        seen.add(market_id)
        title = entry.get("title")
        if not title and store is not None:
            title = store.get_market_title(market_id)
        markets.append(TrackedMarket(id=market_id, title=str(title or f"Market {market_id}")))

    logger.info("Loaded %d selected markets from %s", len(markets), path)
    return markets
