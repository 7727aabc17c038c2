"""Tracked markets and market selection input."""
from __future__ import annotations

from predict_ladder_bot.market.tracking import (
    TrackedMarket,
    TrackedOrder,
    load_selected_markets,
)

__all__ = [
    "TrackedMarket",
    "TrackedOrder",
    "load_selected_markets",
]
