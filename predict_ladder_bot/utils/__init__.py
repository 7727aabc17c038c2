"""
Utility modules for the bot.
"""
from __future__ import annotations

from predict_ladder_bot.utils.price_helpers import (
    DEFAULT_TICK_SIZE,
    is_valid_price,
    price_to_ticks,
    round_to_tick,
    ticks_to_price,
)

__all__ = [
    "DEFAULT_TICK_SIZE",
    "is_valid_price",
    "price_to_ticks",
    "round_to_tick",
    "ticks_to_price",
]
