"""Ladder strategy: initial placement, rebalancing and cooldown."""
from __future__ import annotations

from predict_ladder_bot.strategy.cooldown import check_cooldown, record_cancellations
from predict_ladder_bot.strategy.initializer import initial_ladder_prices, ladder_anchor
from predict_ladder_bot.strategy.rebalancer import LadderRebalancer

__all__ = [
    "LadderRebalancer",
    "check_cooldown",
    "initial_ladder_prices",
    "ladder_anchor",
    "record_cancellations",
]
