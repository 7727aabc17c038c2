"""Position liquidation."""
from __future__ import annotations

from predict_ladder_bot.position.liquidator import MarketSellLiquidator, PositionLiquidator

__all__ = [
    "MarketSellLiquidator",
    "PositionLiquidator",
]
