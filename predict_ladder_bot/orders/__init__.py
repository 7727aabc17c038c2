"""Order placement, reconciliation and storage."""
from __future__ import annotations

from predict_ladder_bot.orders.placer import LadderOrderPlacer
from predict_ladder_bot.orders.reconciler import OrderReconciler, price_from_amounts
from predict_ladder_bot.orders.storage import OrderStore

__all__ = [
    "LadderOrderPlacer",
    "OrderReconciler",
    "OrderStore",
    "price_from_amounts",
]
