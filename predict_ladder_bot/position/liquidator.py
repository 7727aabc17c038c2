"""Position liquidation: sell whatever our resting orders bought."""
from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from predict_ladder_bot.exchange.predict_client import PredictClient

logger = logging.getLogger(__name__)


class PositionLiquidator(abc.ABC):

    @abc.abstractmethod
    def liquidate_all_positions(self) -> bool:
        """Sell every current position. True if at least one sale went through."""
        ...


class MarketSellLiquidator(PositionLiquidator):
    """Sells each position in full with a MARKET order through PredictClient."""

    def __init__(self, client: "PredictClient"):
        self.client = client

    def liquidate_all_positions(self) -> bool:
        positions = self.client.get_positions()
        if not positions:
            return False

        logger.info("Liquidating %d position(s)", len(positions))
        sold = 0
        for position in positions:
            if self.client.sell_position(position):
                sold += 1

        if sold:
            logger.info("Sold %d/%d position(s)", sold, len(positions))
        return sold > 0
