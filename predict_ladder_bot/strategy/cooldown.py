"""Per-market cancellation cooldown."""
from __future__ import annotations

import logging

from predict_ladder_bot.market.tracking import TrackedMarket

logger = logging.getLogger(__name__)

DEFAULT_CANCEL_THRESHOLD = 10
DEFAULT_COOLDOWN_SEC = 30 * 60


def in_cooldown(market: TrackedMarket) -> bool:
    return market.cooldown_until is not None


def record_cancellations(
    market: TrackedMarket,
    count: int,
    now: float,
    threshold: int = DEFAULT_CANCEL_THRESHOLD,
    cooldown_sec: float = DEFAULT_COOLDOWN_SEC,
) -> bool:
    """
    Add count confirmed cancellations to the market's tally.

    Returns True if this call put the market into cooldown. A market
    already cooling down keeps its original expiry.
    """
    if count <= 0:
        return False

    market.cancel_count += count
    if market.cancel_count >= threshold and market.cooldown_until is None:
        market.cooldown_until = now + cooldown_sec
        logger.warning(
            "[%s] Entered cooldown after %d cancellations, pausing for %d min",
            market.id, market.cancel_count, int(cooldown_sec // 60),
        )
        return True
    return False


def check_cooldown(market: TrackedMarket, now: float) -> bool:
    """
    Expire the cooldown if its time has come.

    Returns True while the market is still cooling down. On expiry the
    cancellation tally starts over from zero.
    """
    if market.cooldown_until is None:
        return False

    if now >= market.cooldown_until:
        logger.info("[%s] Cooldown expired, resuming", market.id)
        market.cancel_count = 0
        market.cooldown_until = None
        return False

    return True
