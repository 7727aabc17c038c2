"""Price normalization and tick arithmetic."""
from __future__ import annotations

import decimal

DEFAULT_TICK_SIZE = 0.001


def round_to_tick(price: float, tick_size: float = DEFAULT_TICK_SIZE) -> float:
    """
    Round price to nearest tick size.

    Args:
        price: Price to round
        tick_size: Tick size (e.g., 0.001, 0.01)

    Returns:
        Price rounded to nearest tick
    """
    tick_size = float(tick_size)
    # e.g., 0.01 -> 2 decimal places, 0.001 -> 3 decimal places
    decimal_places = abs(decimal.Decimal(str(tick_size)).as_tuple().exponent)
    return round(round(price / tick_size) * tick_size, decimal_places)


def price_to_ticks(price: float, tick_size: float = DEFAULT_TICK_SIZE) -> int:
    """Convert a price to an integer number of ticks (0.371 -> 371 at 0.001)."""
    return int(round(float(price) / float(tick_size)))


def ticks_to_price(ticks: int, tick_size: float = DEFAULT_TICK_SIZE) -> float:
    """Convert an integer tick count back to a tick-aligned price."""
    return round_to_tick(ticks * float(tick_size), tick_size)


def is_valid_price(price: float, tick_size: float = DEFAULT_TICK_SIZE) -> bool:
    """True if price is strictly between 0 and 1 once quantized."""
    ticks = price_to_ticks(price, tick_size)
    return 0 < ticks < price_to_ticks(1.0, tick_size)
