"""
Configuration models for the bot.

Strategy tunables are read from environment variables when this module is
imported, so ``load_dotenv()`` has to run first (see ``ladder_bot``).
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class LadderConfig:
    """Ladder placement, rebalancing and cooldown parameters."""

    # Price grid
    tick_size: float = float(os.environ.get("PREDICT_LADDER_TICK_SIZE", "0.001"))

    # Ladder shape
    max_orders: int = int(os.environ.get("PREDICT_LADDER_MAX_ORDERS", "5"))
    scan_depth: int = int(os.environ.get("PREDICT_LADDER_SCAN_DEPTH", "6"))

    # Cumulative bid value (USD) that must rest ahead of the initial anchor
    min_depth_usd: float = float(os.environ.get("PREDICT_LADDER_MIN_DEPTH_USD", "500"))

    # Cumulative bid value (USD) required above the top of the ladder
    value_threshold: float = float(os.environ.get("PREDICT_LADDER_VALUE_THRESHOLD", "500"))

    # Notional per order, sent to the exchange as a decimal string
    order_amount_usd: str = os.environ.get("PREDICT_LADDER_ORDER_AMOUNT_USD", "1")

    # Cancellation cooldown
    cancel_threshold: int = int(os.environ.get("PREDICT_LADDER_CANCEL_THRESHOLD", "10"))
    cooldown_sec: float = float(os.environ.get("PREDICT_LADDER_COOLDOWN_SEC", str(30 * 60)))

    # Control loop cadence
    tick_interval_sec: float = float(os.environ.get("PREDICT_LADDER_TICK_INTERVAL_SEC", "30"))


@dataclass
class BotConfig:
    """Main bot configuration container."""
    ladder: LadderConfig = field(default_factory=LadderConfig)

    # Output of the external market filter
    markets_file: str = os.environ.get("PREDICT_LADDER_MARKETS_FILE", "filtered_markets.json")

    # SQLite file holding order hashes and market titles across restarts
    orders_db_path: str = os.environ.get("PREDICT_LADDER_ORDERS_DB", "orders.db")
