"""Configuration management."""
from __future__ import annotations

from predict_ladder_bot.config.loader import Config, ConfigError, ExchangeConfig, load_config
from predict_ladder_bot.config.models import (
    BotConfig,
    LadderConfig,
)

__all__ = [
    "BotConfig",
    "Config",
    "ConfigError",
    "ExchangeConfig",
    "LadderConfig",
    "load_config",
]
