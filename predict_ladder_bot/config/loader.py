# predict_ladder_bot/config/loader.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os

import yaml

CONFIG_PATH = os.environ.get("PREDICT_LADDER_CONFIG", "config.yaml")


class ConfigError(RuntimeError):
  """Raised when the YAML config is missing or malformed."""


@dataclass
class ExchangeConfig:
  api_url: str
  api_key_env: str
  auth_token_env: str
  account_address_env: str
  signer_factory: str = ""
  request_timeout_sec: float = 10.0

  def api_key(self) -> str:
    return os.environ.get(self.api_key_env, "")

  def auth_token(self) -> str:
    return os.environ.get(self.auth_token_env, "")

  def account_address(self) -> str:
    return os.environ.get(self.account_address_env, "")

  def validate(self) -> None:
    errors = []
    if not self.api_key():
      errors.append(f"{self.api_key_env} is not set")
    if not self.auth_token():
      errors.append(f"{self.auth_token_env} is not set")
    if not self.account_address():
      errors.append(f"{self.account_address_env} is not set")
    if errors:
      raise ConfigError("Configuration errors:\n" + "\n".join(errors))


@dataclass
class Config:
  predict: ExchangeConfig


def load_config(path: str | Path = CONFIG_PATH) -> Config:
  try:
    with open(path, "r") as f:
      raw = yaml.safe_load(f) or {}
  except FileNotFoundError as e:
    raise ConfigError(f"Config file not found: {path}") from e

  try:
    exchange_raw = raw["exchanges"]["predict"]
  except (KeyError, TypeError) as e:
    raise ConfigError(f"{path}: missing 'exchanges.predict' section") from e

  try:
    exchange = ExchangeConfig(**exchange_raw)
  except TypeError as e:
    raise ConfigError(f"{path}: invalid 'exchanges.predict' section: {e}") from e

  return Config(predict=exchange)
