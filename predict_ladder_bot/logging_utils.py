# predict_ladder_bot/logging_utils.py
from __future__ import annotations

import logging
import os
import sys


class Colors:
  RESET = "\033[0m"
  GRAY = "\033[90m"
  WHITE = "\033[37m"

  DEBUG = "\033[36m"     # Cyan
  INFO = "\033[32m"      # Green
  WARNING = "\033[33m"   # Yellow
  ERROR = "\033[31m"     # Red
  CRITICAL = "\033[35m"  # Magenta


LOG_FORMAT = "[%(asctime)s.%(msecs)03d] [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


class ColoredFormatter(logging.Formatter):
  """Formatter that colors the level name and dims the timestamp."""

  LEVEL_COLORS = {
    logging.DEBUG: Colors.DEBUG,
    logging.INFO: Colors.INFO,
    logging.WARNING: Colors.WARNING,
    logging.ERROR: Colors.ERROR,
    logging.CRITICAL: Colors.CRITICAL,
  }

  def __init__(self, fmt: str = LOG_FORMAT, datefmt: str = DATE_FORMAT, use_colors: bool = True):
    super().__init__(fmt=fmt, datefmt=datefmt)
    self.use_colors = use_colors

  def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
    ts = super().formatTime(record, datefmt)
    if self.use_colors:
      return f"{Colors.GRAY}{ts}{Colors.RESET}"
    return ts

  def format(self, record: logging.LogRecord) -> str:
    if not self.use_colors:
      return super().format(record)

    level_color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
    original_levelname = record.levelname
    record.levelname = f"{level_color}{record.levelname}{Colors.RESET}"
    try:
      return super().format(record)
    finally:
      # record may be handled again by another handler
      record.levelname = original_levelname


def setup_logging(level: int | None = None, use_colors: bool = True, log_file: str | None = None) -> None:
  """
  Setup logging with optional colored console output.

  Args:
    level: Logging level; falls back to the LOG_LEVEL env var, then INFO
    use_colors: Whether to use ANSI colors (auto-disabled if not a TTY)
    log_file: Optional path for a plain-text copy of the log (LOG_FILE env var)
  """
  if level is None:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

  root = logging.getLogger()
  root.setLevel(level)

  # avoid duplicate handlers if called multiple times
  if any(isinstance(h, logging.StreamHandler) for h in root.handlers):
    return

  if use_colors and not sys.stdout.isatty():
    use_colors = False

  handler = logging.StreamHandler(sys.stdout)
  handler.setFormatter(ColoredFormatter(use_colors=use_colors))
  root.addHandler(handler)

  log_file = log_file or os.environ.get("LOG_FILE")
  if log_file:
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(file_handler)

  # Suppress noisy third-party loggers
  logging.getLogger("urllib3").setLevel(logging.WARNING)
  logging.getLogger("requests").setLevel(logging.WARNING)
