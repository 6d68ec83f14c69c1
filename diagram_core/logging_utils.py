"""Logging configuration.

The core uses standard library `logging`:
- `configure_logging()` sets up root logging once.
- `get_logger()` returns a module logger.
"""

from __future__ import annotations

import logging
from typing import Optional

_CONFIGURED = False

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None, fmt: str = DEFAULT_FORMAT) -> None:
    """Configure root logging once.

    Args:
        level: Log level name. Defaults to the `log_level` setting.
        fmt: Format string for the stream handler.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    if level is None:
        from .config import get_settings

        level = get_settings().log_level

    root = logging.getLogger()
    root.setLevel(level.upper())
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger."""
    return logging.getLogger(name)
