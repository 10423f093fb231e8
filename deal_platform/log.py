"""
deal_platform/log.py
====================
Console logging setup for scripts and interactive sessions.
The library itself only creates module loggers; handlers are the caller's.
"""
from __future__ import annotations
import logging
from typing import Union

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: Union[str, int] = "INFO") -> None:
    """Attach a formatted console handler to the `deal_platform` logger."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger("deal_platform")
    logger.setLevel(level)
    if not any(getattr(h, "_deal_platform", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._deal_platform = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
