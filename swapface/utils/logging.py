"""Root logger setup for the console client.

Transfer workers log from pool threads while the capture loop and the
orchestrator log from the event-loop thread, so the format carries the
thread name. Two environment variables override whatever the settings say:

``SWAPFACE_LOG_LEVEL``
    Level name (``debug``, ``warning``...) or number. Wins over everything.
``SWAPFACE_DEBUG``
    Truthy value (``1``, ``true``, ``yes``, ``on``) forces DEBUG.
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

LEVEL_ENV = "SWAPFACE_LOG_LEVEL"
DEBUG_ENV = "SWAPFACE_DEBUG"

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Per-request connection logs from these libraries stay at WARNING or above.
HTTP_LOGGERS = ("urllib3", "requests")

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def resolve_level(value: Union[int, str, None], fallback: int = logging.INFO) -> int:
    """Turn a level name or number into a ``logging`` level, else ``fallback``."""
    if isinstance(value, int):
        return value
    text = (value or "").strip()
    if not text:
        return fallback
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    return level if isinstance(level, int) else fallback


def _env_level() -> Optional[int]:
    explicit = os.getenv(LEVEL_ENV)
    if explicit and explicit.strip():
        return resolve_level(explicit)
    if (os.getenv(DEBUG_ENV) or "").strip().lower() in _TRUTHY:
        return logging.DEBUG
    return None


def env_debug_enabled() -> bool:
    """True when the environment alone forces DEBUG output."""
    level = _env_level()
    return level is not None and level <= logging.DEBUG


def _quiet_http_loggers(level: int) -> None:
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def configure_root(default_level: Union[int, str] = logging.INFO) -> int:
    """Install the console handler once and return the effective level."""
    env = _env_level()
    level = env if env is not None else resolve_level(default_level)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT, datefmt=DATE_FORMAT)
    root.setLevel(level)
    _quiet_http_loggers(level)
    return level


def apply_preferences(debug_enabled: bool) -> int:
    """Apply the ``debug_logging`` setting unless the environment overrides it."""
    env = _env_level()
    if env is not None:
        level = env
    else:
        level = logging.DEBUG if debug_enabled else logging.INFO
    logging.getLogger().setLevel(level)
    _quiet_http_loggers(level)
    return level


def level_name(level: int) -> str:
    return logging.getLevelName(level)


__all__ = [
    "DEBUG_ENV",
    "LEVEL_ENV",
    "apply_preferences",
    "configure_root",
    "env_debug_enabled",
    "level_name",
    "resolve_level",
]
