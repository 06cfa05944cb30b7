"""Environment variable helpers for the bridge's settings objects."""

from __future__ import annotations

import os
from typing import Callable, Optional, Tuple, TypeVar, Union

from core.logging import get_logger

logger = get_logger(__name__)

Number = TypeVar("Number", int, float)

_TRUE_VALUES = frozenset({"1", "true", "yes", "y", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "n", "off"})


def env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    """Return the trimmed value; blank counts as unset."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        logger.debug("Environment variable %s not set.", key)
        return default
    return raw.strip()


def _env_number(
    key: str,
    default: Number,
    cast: Callable[[str], Number],
    minimum: Optional[Union[int, float]],
) -> Number:
    raw = env_str(key)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Invalid %s value '%s'. Falling back to %s.", key, raw, default)
        return default
    if minimum is not None and value < minimum:
        logger.warning("%s=%s is below the minimum %s. Falling back to %s.", key, raw, minimum, default)
        return default
    return value


def env_int(key: str, default: int, *, minimum: Optional[int] = None) -> int:
    return _env_number(key, default, int, minimum)


def env_float(key: str, default: float, *, minimum: Optional[float] = None) -> float:
    return _env_number(key, default, float, minimum)


def env_bool(key: str, default: bool) -> bool:
    raw = env_str(key)
    if raw is None:
        return default
    normalized = raw.lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    logger.warning("Invalid boolean env %s='%s'. Using default=%s.", key, raw, default)
    return default


def env_csv(key: str) -> Tuple[str, ...]:
    """Split a comma separated variable into trimmed, non-empty items."""
    raw = env_str(key) or ""
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def require_env(key: str, *, context: Optional[str] = None) -> str:
    """Return a mandatory variable or fail fast during startup."""
    value = env_str(key)
    if value:
        return value
    prefix = f"[{context}] " if context else ""
    raise RuntimeError(f"{prefix}Missing required environment variable: {key}. Set it in .env or the runtime secrets.")
