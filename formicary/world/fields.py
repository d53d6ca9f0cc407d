"""Forgiving field readers for arena JSON objects."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

log = logging.getLogger(__name__)


def int_field(data: Mapping[str, Any], key: str, default: int = 0) -> int:
    """Read ``data[key]`` as an int.

    A missing or null value, or one that does not convert, yields
    ``default``; the latter is logged as a warning.
    """
    value = data.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        log.warning(
            "Field %r has non-integer value %r, defaulting to %d", key, value, default
        )
        return default
