"""Utility modules for Planboard."""

from .datetime_utils import (
    get_local_tz,
    get_local_now,
    to_naive_local,
    stamp_updates,
)

__all__ = [
    "get_local_tz",
    "get_local_now",
    "to_naive_local",
    "stamp_updates",
]
