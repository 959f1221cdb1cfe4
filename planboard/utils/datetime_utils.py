"""
Timestamps for stored rows.

Every datetime column holds a naive value in the configured local timezone
(settings.timezone). Caller-supplied dates may be aware or naive; naive
ones are taken to be local already.
"""

from datetime import datetime
from typing import Optional, Dict, Any, Iterable
import pytz

from config import settings


def get_local_tz() -> pytz.BaseTzInfo:
    return pytz.timezone(settings.timezone)


def get_local_now() -> datetime:
    """Current local time, naive, as stored in created_at/updated_at."""
    return datetime.now(get_local_tz()).replace(tzinfo=None)


def to_naive_local(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert a caller-supplied datetime to the stored form. None stays None."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(get_local_tz()).replace(tzinfo=None)


def stamp_updates(updates: Dict[str, Any], date_fields: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Prepare a partial update for storage.

    Converts the listed date fields that are present and sets updated_at to
    now. Returns a new dict.
    """
    stamped = dict(updates)
    for field in date_fields:
        if field in stamped:
            stamped[field] = to_naive_local(stamped[field])
    stamped["updated_at"] = get_local_now()
    return stamped
