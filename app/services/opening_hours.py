"""Open-now check against a business's weekly opening-hours table."""

import logging
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)

WEEKDAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def _hhmm(value: str) -> int:
    """'09:30' -> 930."""
    hours, minutes = value.strip().split(":")
    return int(hours) * 100 + int(minutes)


def is_business_open(opening_hours: Any, now: datetime | None = None) -> bool:
    """
    True if now falls inside today's "HH:MM-HH:MM" window (inclusive).
    No table, no entry for today, or an unparseable entry means closed.
    """
    if not opening_hours or not isinstance(opening_hours, dict):
        return False

    now = now or datetime.now()
    today = opening_hours.get(WEEKDAY_KEYS[now.weekday()])
    if not today or not isinstance(today, str):
        return False

    try:
        open_part, close_part = today.split("-")
        open_time, close_time = _hhmm(open_part), _hhmm(close_part)
    except ValueError:
        logger.warning(f"Unparseable opening hours entry: {today!r}")
        return False

    current_time = now.hour * 100 + now.minute
    return open_time <= current_time <= close_time
