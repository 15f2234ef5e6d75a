from __future__ import annotations

import uuid
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Tuple

MAX_TAGS = 5


# PUBLIC_INTERFACE
def generate_id() -> str:
    """Return a fresh opaque identifier (random UUID4 string)."""
    return str(uuid.uuid4())


# PUBLIC_INTERFACE
def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """
    Normalize a tag sequence.

    - Strip whitespace and drop empty entries
    - De-duplicate, keeping the first occurrence
    - Keep at most MAX_TAGS entries
    """
    if tags is None:
        return []
    out: List[str] = []
    for tag in tags:
        s = tag.strip()
        if s and s not in out:
            out.append(s)
    return out[:MAX_TAGS]


def to_local_naive(value: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


# PUBLIC_INTERFACE
def day_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """Return (start of today, start of tomorrow) for the day containing `now`."""
    today = datetime.combine(now.date(), time.min)
    return today, today + timedelta(days=1)


def as_datetime(value: date) -> datetime:
    if isinstance(value, datetime):
        return value
    # Promote a date to a datetime at midnight
    return datetime(value.year, value.month, value.day, 0, 0, 0)


class MonotonicClock:
    """
    Wall-clock source whose readings never repeat or go backwards.

    Two consecutive readings on a coarse system clock can be equal; this clock
    nudges the second one forward by a microsecond instead.
    """

    def __init__(self) -> None:
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = datetime.now()
        if self._last is not None and current <= self._last:
            current = self._last + timedelta(microseconds=1)
        self._last = current
        return current

    def observe(self, value: datetime) -> None:
        """Make sure future readings sort after an already issued timestamp."""
        if self._last is None or value > self._last:
            self._last = value
