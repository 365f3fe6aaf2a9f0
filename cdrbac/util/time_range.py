"""
Time windows for audit queries.

Audit timestamps are naive local time. Timezone-aware bounds are converted to
naive local time on construction so both kinds can be mixed freely.
"""

from datetime import datetime, timedelta
from typing import Optional


def to_local_naive(t: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if t.tzinfo is None or t.utcoffset() is None:
        return t
    return t.astimezone().replace(tzinfo=None)


class TimeRange:
    """
    Window of audit timestamps. Either bound may be open; both are inclusive.
    """

    def __init__(self, start: Optional[datetime] = None, end: Optional[datetime] = None):
        if start is not None:
            start = to_local_naive(start)
        if end is not None:
            end = to_local_naive(end)
        if start is not None and end is not None and start > end:
            raise ValueError(f"Time range starts after it ends: {start} > {end}")
        self.start = start
        self.end = end

    @classmethod
    def last(cls, delta: timedelta, now: Optional[datetime] = None) -> 'TimeRange':
        """Window covering the trailing ``delta`` up to ``now``."""
        now = now or datetime.now()
        return cls(now - delta, now)

    def contains(self, t: datetime) -> bool:
        t = to_local_naive(t)
        if self.start is not None and t < self.start:
            return False
        return self.end is None or t <= self.end

    def __repr__(self) -> str:
        return f"TimeRange(start={self.start!r}, end={self.end!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, TimeRange):
            return NotImplemented
        return (self.start, self.end) == (other.start, other.end)

    def __hash__(self) -> int:
        return hash((self.start, self.end))
