"""
Interval value types shared by availability and reservations.

Every interval is half-open: ``[start, end)``. Two intervals that merely
touch (one ends exactly when the other starts) do not overlap, which is what
lets back-to-back lessons coexist.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Any

from tutorhub.core.exceptions import InvalidRangeError


def overlaps(a: Any, b: Any, c: Any, d: Any) -> bool:
    """Return True when ``[a, b)`` and ``[c, d)`` share at least one instant."""
    return a < d and c < b


class DayOfWeek(str, Enum):
    """Days of the week, ordered Monday first like ``date.weekday()``."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_index(cls, index: int) -> "DayOfWeek":
        return list(cls)[index]

    @classmethod
    def from_date(cls, value: date) -> "DayOfWeek":
        return cls.from_index(value.weekday())

    @property
    def weekday(self) -> int:
        return list(DayOfWeek).index(self)

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class TimeWindow:
    """
    A time-of-day range, independent of any calendar date.

    Invariant: start must be before end (windows never cross midnight).
    """
    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidRangeError(self.start, self.end)

    def overlaps(self, other: "TimeWindow") -> bool:
        return overlaps(self.start, self.end, other.start, other.end)

    def contains(self, other: "TimeWindow") -> bool:
        return self.start <= other.start and other.end <= self.end

    def on(self, day: date, tz: tzinfo) -> "DateTimeRange":
        """Anchor this window to a calendar date in the given timezone."""
        return DateTimeRange(
            start=datetime.combine(day, self.start, tzinfo=tz),
            end=datetime.combine(day, self.end, tzinfo=tz),
        )

    def __str__(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"


@dataclass(frozen=True)
class DateTimeRange:
    """An absolute range between two timezone-aware datetimes."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidRangeError(self.start, self.end)

    @classmethod
    def from_duration(cls, start: datetime, duration_minutes: int) -> "DateTimeRange":
        return cls(start=start, end=start + timedelta(minutes=duration_minutes))

    @classmethod
    def for_day(cls, day: date, tz: tzinfo) -> "DateTimeRange":
        """The whole calendar day ``day`` as seen in ``tz``."""
        start = datetime.combine(day, time.min, tzinfo=tz)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
        return cls(start=start, end=end)

    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: "DateTimeRange") -> bool:
        return overlaps(self.start, self.end, other.start, other.end)

    def __str__(self) -> str:
        return f"{self.start.isoformat()} - {self.end.isoformat()}"
