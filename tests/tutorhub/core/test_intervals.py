from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from tutorhub.core.exceptions import InvalidRangeError
from tutorhub.core.intervals import DateTimeRange, DayOfWeek, TimeWindow, overlaps


@pytest.mark.parametrize(
    ('first', 'second', 'expected'),
    [
        ((9, 10), (10, 11), False),
        ((10, 11), (9, 10), False),
        ((9, 11), (10, 12), True),
        ((9, 12), (10, 11), True),
        ((10, 11), (9, 12), True),
        ((9, 10), (9, 10), True),
        ((9, 10), (11, 12), False),
    ],
)
def test_overlaps_uses_half_open_intervals(first, second, expected) -> None:
    assert overlaps(first[0], first[1], second[0], second[1]) is expected


def test_time_window_rejects_empty_or_inverted_range() -> None:
    with pytest.raises(InvalidRangeError):
        TimeWindow(start=time(10, 0), end=time(10, 0))

    with pytest.raises(InvalidRangeError):
        TimeWindow(start=time(12, 0), end=time(9, 0))


def test_time_window_overlap_and_containment() -> None:
    morning = TimeWindow(start=time(9, 0), end=time(12, 0))

    assert morning.overlaps(TimeWindow(start=time(11, 30), end=time(12, 30)))
    assert not morning.overlaps(TimeWindow(start=time(12, 0), end=time(13, 0)))
    assert morning.contains(TimeWindow(start=time(10, 0), end=time(11, 0)))
    assert morning.contains(TimeWindow(start=time(9, 0), end=time(12, 0)))
    assert not morning.contains(TimeWindow(start=time(11, 30), end=time(12, 30)))
    assert str(morning) == '09:00-12:00'


def test_time_window_on_builds_aware_range_for_date() -> None:
    tz = ZoneInfo('Europe/Istanbul')
    anchored = TimeWindow(start=time(9, 0), end=time(10, 0)).on(date(2030, 1, 7), tz)

    assert anchored.start == datetime(2030, 1, 7, 9, 0, tzinfo=tz)
    assert anchored.end == datetime(2030, 1, 7, 10, 0, tzinfo=tz)
    assert anchored.start == datetime(2030, 1, 7, 6, 0, tzinfo=timezone.utc)


def test_date_time_range_from_duration_and_overlap() -> None:
    start = datetime(2030, 1, 7, 10, 0, tzinfo=timezone.utc)
    booked = DateTimeRange.from_duration(start, 60)

    assert booked.duration_minutes() == 60
    assert booked.overlaps(DateTimeRange.from_duration(datetime(2030, 1, 7, 10, 30, tzinfo=timezone.utc), 60))
    assert not booked.overlaps(DateTimeRange.from_duration(datetime(2030, 1, 7, 11, 0, tzinfo=timezone.utc), 60))
    assert not booked.overlaps(DateTimeRange.from_duration(datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc), 60))


def test_date_time_range_compares_across_timezones() -> None:
    utc_lesson = DateTimeRange.from_duration(datetime(2030, 1, 7, 6, 30, tzinfo=timezone.utc), 60)
    istanbul = ZoneInfo('Europe/Istanbul')
    local_lesson = DateTimeRange.from_duration(datetime(2030, 1, 7, 9, 0, tzinfo=istanbul), 60)

    assert utc_lesson.overlaps(local_lesson)


def test_date_time_range_for_day_spans_whole_local_day() -> None:
    day = DateTimeRange.for_day(date(2030, 1, 7), timezone.utc)

    assert day.start == datetime(2030, 1, 7, 0, 0, tzinfo=timezone.utc)
    assert day.end == datetime(2030, 1, 8, 0, 0, tzinfo=timezone.utc)
    assert day.duration_minutes() == 24 * 60


def test_day_of_week_from_date() -> None:
    assert DayOfWeek.from_date(date(2030, 1, 7)) is DayOfWeek.MONDAY
    assert DayOfWeek.from_date(date(2030, 1, 13)) is DayOfWeek.SUNDAY
    assert DayOfWeek.SUNDAY.weekday == 6
    assert DayOfWeek.WEDNESDAY.display_name == 'Wednesday'
