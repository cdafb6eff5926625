"""
Teacher weekly availability.

A teacher owns a set of recurring windows ("Mondays 09:00-12:00"). Active
windows of one teacher never overlap on the same day; removal only flips the
``is_available`` flag so history stays intact.
"""

from datetime import time
import logging
from typing import Any

from sqlalchemy import case
from sqlalchemy.orm import Query, Session

from tutorhub.core.exceptions import ForbiddenError, NotFoundError, OverlapError, ValidationError
from tutorhub.core.intervals import DayOfWeek, TimeWindow
from tutorhub.core.teacher_lock import teacher_lock
from tutorhub.models.availability import AvailabilityWindow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({'day_of_week', 'start_time', 'end_time', 'is_available'})


def parse_day_of_week(value: DayOfWeek | str) -> DayOfWeek:
    if isinstance(value, DayOfWeek):
        return value
    try:
        return DayOfWeek(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(f'Unknown day of week: {value}', code='INVALID_DAY_OF_WEEK') from exc


class AvailabilityStore:
    def __init__(self, db: Session):
        self.db = db

    def list_active(self, teacher_id: int, day_of_week: DayOfWeek | str | None = None) -> Query:
        """
        Active windows of a teacher, ordered by day then start time.

        The returned query is lazy and re-runs every time it is iterated.
        """
        query = self.db.query(AvailabilityWindow).filter(
            AvailabilityWindow.teacher_id == teacher_id,
            AvailabilityWindow.is_available.is_(True),
        )
        if day_of_week is not None:
            query = query.filter(AvailabilityWindow.day_of_week == parse_day_of_week(day_of_week))
        day_order = case({day: day.weekday for day in DayOfWeek}, value=AvailabilityWindow.day_of_week)
        return query.order_by(day_order.asc(), AvailabilityWindow.start_time.asc())

    def get(self, window_id: int) -> AvailabilityWindow:
        window = self.db.query(AvailabilityWindow).filter(AvailabilityWindow.id == window_id).first()
        if window is None:
            raise NotFoundError('Availability window', window_id)
        return window

    def add(self, teacher_id: int, day_of_week: DayOfWeek | str, start: time, end: time) -> AvailabilityWindow:
        day = parse_day_of_week(day_of_week)
        candidate = TimeWindow(start=start, end=end)

        with teacher_lock(self.db, teacher_id):
            self._ensure_no_overlap(teacher_id, day, candidate)
            window = AvailabilityWindow(
                teacher_id=teacher_id,
                day_of_week=day,
                start_time=start,
                end_time=end,
                is_available=True,
            )
            self.db.add(window)
            self.db.commit()

        self.db.refresh(window)
        logger.info('Teacher %s added availability %s %s', teacher_id, day.value, candidate)
        return window

    def update(self, window_id: int, teacher_id: int, **fields: Any) -> AvailabilityWindow:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update availability fields: {', '.join(sorted(unknown))}",
                details={'fields': sorted(unknown)},
            )

        self._get_owned(window_id, teacher_id)

        with teacher_lock(self.db, teacher_id):
            window = self._get_owned(window_id, teacher_id)
            self.db.refresh(window)

            day = parse_day_of_week(fields.get('day_of_week', window.day_of_week))
            start = fields.get('start_time', window.start_time)
            end = fields.get('end_time', window.end_time)
            is_available = bool(fields.get('is_available', window.is_available))
            candidate = TimeWindow(start=start, end=end)

            if is_available:
                self._ensure_no_overlap(teacher_id, day, candidate, exclude_id=window.id)

            window.day_of_week = day
            window.start_time = start
            window.end_time = end
            window.is_available = is_available
            self.db.commit()

        self.db.refresh(window)
        return window

    def remove(self, window_id: int, teacher_id: int) -> AvailabilityWindow:
        self._get_owned(window_id, teacher_id)

        with teacher_lock(self.db, teacher_id):
            window = self._get_owned(window_id, teacher_id)
            self.db.refresh(window)
            window.is_available = False
            self.db.commit()

        self.db.refresh(window)
        logger.info('Teacher %s deactivated availability window %s', teacher_id, window_id)
        return window

    def _get_owned(self, window_id: int, teacher_id: int) -> AvailabilityWindow:
        window = self.get(window_id)
        if window.teacher_id != teacher_id:
            raise ForbiddenError('Only the owning teacher can change this availability window.')
        return window

    def _ensure_no_overlap(
        self,
        teacher_id: int,
        day: DayOfWeek,
        candidate: TimeWindow,
        exclude_id: int | None = None,
    ) -> None:
        for existing in self.list_active(teacher_id, day):
            if existing.id == exclude_id:
                continue
            if candidate.overlaps(existing.window):
                logger.warning(
                    'Rejected overlapping availability for teacher %s on %s: %s vs %s',
                    teacher_id,
                    day.value,
                    candidate,
                    existing.window,
                )
                raise OverlapError(day.value, str(candidate), str(existing.window))
