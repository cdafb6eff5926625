"""
Bookable slots for one teacher on one calendar date.

Slots are derived on every call and never stored:

1. Find the teacher's active windows for the weekday of ``date``.
2. Cut every window into fixed-size slots from its start; a trailing piece
   shorter than one slot is dropped.
3. Remove slots that overlap a pending or accepted reservation, or that
   start at or before ``now``.

Local wall times skipped by a daylight-saving jump produce no slot, and a
slot whose real length is shorter than the requested duration is dropped.

Windows are not merged, so two adjacent windows each contribute their own
slots.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import List

from sqlalchemy.orm import Session

from tutorhub.core import config
from tutorhub.core.exceptions import NotFoundError, ValidationError
from tutorhub.core.intervals import DateTimeRange, DayOfWeek, TimeWindow
from tutorhub.models.reservation import ACTIVE_STATUSES, Reservation
from tutorhub.models.teacher import Teacher
from tutorhub.services.availability_store import AvailabilityStore

logger = logging.getLogger(__name__)

# Longest reservation, used to widen the lookup for lessons that start the day before.
_MAX_LOOKBACK = timedelta(minutes=config.MAX_RESERVATION_MINUTES)


@dataclass(frozen=True)
class Slot:
    """One candidate booking unit on a specific date."""
    date: date
    start_time: time
    end_time: time
    start_at: datetime
    end_at: datetime

    @property
    def utc_range(self) -> DateTimeRange:
        return DateTimeRange(self.start_at.astimezone(timezone.utc), self.end_at.astimezone(timezone.utc))

    @property
    def duration_minutes(self) -> int:
        return self.utc_range.duration_minutes()

    @property
    def formatted_time(self) -> str:
        return f"{self.start_time.strftime('%H:%M')} - {self.end_time.strftime('%H:%M')}"


def split_window(window: TimeWindow, slot_duration_minutes: int) -> List[TimeWindow]:
    """Cut a window into consecutive slots; the partial tail is dropped."""
    step = timedelta(minutes=slot_duration_minutes)
    anchor = date.min
    current = datetime.combine(anchor, window.start)
    window_end = datetime.combine(anchor, window.end)

    pieces: List[TimeWindow] = []
    while current + step <= window_end:
        pieces.append(TimeWindow(start=current.time(), end=(current + step).time()))
        current += step
    return pieces


def find_active_reservations(
    db: Session,
    teacher_id: int,
    period: DateTimeRange,
    exclude_id: int | None = None,
) -> List[Reservation]:
    """Pending and accepted reservations of a teacher overlapping ``period``."""
    query = db.query(Reservation).filter(
        Reservation.teacher_id == teacher_id,
        Reservation.status.in_(tuple(ACTIVE_STATUSES)),
        Reservation.proposed_datetime < period.end,
        Reservation.proposed_datetime > period.start - _MAX_LOOKBACK,
    )
    if exclude_id is not None:
        query = query.filter(Reservation.id != exclude_id)

    return [
        reservation
        for reservation in query.order_by(Reservation.proposed_datetime.asc()).all()
        if reservation.interval.overlaps(period)
    ]


class SlotGenerator:
    def __init__(self, db: Session, availability: AvailabilityStore | None = None):
        self.db = db
        self.availability = availability or AvailabilityStore(db)

    def generate_slots(
        self,
        teacher_id: int,
        day: date,
        slot_duration_minutes: int = config.DEFAULT_SLOT_DURATION_MINUTES,
        now: datetime | None = None,
    ) -> List[Slot]:
        if slot_duration_minutes <= 0:
            raise ValidationError(
                'Slot duration must be a positive number of minutes.',
                details={'slot_duration_minutes': slot_duration_minutes},
            )

        teacher = self.db.query(Teacher).filter(Teacher.user_id == teacher_id).first()
        if teacher is None:
            raise NotFoundError('Teacher', teacher_id)

        tz = teacher.tzinfo
        now = now or datetime.now(timezone.utc)
        if day < now.astimezone(tz).date():
            return []

        windows = list(self.availability.list_active(teacher_id, DayOfWeek.from_date(day)))
        if not windows:
            return []

        step = timedelta(minutes=slot_duration_minutes)
        candidates: List[Slot] = []
        for window in windows:
            for piece in split_window(window.window, slot_duration_minutes):
                absolute = piece.on(day, tz)
                start_utc = absolute.start.astimezone(timezone.utc)
                end_utc = absolute.end.astimezone(timezone.utc)
                # Skip wall times that do not exist or are shortened by a DST jump.
                if start_utc.astimezone(tz).time() != piece.start or end_utc - start_utc != step:
                    continue
                candidates.append(
                    Slot(
                        date=day,
                        start_time=piece.start,
                        end_time=piece.end,
                        start_at=start_utc.astimezone(tz),
                        end_at=end_utc.astimezone(tz),
                    )
                )

        booked = [
            reservation.interval
            for reservation in find_active_reservations(self.db, teacher_id, DateTimeRange.for_day(day, tz))
        ]

        slots = [
            slot
            for slot in candidates
            if slot.start_at > now
            and not any(slot.utc_range.overlaps(taken) for taken in booked)
        ]
        slots.sort(key=lambda slot: slot.utc_range.start)

        logger.debug(
            'Generated %d of %d candidate slots for teacher %s on %s',
            len(slots),
            len(candidates),
            teacher_id,
            day.isoformat(),
        )
        return slots
