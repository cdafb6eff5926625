"""Reservation model definitions."""

from enum import Enum

from sqlalchemy import Column, Enum as SAEnum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from tutorhub.core.intervals import DateTimeRange
from tutorhub.database import Base
from tutorhub.models.category import Category
from tutorhub.models.teacher import Teacher
from tutorhub.models.types import UTCDateTime, utc_now
from tutorhub.models.user import User


class ReservationStatus(str, Enum):
    """Reservation lifecycle statuses."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def blocks_time(self) -> bool:
        return self in ACTIVE_STATUSES


# Statuses that hold the teacher's time and take part in conflict checks.
ACTIVE_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.ACCEPTED})
TERMINAL_STATUSES = frozenset({
    ReservationStatus.REJECTED,
    ReservationStatus.CANCELLED,
    ReservationStatus.COMPLETED,
})

# Transitions open to students, teachers and the lesson-completion event.
# Admins may force any change of status on top of this table.
ALLOWED_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({
        ReservationStatus.ACCEPTED,
        ReservationStatus.REJECTED,
        ReservationStatus.CANCELLED,
    }),
    ReservationStatus.ACCEPTED: frozenset({ReservationStatus.COMPLETED}),
    ReservationStatus.REJECTED: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
    ReservationStatus.COMPLETED: frozenset(),
}


def can_transition(current: ReservationStatus, target: ReservationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class Reservation(Base):
    """A single lesson booking between a student and a teacher."""
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Integer, ForeignKey("teachers.user_id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    subject = Column(String(255), nullable=False)
    proposed_datetime = Column(UTCDateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(8, 2), nullable=False)
    status = Column(
        SAEnum(
            ReservationStatus,
            name="reservation_status_enum",
            native_enum=False,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ReservationStatus.PENDING,
        index=True,
    )
    notes = Column(Text)
    teacher_notes = Column(Text)
    admin_notes = Column(Text)
    created_at = Column(UTCDateTime, default=utc_now)
    updated_at = Column(UTCDateTime, default=utc_now, onupdate=utc_now)

    student = relationship(User, foreign_keys=[student_id])
    teacher = relationship(Teacher, foreign_keys=[teacher_id])
    category = relationship(Category)

    @property
    def interval(self) -> DateTimeRange:
        return DateTimeRange.from_duration(self.proposed_datetime, self.duration_minutes)

    @property
    def end_datetime(self):
        return self.interval.end

    def __repr__(self) -> str:
        return f"<Reservation {self.id} teacher={self.teacher_id} {self.status.value} {self.proposed_datetime}>"
