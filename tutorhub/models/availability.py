"""Availability model definitions."""

from sqlalchemy import Boolean, Column, Enum, ForeignKey, Integer, Time
from tutorhub.core.intervals import DayOfWeek, TimeWindow
from tutorhub.database import Base
from tutorhub.models.types import UTCDateTime, utc_now


class AvailabilityWindow(Base):
    """A recurring weekly range during which a teacher accepts bookings."""
    __tablename__ = "teacher_availabilities"

    id = Column(Integer, primary_key=True)
    teacher_id = Column(Integer, ForeignKey("teachers.user_id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(
        Enum(DayOfWeek, name="day_of_week_enum", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, default=utc_now)
    updated_at = Column(UTCDateTime, default=utc_now, onupdate=utc_now)

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(start=self.start_time, end=self.end_time)

    @property
    def day_name(self) -> str:
        return self.day_of_week.display_name

    @property
    def formatted_time_range(self) -> str:
        return str(self.window)

    def __repr__(self) -> str:
        return f"<AvailabilityWindow {self.teacher_id} {self.day_of_week.value} {self.formatted_time_range}>"
