from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorhub.auth.dependencies import require_role
from tutorhub.core import config
from tutorhub.core.intervals import DayOfWeek
from tutorhub.database import ensure_availability_schema, ensure_reservation_schema, get_db
from tutorhub.models.user import ROLE_TEACHER, User
from tutorhub.services.availability_store import AvailabilityStore
from tutorhub.services.slot_generator import SlotGenerator

router = APIRouter(tags=['availability'])

MAX_SLOT_DURATION_MINUTES = config.MAX_RESERVATION_MINUTES


class CreateAvailabilityWindowRequest(BaseModel):
    day_of_week: DayOfWeek
    start_time: time
    end_time: time

    @model_validator(mode='after')
    def validate_range(self) -> 'CreateAvailabilityWindowRequest':
        if self.start_time >= self.end_time:
            raise ValueError('End time must be after start time.')
        return self


class UpdateAvailabilityWindowRequest(BaseModel):
    day_of_week: DayOfWeek | None = None
    start_time: time | None = None
    end_time: time | None = None
    is_available: bool | None = None


class AvailabilityWindowResponse(BaseModel):
    id: int
    teacher_id: int
    day_of_week: DayOfWeek
    day_name: str
    start_time: time
    end_time: time
    formatted_time_range: str
    is_available: bool

    class Config:
        from_attributes = True


class SlotResponse(BaseModel):
    date: date
    start_time: time
    end_time: time
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    formatted_time: str

    class Config:
        from_attributes = True


def database_unavailable(exc: SQLAlchemyError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail='Database unavailable. Verify DATABASE_URL and database credentials.',
    )


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_reservation_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/teachers/{teacher_id}', response_model=list[AvailabilityWindowResponse])
def list_teacher_availability(
    teacher_id: int,
    day_of_week: DayOfWeek | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return list(AvailabilityStore(db).list_active(teacher_id, day_of_week))
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/teachers/{teacher_id}/slots', response_model=list[SlotResponse])
def list_available_slots(
    teacher_id: int,
    slot_date: date = Query(alias='date'),
    duration: int = Query(default=config.DEFAULT_SLOT_DURATION_MINUTES, ge=1, le=MAX_SLOT_DURATION_MINUTES),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slots = SlotGenerator(db).generate_slots(teacher_id, slot_date, slot_duration_minutes=duration)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    # Slot properties (duration, formatted time) are read as attributes.
    return [SlotResponse.model_validate(slot) for slot in slots]


@router.post('/windows', response_model=AvailabilityWindowResponse, status_code=status.HTTP_201_CREATED)
def create_availability_window(
    data: CreateAvailabilityWindowRequest,
    current_user: User = Depends(require_role(ROLE_TEACHER)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return AvailabilityStore(db).add(current_user.id, data.day_of_week, data.start_time, data.end_time)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.put('/windows/{window_id}', response_model=AvailabilityWindowResponse)
def update_availability_window(
    window_id: int,
    data: UpdateAvailabilityWindowRequest,
    current_user: User = Depends(require_role(ROLE_TEACHER)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    fields = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}
    try:
        return AvailabilityStore(db).update(window_id, current_user.id, **fields)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/windows/{window_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_availability_window(
    window_id: int,
    current_user: User = Depends(require_role(ROLE_TEACHER)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        AvailabilityStore(db).remove(window_id, current_user.id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
