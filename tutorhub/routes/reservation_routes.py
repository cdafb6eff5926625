from datetime import date, datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorhub.auth.dependencies import get_current_user, require_role
from tutorhub.core import config
from tutorhub.database import get_db
from tutorhub.models.reservation import Reservation, ReservationStatus
from tutorhub.models.user import ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER, User
from tutorhub.routes.availability_routes import database_unavailable, ensure_database_ready
from tutorhub.services.pricing import format_duration, format_price
from tutorhub.services.reservation_service import ReservationService

router = APIRouter(tags=['reservations'])
admin_router = APIRouter(tags=['admin'])


def _normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_NOTES_LENGTH:
        raise ValueError(f'Notes must be {config.MAX_NOTES_LENGTH} characters or fewer.')

    return normalized


class CreateReservationRequest(BaseModel):
    teacher_id: int
    category_id: int
    subject: str
    proposed_datetime: datetime
    duration_minutes: int
    notes: str | None = None

    @field_validator('subject')
    @classmethod
    def validate_subject(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Subject is required.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class UpdateReservationRequest(BaseModel):
    subject: str | None = None
    category_id: int | None = None
    proposed_datetime: datetime | None = None
    duration_minutes: int | None = None
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class RespondReservationRequest(BaseModel):
    decision: ReservationStatus
    teacher_notes: str | None = None

    @field_validator('decision')
    @classmethod
    def validate_decision(cls, value: ReservationStatus) -> ReservationStatus:
        if value not in (ReservationStatus.ACCEPTED, ReservationStatus.REJECTED):
            raise ValueError('Decision must be accepted or rejected.')
        return value

    @field_validator('teacher_notes')
    @classmethod
    def validate_teacher_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class AdminStatusRequest(BaseModel):
    status: ReservationStatus
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_notes(value)


class ReservationResponse(BaseModel):
    id: int
    student_id: int
    teacher_id: int
    category_id: int
    subject: str
    proposed_datetime: datetime
    end_datetime: datetime
    duration_minutes: int
    formatted_duration: str
    price: Decimal
    formatted_price: str
    status: ReservationStatus
    notes: str | None = None
    teacher_notes: str | None = None
    admin_notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PaginationResponse(BaseModel):
    current_page: int
    last_page: int
    per_page: int
    total: int


class ReservationListResponse(BaseModel):
    reservations: list[ReservationResponse]
    pagination: PaginationResponse


class ReservationStatisticsResponse(BaseModel):
    total_reservations: int
    pending_reservations: int
    accepted_reservations: int
    rejected_reservations: int
    cancelled_reservations: int
    completed_reservations: int
    this_month: int
    total_amount: Decimal


def to_response(reservation: Reservation, viewer: User | None = None) -> ReservationResponse:
    # Admin notes stay internal to admins.
    show_admin_notes = viewer is None or viewer.role == ROLE_ADMIN
    return ReservationResponse(
        id=reservation.id,
        student_id=reservation.student_id,
        teacher_id=reservation.teacher_id,
        category_id=reservation.category_id,
        subject=reservation.subject,
        proposed_datetime=reservation.proposed_datetime,
        end_datetime=reservation.end_datetime,
        duration_minutes=reservation.duration_minutes,
        formatted_duration=format_duration(reservation.duration_minutes),
        price=reservation.price,
        formatted_price=format_price(reservation.price),
        status=reservation.status,
        notes=reservation.notes,
        teacher_notes=reservation.teacher_notes,
        admin_notes=reservation.admin_notes if show_admin_notes else None,
        created_at=reservation.created_at,
        updated_at=reservation.updated_at,
    )


@router.get('', response_model=ReservationListResponse)
def list_reservations(
    status_filter: ReservationStatus | None = Query(default=None, alias='status'),
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=config.RESERVATIONS_PAGE_SIZE, ge=1, le=config.RESERVATIONS_MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        reservations, total = ReservationService(db).list_for_user(
            current_user.id,
            current_user.role,
            status=status_filter,
            from_date=from_date,
            to_date=to_date,
            page=page,
            per_page=per_page,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    return ReservationListResponse(
        reservations=[to_response(reservation, current_user) for reservation in reservations],
        pagination=PaginationResponse(
            current_page=page,
            last_page=max(1, -(-total // per_page)),
            per_page=per_page,
            total=total,
        ),
    )


@router.get('/statistics', response_model=ReservationStatisticsResponse)
def reservation_statistics(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return ReservationStatisticsResponse(**ReservationService(db).statistics(current_user.id, current_user.role))
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('', response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
def create_reservation(
    data: CreateReservationRequest,
    current_user: User = Depends(require_role(ROLE_STUDENT)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        reservation = ReservationService(db).create(
            student_id=current_user.id,
            teacher_id=data.teacher_id,
            category_id=data.category_id,
            subject=data.subject,
            start=data.proposed_datetime,
            duration_minutes=data.duration_minutes,
            notes=data.notes,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return to_response(reservation, current_user)


@router.put('/{reservation_id}', response_model=ReservationResponse)
def update_reservation(
    reservation_id: int,
    data: UpdateReservationRequest,
    current_user: User = Depends(require_role(ROLE_STUDENT)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    fields = {key: value for key, value in data.model_dump(exclude_unset=True).items() if value is not None}
    try:
        reservation = ReservationService(db).update(reservation_id, current_user.id, **fields)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return to_response(reservation, current_user)


@router.post('/{reservation_id}/respond', response_model=ReservationResponse)
def respond_to_reservation(
    reservation_id: int,
    data: RespondReservationRequest,
    current_user: User = Depends(require_role(ROLE_TEACHER)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        reservation = ReservationService(db).respond(
            reservation_id,
            current_user.id,
            data.decision,
            teacher_notes=data.teacher_notes,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return to_response(reservation, current_user)


@router.post('/{reservation_id}/cancel', response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: int,
    current_user: User = Depends(require_role(ROLE_STUDENT)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        reservation = ReservationService(db).cancel(reservation_id, current_user.id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return to_response(reservation, current_user)


@router.post('/{reservation_id}/complete', response_model=ReservationResponse)
def complete_reservation(
    reservation_id: int,
    current_user: User = Depends(require_role(ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        reservation = ReservationService(db).complete(reservation_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return to_response(reservation, current_user)


@admin_router.put('/reservations/{reservation_id}/status', response_model=ReservationResponse)
def admin_set_reservation_status(
    reservation_id: int,
    data: AdminStatusRequest,
    current_user: User = Depends(require_role(ROLE_ADMIN)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        reservation = ReservationService(db).admin_set_status(
            reservation_id,
            data.status,
            admin_id=current_user.id,
            notes=data.notes,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc

    return to_response(reservation, current_user)
