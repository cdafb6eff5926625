"""
Reservation lifecycle.

A reservation is created by a student as ``pending``. The owning teacher
accepts or rejects it, the owning student may cancel it while it is still
pending, and an accepted lesson becomes ``completed`` once it has ended.
Admins can force any status change for dispute resolution.

While a reservation is pending or accepted it holds the teacher's time: no
other pending or accepted reservation of the same teacher may overlap it.
The overlap check and the write that depends on it always run inside
``teacher_lock`` so two students racing for the same slot cannot both win.

Accepting a request does not touch other pending requests of the teacher.
Overlapping pending requests cannot be created through this service, so the
question only arises for data written by admins; those requests are left for
the teacher to answer.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
import logging
from typing import Any, Dict, List, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from tutorhub.core import config
from tutorhub.core.exceptions import (
    CategoryMismatchError,
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from tutorhub.core.intervals import DateTimeRange, DayOfWeek, TimeWindow
from tutorhub.core.teacher_lock import teacher_lock
from tutorhub.models.category import Category
from tutorhub.models.reservation import (
    ACTIVE_STATUSES,
    Reservation,
    ReservationStatus,
    can_transition,
)
from tutorhub.models.teacher import Teacher
from tutorhub.models.user import ROLE_ADMIN, ROLE_TEACHER
from tutorhub.services.availability_store import AvailabilityStore
from tutorhub.services.collaborators import (
    EVENT_RESERVATION_CANCELLED,
    EVENT_RESERVATION_COMPLETED,
    EVENT_RESERVATION_CREATED,
    EVENT_RESERVATION_RESPONSE,
    EVENT_RESERVATION_STATUS_CHANGED,
    EVENT_RESERVATION_UPDATED,
    AuditRecorder,
    LoggingAuditRecorder,
    LoggingNotificationSender,
    NotificationSender,
    record_audit,
    send_notification,
)
from tutorhub.services.pricing import compute_price
from tutorhub.services.slot_generator import find_active_reservations

logger = logging.getLogger(__name__)

AUDIT_TARGET = 'reservation'
UPDATABLE_FIELDS = frozenset({'subject', 'category_id', 'proposed_datetime', 'duration_minutes', 'notes'})
RESPONSE_DECISIONS = frozenset({ReservationStatus.ACCEPTED, ReservationStatus.REJECTED})


def parse_status(value: ReservationStatus | str) -> ReservationStatus:
    if isinstance(value, ReservationStatus):
        return value
    try:
        return ReservationStatus(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(f'Unknown reservation status: {value}', code='INVALID_STATUS') from exc


def _clean_text(value: str | None, field: str, max_length: int, required: bool = False) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f'{field.capitalize()} is required.', details={'field': field})
        return None

    normalized = value.strip()
    if not normalized:
        if required:
            raise ValidationError(f'{field.capitalize()} is required.', details={'field': field})
        return None

    if len(normalized) > max_length:
        raise ValidationError(
            f'{field.capitalize()} must be {max_length} characters or fewer.',
            details={'field': field, 'max_length': max_length},
        )
    return normalized


def validate_schedule(start: datetime, duration_minutes: int, now: datetime) -> DateTimeRange:
    """Check duration bounds and that ``start`` is aware and in the future."""
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise ValidationError('Duration must be a whole number of minutes.', code='INVALID_DURATION')

    if not config.MIN_RESERVATION_MINUTES <= duration_minutes <= config.MAX_RESERVATION_MINUTES:
        raise ValidationError(
            f'Duration must be between {config.MIN_RESERVATION_MINUTES} '
            f'and {config.MAX_RESERVATION_MINUTES} minutes.',
            code='INVALID_DURATION',
            details={
                'duration_minutes': duration_minutes,
                'min': config.MIN_RESERVATION_MINUTES,
                'max': config.MAX_RESERVATION_MINUTES,
            },
        )

    if start.tzinfo is None or start.utcoffset() is None:
        raise ValidationError('Start time must include a timezone offset.', code='NAIVE_DATETIME')

    if start <= now:
        raise ValidationError(
            'Reservations must start in the future.',
            code='START_IN_PAST',
            details={'proposed_datetime': start.isoformat()},
        )

    return DateTimeRange.from_duration(start, duration_minutes)


class ReservationService:
    def __init__(
        self,
        db: Session,
        notifier: NotificationSender | None = None,
        auditor: AuditRecorder | None = None,
        availability: AvailabilityStore | None = None,
    ):
        self.db = db
        self.notifier = notifier or LoggingNotificationSender()
        self.auditor = auditor or LoggingAuditRecorder()
        self.availability = availability or AvailabilityStore(db)

    def get(self, reservation_id: int) -> Reservation:
        reservation = self.db.query(Reservation).filter(Reservation.id == reservation_id).first()
        if reservation is None:
            raise NotFoundError('Reservation', reservation_id)
        return reservation

    def create(
        self,
        student_id: int,
        teacher_id: int,
        category_id: int,
        subject: str,
        start: datetime,
        duration_minutes: int,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Reservation:
        now = now or datetime.now(timezone.utc)
        subject = _clean_text(subject, 'subject', config.MAX_SUBJECT_LENGTH, required=True)
        notes = _clean_text(notes, 'notes', config.MAX_NOTES_LENGTH)
        candidate = validate_schedule(start, duration_minutes, now)

        with teacher_lock(self.db, teacher_id) as teacher:
            self._ensure_category(teacher, category_id)
            self._ensure_within_availability(teacher, candidate)
            self._ensure_no_conflict(teacher_id, candidate)

            reservation = Reservation(
                student_id=student_id,
                teacher_id=teacher_id,
                category_id=category_id,
                subject=subject,
                proposed_datetime=start,
                duration_minutes=duration_minutes,
                price=compute_price(teacher.hourly_rate, duration_minutes),
                status=ReservationStatus.PENDING,
                notes=notes,
            )
            self.db.add(reservation)
            self.db.commit()

        self.db.refresh(reservation)
        logger.info(
            'Student %s requested reservation %s with teacher %s at %s',
            student_id,
            reservation.id,
            teacher_id,
            start.isoformat(),
        )

        send_notification(self.notifier, teacher_id, EVENT_RESERVATION_CREATED, self._event_payload(reservation))
        record_audit(
            self.auditor,
            student_id,
            'reservation.created',
            AUDIT_TARGET,
            reservation.id,
            {'status': reservation.status.value, 'price': str(reservation.price)},
        )
        return reservation

    def update(
        self,
        reservation_id: int,
        requester_id: int,
        now: datetime | None = None,
        **fields: Any,
    ) -> Reservation:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update reservation fields: {', '.join(sorted(unknown))}",
                details={'fields': sorted(unknown)},
            )

        now = now or datetime.now(timezone.utc)
        reservation = self.get(reservation_id)
        self._ensure_student_owner(reservation, requester_id)

        with teacher_lock(self.db, reservation.teacher_id) as teacher:
            self.db.refresh(reservation)
            if reservation.status != ReservationStatus.PENDING:
                raise InvalidTransitionError(
                    reservation.status.value,
                    ReservationStatus.PENDING.value,
                    message='Only pending reservations can be edited.',
                )

            start = fields.get('proposed_datetime', reservation.proposed_datetime)
            duration_minutes = fields.get('duration_minutes', reservation.duration_minutes)
            candidate = validate_schedule(start, duration_minutes, now)

            if 'subject' in fields:
                reservation.subject = _clean_text(fields['subject'], 'subject', config.MAX_SUBJECT_LENGTH, required=True)
            if 'notes' in fields:
                reservation.notes = _clean_text(fields['notes'], 'notes', config.MAX_NOTES_LENGTH)
            if 'category_id' in fields and fields['category_id'] != reservation.category_id:
                self._ensure_category(teacher, fields['category_id'])
                reservation.category_id = fields['category_id']

            if 'proposed_datetime' in fields or 'duration_minutes' in fields:
                self._ensure_within_availability(teacher, candidate)
                self._ensure_no_conflict(reservation.teacher_id, candidate, exclude_id=reservation.id)

                if duration_minutes != reservation.duration_minutes:
                    reservation.price = compute_price(teacher.hourly_rate, duration_minutes)
                reservation.proposed_datetime = start
                reservation.duration_minutes = duration_minutes

            self.db.commit()

        self.db.refresh(reservation)
        send_notification(
            self.notifier,
            reservation.teacher_id,
            EVENT_RESERVATION_UPDATED,
            self._event_payload(reservation),
        )
        record_audit(
            self.auditor,
            requester_id,
            'reservation.updated',
            AUDIT_TARGET,
            reservation.id,
            {'fields': sorted(fields)},
        )
        return reservation

    def respond(
        self,
        reservation_id: int,
        teacher_id: int,
        decision: ReservationStatus | str,
        teacher_notes: str | None = None,
    ) -> Reservation:
        decision = parse_status(decision)
        if decision not in RESPONSE_DECISIONS:
            raise ValidationError(
                'A teacher can only accept or reject a reservation.',
                code='INVALID_DECISION',
                details={'decision': decision.value},
            )
        teacher_notes = _clean_text(teacher_notes, 'teacher notes', config.MAX_NOTES_LENGTH)

        reservation = self.get(reservation_id)
        if reservation.teacher_id != teacher_id:
            raise ForbiddenError('Only the teacher of this reservation can respond to it.')

        with teacher_lock(self.db, reservation.teacher_id):
            self.db.refresh(reservation)
            previous = self._transition(reservation, decision)
            if teacher_notes is not None:
                reservation.teacher_notes = teacher_notes
            self.db.commit()

        self.db.refresh(reservation)
        logger.info('Teacher %s %s reservation %s', teacher_id, decision.value, reservation.id)

        send_notification(
            self.notifier,
            reservation.student_id,
            EVENT_RESERVATION_RESPONSE,
            self._event_payload(reservation, teacher_notes=reservation.teacher_notes),
        )
        record_audit(
            self.auditor,
            teacher_id,
            f'reservation.{decision.value}',
            AUDIT_TARGET,
            reservation.id,
            {'previous_status': previous.value, 'new_status': decision.value},
        )
        return reservation

    def cancel(self, reservation_id: int, student_id: int) -> Reservation:
        reservation = self.get(reservation_id)
        self._ensure_student_owner(reservation, student_id)

        with teacher_lock(self.db, reservation.teacher_id):
            self.db.refresh(reservation)
            previous = self._transition(reservation, ReservationStatus.CANCELLED)
            self.db.commit()

        self.db.refresh(reservation)
        logger.info('Student %s cancelled reservation %s', student_id, reservation.id)

        send_notification(
            self.notifier,
            reservation.teacher_id,
            EVENT_RESERVATION_CANCELLED,
            self._event_payload(reservation),
        )
        record_audit(
            self.auditor,
            student_id,
            'reservation.cancelled',
            AUDIT_TARGET,
            reservation.id,
            {'previous_status': previous.value, 'new_status': ReservationStatus.CANCELLED.value},
        )
        return reservation

    def complete(self, reservation_id: int, now: datetime | None = None) -> Reservation:
        """Mark an accepted lesson as completed once it has ended."""
        now = now or datetime.now(timezone.utc)
        reservation = self.get(reservation_id)

        with teacher_lock(self.db, reservation.teacher_id):
            self.db.refresh(reservation)
            if reservation.status == ReservationStatus.ACCEPTED and reservation.end_datetime > now:
                raise ValidationError(
                    'A lesson can only be completed after it has ended.',
                    code='LESSON_NOT_FINISHED',
                    details={'ends_at': reservation.end_datetime.isoformat()},
                )
            previous = self._transition(reservation, ReservationStatus.COMPLETED)
            self.db.commit()

        self.db.refresh(reservation)
        payload = self._event_payload(reservation)
        send_notification(self.notifier, reservation.student_id, EVENT_RESERVATION_COMPLETED, payload)
        send_notification(self.notifier, reservation.teacher_id, EVENT_RESERVATION_COMPLETED, payload)
        record_audit(
            self.auditor,
            None,
            'reservation.completed',
            AUDIT_TARGET,
            reservation.id,
            {'previous_status': previous.value, 'new_status': ReservationStatus.COMPLETED.value},
        )
        return reservation

    def admin_set_status(
        self,
        reservation_id: int,
        new_status: ReservationStatus | str,
        admin_id: int,
        notes: str | None = None,
    ) -> Reservation:
        """
        Force a status change, bypassing role checks and the transition table.

        Moving a reservation back into pending or accepted still has to pass
        the overlap check, since it starts holding the teacher's time again.
        """
        new_status = parse_status(new_status)
        notes = _clean_text(notes, 'admin notes', config.MAX_NOTES_LENGTH)
        reservation = self.get(reservation_id)

        with teacher_lock(self.db, reservation.teacher_id):
            self.db.refresh(reservation)
            previous = reservation.status
            if new_status == previous:
                raise InvalidTransitionError(
                    previous.value,
                    new_status.value,
                    message=f'Reservation is already {previous.value}.',
                )

            if new_status in ACTIVE_STATUSES:
                self._ensure_no_conflict(reservation.teacher_id, reservation.interval, exclude_id=reservation.id)

            reservation.status = new_status
            reservation.admin_notes = notes or f'Status changed from {previous.value} to {new_status.value}.'
            self.db.commit()

        self.db.refresh(reservation)
        logger.info(
            'Admin %s moved reservation %s from %s to %s',
            admin_id,
            reservation.id,
            previous.value,
            new_status.value,
        )

        payload = self._event_payload(reservation, previous_status=previous.value)
        send_notification(self.notifier, reservation.student_id, EVENT_RESERVATION_STATUS_CHANGED, payload)
        send_notification(self.notifier, reservation.teacher_id, EVENT_RESERVATION_STATUS_CHANGED, payload)
        record_audit(
            self.auditor,
            admin_id,
            'reservation.admin_status_changed',
            AUDIT_TARGET,
            reservation.id,
            {'previous_status': previous.value, 'new_status': new_status.value, 'notes': notes},
        )
        return reservation

    def list_for_user(
        self,
        user_id: int,
        role: str,
        status: ReservationStatus | str | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        page: int = 1,
        per_page: int = config.RESERVATIONS_PAGE_SIZE,
    ) -> Tuple[List[Reservation], int]:
        """Reservations visible to a user, newest lesson first, with the total count."""
        page = max(page, 1)
        per_page = min(max(per_page, 1), config.RESERVATIONS_MAX_PAGE_SIZE)

        query = self._scoped_query(user_id, role)
        if status:
            query = query.filter(Reservation.status == parse_status(status))
        if from_date:
            query = query.filter(
                Reservation.proposed_datetime >= datetime.combine(from_date, time.min, tzinfo=timezone.utc)
            )
        if to_date:
            query = query.filter(
                Reservation.proposed_datetime
                < datetime.combine(to_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
            )

        total = query.count()
        items = (
            query.order_by(Reservation.proposed_datetime.desc(), Reservation.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return items, total

    def statistics(self, user_id: int, role: str, now: datetime | None = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        scoped = self._scoped_query(user_id, role)

        counts = {status: 0 for status in ReservationStatus}
        for status, count in (
            scoped.with_entities(Reservation.status, func.count(Reservation.id))
            .group_by(Reservation.status)
            .all()
        ):
            counts[status] = count

        month_start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
        this_month = scoped.filter(Reservation.created_at >= month_start).count()

        total_amount = (
            scoped.filter(Reservation.status == ReservationStatus.COMPLETED)
            .with_entities(func.coalesce(func.sum(Reservation.price), 0))
            .scalar()
        )

        return {
            'total_reservations': sum(counts.values()),
            'pending_reservations': counts[ReservationStatus.PENDING],
            'accepted_reservations': counts[ReservationStatus.ACCEPTED],
            'rejected_reservations': counts[ReservationStatus.REJECTED],
            'cancelled_reservations': counts[ReservationStatus.CANCELLED],
            'completed_reservations': counts[ReservationStatus.COMPLETED],
            'this_month': this_month,
            'total_amount': Decimal(str(total_amount or 0)),
        }

    def _scoped_query(self, user_id: int, role: str):
        query = self.db.query(Reservation)
        if role == ROLE_ADMIN:
            return query
        if role == ROLE_TEACHER:
            return query.filter(Reservation.teacher_id == user_id)
        return query.filter(Reservation.student_id == user_id)

    def _transition(self, reservation: Reservation, target: ReservationStatus) -> ReservationStatus:
        previous = reservation.status
        if not can_transition(previous, target):
            logger.warning(
                'Rejected transition of reservation %s from %s to %s',
                reservation.id,
                previous.value,
                target.value,
            )
            raise InvalidTransitionError(previous.value, target.value)
        reservation.status = target
        return previous

    def _ensure_student_owner(self, reservation: Reservation, student_id: int) -> None:
        if reservation.student_id != student_id:
            raise ForbiddenError('Only the student who booked this reservation can change it.')

    def _ensure_category(self, teacher: Teacher, category_id: int) -> None:
        if self.db.query(Category).filter(Category.id == category_id).first() is None:
            raise ValidationError(
                f'Unknown category: {category_id}',
                code='INVALID_CATEGORY',
                details={'category_id': category_id},
            )
        if not teacher.offers_category(category_id):
            raise CategoryMismatchError(teacher.user_id, category_id)

    def _ensure_within_availability(self, teacher: Teacher, candidate: DateTimeRange) -> None:
        if not config.REQUIRE_AVAILABILITY_WINDOW:
            return

        tz = teacher.tzinfo
        local_start = candidate.start.astimezone(tz)
        local_end = candidate.end.astimezone(tz)
        outside = ValidationError(
            'The requested time is outside the teacher availability.',
            code='OUTSIDE_AVAILABILITY',
            details={'start': local_start.isoformat(), 'end': local_end.isoformat()},
        )
        if local_start.date() != local_end.date():
            raise outside

        requested = TimeWindow(start=local_start.time(), end=local_end.time())
        windows = self.availability.list_active(teacher.user_id, DayOfWeek.from_date(local_start.date()))
        if not any(window.window.contains(requested) for window in windows):
            raise outside

    def _ensure_no_conflict(self, teacher_id: int, candidate: DateTimeRange, exclude_id: int | None = None) -> None:
        conflicts = find_active_reservations(self.db, teacher_id, candidate, exclude_id=exclude_id)
        if conflicts:
            logger.warning(
                'Found %d conflicting reservations for teacher %s between %s',
                len(conflicts),
                teacher_id,
                candidate,
            )
            raise ConflictError(
                details={
                    'teacher_id': teacher_id,
                    'requested_start': candidate.start.isoformat(),
                    'requested_end': candidate.end.isoformat(),
                    'conflicting_reservation_ids': [conflict.id for conflict in conflicts],
                }
            )

    def _event_payload(self, reservation: Reservation, **extra: Any) -> Dict[str, Any]:
        payload = {
            'reservation_id': reservation.id,
            'status': reservation.status.value,
            'student_id': reservation.student_id,
            'teacher_id': reservation.teacher_id,
            'subject': reservation.subject,
            'proposed_datetime': reservation.proposed_datetime.isoformat(),
            'duration_minutes': reservation.duration_minutes,
            'price': str(reservation.price),
        }
        payload.update(extra)
        return payload
