"""
Domain errors raised by the booking and availability engine.

Every error carries a machine readable ``code`` and a human message so the
HTTP layer can render it without knowing the details of the failure.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all booking engine errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationError(DomainException):
    """Raised when input is malformed (duration, range, notes, start time)."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class InvalidRangeError(ValidationError):
    """Raised when a range does not start strictly before it ends."""

    def __init__(self, start: Any, end: Any):
        super().__init__(
            f"Start {start} must be before end {end}",
            code="INVALID_RANGE",
            details={"start": str(start), "end": str(end)},
        )


class InvalidTransitionError(ValidationError):
    """Raised when a reservation cannot move from its current status."""

    def __init__(self, current: str, requested: str, message: Optional[str] = None):
        super().__init__(
            message or f"Reservation cannot move from {current} to {requested}",
            code="INVALID_TRANSITION",
            details={"current_status": current, "requested_status": requested},
        )


class ForbiddenError(DomainException):
    """Raised when the caller lacks ownership or role for the action."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str, code: str = "FORBIDDEN", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class NotFoundError(DomainException):
    """Raised when a teacher, category, window or reservation does not exist."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            f"{resource} {resource_id} not found",
            code=f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource": resource, "id": resource_id},
        )


class ConflictError(DomainException):
    """
    Raised when a reservation interval overlaps an active reservation.

    This is the only retryable error: callers refresh the slot list and
    resubmit.
    """

    status_code = status.HTTP_409_CONFLICT
    retryable = True

    def __init__(
        self,
        message: Optional[str] = None,
        code: str = "BOOKING_CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message or "This time slot conflicts with an existing reservation",
            code=code,
            details=details,
        )


class OverlapError(ConflictError):
    """Raised when an availability window overlaps another active window."""

    retryable = False

    def __init__(self, day_of_week: str, new_range: str, conflicting_range: str):
        super().__init__(
            f"Overlapping availability on {day_of_week}: {new_range} conflicts with {conflicting_range}",
            code="AVAILABILITY_OVERLAP",
            details={
                "day_of_week": day_of_week,
                "new_window": new_range,
                "conflicting_window": conflicting_range,
            },
        )


class CategoryMismatchError(DomainException):
    """Raised when a teacher does not offer the requested category."""

    status_code = HTTP_422_UNPROCESSABLE

    def __init__(self, teacher_id: int, category_id: int):
        super().__init__(
            f"Teacher {teacher_id} does not teach category {category_id}",
            code="CATEGORY_MISMATCH",
            details={"teacher_id": teacher_id, "category_id": category_id},
        )
