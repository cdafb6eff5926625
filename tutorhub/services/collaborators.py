"""
Narrow interfaces to the systems the booking engine talks to.

Notification delivery and audit persistence live outside this package. The
engine only needs something it can hand an event to; both calls are best
effort and run after the reservation write has been committed.
"""

import logging
from typing import Any, Mapping, Protocol

logger = logging.getLogger(__name__)

EVENT_RESERVATION_CREATED = 'reservation_created'
EVENT_RESERVATION_UPDATED = 'reservation_updated'
EVENT_RESERVATION_RESPONSE = 'reservation_response'
EVENT_RESERVATION_CANCELLED = 'reservation_cancelled'
EVENT_RESERVATION_COMPLETED = 'reservation_completed'
EVENT_RESERVATION_STATUS_CHANGED = 'reservation_status_changed'


class NotificationSender(Protocol):
    def notify(self, user_id: int, type: str, payload: Mapping[str, Any]) -> None:
        ...


class AuditRecorder(Protocol):
    def record_audit(
        self,
        actor_id: int | None,
        action: str,
        target_type: str,
        target_id: int,
        meta: Mapping[str, Any],
    ) -> None:
        ...


class LoggingNotificationSender:
    """Default sender used until a delivery backend is wired in."""

    def notify(self, user_id: int, type: str, payload: Mapping[str, Any]) -> None:
        logger.info('notification user_id=%s type=%s payload=%s', user_id, type, dict(payload))


class LoggingAuditRecorder:
    """Default recorder used until an audit store is wired in."""

    def record_audit(
        self,
        actor_id: int | None,
        action: str,
        target_type: str,
        target_id: int,
        meta: Mapping[str, Any],
    ) -> None:
        logger.info(
            'audit actor_id=%s action=%s target=%s:%s meta=%s',
            actor_id,
            action,
            target_type,
            target_id,
            dict(meta),
        )


def send_notification(sender: NotificationSender, user_id: int, type: str, payload: Mapping[str, Any]) -> None:
    try:
        sender.notify(user_id, type, payload)
    except Exception:
        logger.exception('Failed to send %s notification to user %s', type, user_id)


def record_audit(
    recorder: AuditRecorder,
    actor_id: int | None,
    action: str,
    target_type: str,
    target_id: int,
    meta: Mapping[str, Any],
) -> None:
    try:
        recorder.record_audit(actor_id, action, target_type, target_id, meta)
    except Exception:
        logger.exception('Failed to record audit %s for %s %s', action, target_type, target_id)
