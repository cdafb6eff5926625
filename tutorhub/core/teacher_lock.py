from contextlib import contextmanager
import logging
from threading import Lock
import time
from typing import Iterator

from sqlalchemy.orm import Session

from tutorhub.core.exceptions import NotFoundError
from tutorhub.models.teacher import Teacher

logger = logging.getLogger(__name__)

# Fixed pool of locks; teachers hashing to the same stripe simply share one.
LOCK_STRIPES = 64
_stripes = [Lock() for _ in range(LOCK_STRIPES)]


def _stripe_for(teacher_id: int) -> Lock:
    return _stripes[hash(teacher_id) % LOCK_STRIPES]


@contextmanager
def teacher_lock(db: Session, teacher_id: int) -> Iterator[Teacher]:
    """
    Serialize check-then-write sequences for one teacher.

    The in-process lock covers threads of this worker; the row lock taken on
    the teacher profile (``SELECT ... FOR UPDATE``) covers other workers
    sharing the same PostgreSQL database. SQLite ignores ``FOR UPDATE`` and
    serializes writers on its own. The row lock lasts until the caller
    commits or rolls back, which must happen before leaving the block.
    """
    lock = _stripe_for(teacher_id)
    waited_from = time.monotonic()
    with lock:
        waited = time.monotonic() - waited_from
        if waited > 1.0:
            logger.warning("teacher_lock_slow_acquire teacher_id=%s waited=%.2fs", teacher_id, waited)

        teacher = (
            db.query(Teacher)
            .filter(Teacher.user_id == teacher_id)
            .with_for_update()
            .first()
        )
        if teacher is None:
            db.rollback()
            raise NotFoundError('Teacher', teacher_id)

        try:
            yield teacher
        finally:
            if db.in_transaction():
                db.rollback()
