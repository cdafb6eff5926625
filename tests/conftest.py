import os
from datetime import time
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from tutorhub.auth.jwt_handler import create_access_token  # noqa: E402
from tutorhub.core.intervals import DayOfWeek  # noqa: E402
from tutorhub.database import Base, get_db  # noqa: E402
from tutorhub.main import app  # noqa: E402
from tutorhub.models.availability import AvailabilityWindow  # noqa: E402,F401
from tutorhub.models.category import Category  # noqa: E402
from tutorhub.models.reservation import Reservation  # noqa: E402,F401
from tutorhub.models.teacher import Teacher  # noqa: E402
from tutorhub.models.user import ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER, User  # noqa: E402
from tutorhub.routes import availability_routes, reservation_routes  # noqa: E402


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify(self, user_id, type, payload):
        self.events.append((user_id, type, dict(payload)))


class RecordingAuditor:
    def __init__(self):
        self.records = []

    def record_audit(self, actor_id, action, target_type, target_id, meta):
        self.records.append((actor_id, action, target_type, target_id, dict(meta)))


def seed_marketplace(db) -> SimpleNamespace:
    student = User(email='student@example.com', name='Student', hashed_password='', role=ROLE_STUDENT)
    other_student = User(email='other@example.com', name='Other', hashed_password='', role=ROLE_STUDENT)
    teacher_user = User(email='teacher@example.com', name='Teacher', hashed_password='', role=ROLE_TEACHER)
    other_teacher_user = User(email='teacher2@example.com', name='Teacher Two', hashed_password='', role=ROLE_TEACHER)
    admin = User(email='admin@example.com', name='Admin', hashed_password='', role=ROLE_ADMIN)
    db.add_all([student, other_student, teacher_user, other_teacher_user, admin])
    db.flush()

    math = Category(name='Mathematics', slug='mathematics')
    music = Category(name='Music', slug='music')
    db.add_all([math, music])
    db.flush()

    teacher = Teacher(user_id=teacher_user.id, hourly_rate=Decimal('120.00'), timezone='UTC')
    teacher.categories.append(math)
    other_teacher = Teacher(user_id=other_teacher_user.id, hourly_rate=Decimal('80.00'), timezone='Europe/Istanbul')
    other_teacher.categories.append(music)
    db.add_all([teacher, other_teacher])
    db.commit()

    return SimpleNamespace(
        student_id=student.id,
        other_student_id=other_student.id,
        teacher_id=teacher_user.id,
        other_teacher_id=other_teacher_user.id,
        admin_id=admin.id,
        math_id=math.id,
        music_id=music.id,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def market(db) -> SimpleNamespace:
    return seed_marketplace(db)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def auditor() -> RecordingAuditor:
    return RecordingAuditor()


@pytest.fixture
def monday_morning(db, market) -> AvailabilityWindow:
    window = AvailabilityWindow(
        teacher_id=market.teacher_id,
        day_of_week=DayOfWeek.MONDAY,
        start_time=time(9, 0),
        end_time=time(12, 0),
        is_available=True,
    )
    db.add(window)
    db.commit()
    db.refresh(window)
    return window


@pytest.fixture
def file_database(tmp_path):
    """Seeded SQLite file database for tests that need one connection per thread."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'booking.db'}",
        connect_args={'check_same_thread': False, 'timeout': 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = factory()
    try:
        market = seed_marketplace(setup)
    finally:
        setup.close()

    try:
        yield factory, market
    finally:
        engine.dispose()


@pytest.fixture
def client(db, market, monkeypatch):
    monkeypatch.setattr(availability_routes, 'ensure_database_ready', lambda: None)
    monkeypatch.setattr(reservation_routes, 'ensure_database_ready', lambda: None)
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(email: str, role: str | None = None) -> dict:
    return {'Authorization': f'Bearer {create_access_token(email, role=role)}'}


@pytest.fixture
def as_student() -> dict:
    return auth_headers('student@example.com', ROLE_STUDENT)


@pytest.fixture
def as_other_student() -> dict:
    return auth_headers('other@example.com', ROLE_STUDENT)


@pytest.fixture
def as_teacher() -> dict:
    return auth_headers('teacher@example.com', ROLE_TEACHER)


@pytest.fixture
def as_other_teacher() -> dict:
    return auth_headers('teacher2@example.com', ROLE_TEACHER)


@pytest.fixture
def as_admin() -> dict:
    return auth_headers('admin@example.com', ROLE_ADMIN)
