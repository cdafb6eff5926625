import os


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:4200"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Used for teachers whose profile carries no timezone.
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "UTC")

DEFAULT_SLOT_DURATION_MINUTES = int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES", "60"))
MIN_RESERVATION_MINUTES = int(os.getenv("MIN_RESERVATION_MINUTES", "30"))
MAX_RESERVATION_MINUTES = int(os.getenv("MAX_RESERVATION_MINUTES", "480"))
MAX_NOTES_LENGTH = int(os.getenv("MAX_NOTES_LENGTH", "500"))
MAX_SUBJECT_LENGTH = int(os.getenv("MAX_SUBJECT_LENGTH", "255"))

REQUIRE_AVAILABILITY_WINDOW = _get_bool(os.getenv("REQUIRE_AVAILABILITY_WINDOW"), default=True)

RESERVATIONS_PAGE_SIZE = int(os.getenv("RESERVATIONS_PAGE_SIZE", "20"))
RESERVATIONS_MAX_PAGE_SIZE = int(os.getenv("RESERVATIONS_MAX_PAGE_SIZE", "100"))

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if MIN_RESERVATION_MINUTES <= 0 or MIN_RESERVATION_MINUTES > MAX_RESERVATION_MINUTES:
        raise RuntimeError("MIN_RESERVATION_MINUTES must be positive and not exceed MAX_RESERVATION_MINUTES.")
