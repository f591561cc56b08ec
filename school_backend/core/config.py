import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./school.db")
DATABASE_ECHO = _get_bool(os.getenv("DATABASE_ECHO"), default=False)

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), default=["*"])

SESSION_DURATION_HOURS = int(os.getenv("SESSION_DURATION_HOURS", "24"))

# plaintext matches the credentials already stored; bcrypt for new deployments
CREDENTIAL_SCHEME = os.getenv("CREDENTIAL_SCHEME", "plaintext").strip().lower()
SUPPORTED_CREDENTIAL_SCHEMES = {"plaintext", "bcrypt"}

USERS_COLLECTION = os.getenv("USERS_COLLECTION", "user")
SESSIONS_COLLECTION = os.getenv("SESSIONS_COLLECTION", "sessions")
ROLES_COLLECTION = os.getenv("ROLES_COLLECTION", "roles")
SCHOOLS_COLLECTION = os.getenv("SCHOOLS_COLLECTION", "school")

TIMETABLE_DOCUMENT_ID = "current_schedule"
TIMETABLE_WRITER_ROLES = {"admin", "teacher"}


def validate_runtime_config() -> None:
    if CREDENTIAL_SCHEME not in SUPPORTED_CREDENTIAL_SCHEMES:
        raise RuntimeError(f"Unsupported CREDENTIAL_SCHEME: {CREDENTIAL_SCHEME}")
    if APP_ENV.lower() == "production" and CREDENTIAL_SCHEME == "plaintext":
        raise RuntimeError("CREDENTIAL_SCHEME must be bcrypt in production.")
