import os

from dotenv import load_dotenv


load_dotenv()


def _get_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./speakerdesk.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "")

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:4200"))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Booking concurrency control
BOOKING_MAX_ATTEMPTS = int(os.getenv("BOOKING_MAX_ATTEMPTS", "3"))
BOOKING_LOCK_TIMEOUT_SECONDS = float(os.getenv("BOOKING_LOCK_TIMEOUT_SECONDS", "5"))

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if BOOKING_MAX_ATTEMPTS < 1:
        raise RuntimeError("BOOKING_MAX_ATTEMPTS must be at least 1.")
