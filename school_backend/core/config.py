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
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./school.db")

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:4200"])

DEFAULT_JWT_SECRET_KEY = "change-me-please-use-a-long-random-secret"
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", DEFAULT_JWT_SECRET_KEY)
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

PASSWORD_RESET_TOKEN_MINUTES = int(os.getenv("PASSWORD_RESET_TOKEN_MINUTES", "10"))
PASSWORD_RESET_URL = os.getenv("PASSWORD_RESET_URL", "http://localhost:8000/auth/reset-password")

BOOTSTRAP_ADMIN = _get_bool(os.getenv("BOOTSTRAP_ADMIN"), default=True)
DEFAULT_ADMIN_USERNAME = os.getenv("DEFAULT_ADMIN_USERNAME", "admin_user.admin")
DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@school.local")
DEFAULT_ADMIN_PASSWORD_FALLBACK = "admin123!"
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD_FALLBACK)


def validate_runtime_config() -> None:
    if APP_ENV.lower() != "production":
        return
    if JWT_SECRET_KEY == DEFAULT_JWT_SECRET_KEY:
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if BOOTSTRAP_ADMIN and DEFAULT_ADMIN_PASSWORD == DEFAULT_ADMIN_PASSWORD_FALLBACK:
        raise RuntimeError("DEFAULT_ADMIN_PASSWORD must be set in production.")
