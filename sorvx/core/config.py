"""Application configuration from environment."""
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from env / .env."""

    app_name: str = "Sorvx AI"
    debug: bool = False
    log_level: str = "INFO"

    # Public base URL, used to build password reset links
    app_url: str = "http://localhost:3000"

    # Database
    database_url: str = "sqlite+aiosqlite:///./sorvx.db"

    # JWT session tokens
    secret_key: str = "change-me-in-production-use-env"
    algorithm: str = "HS256"

    # Auth cookie (session-based for logged-in users)
    auth_cookie_name: str = "sorvx_auth"
    auth_cookie_max_age: int = 60 * 60 * 24 * 14  # 14 days

    # SMTP for password reset mail; unset host = log the link instead
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_from_email: str | None = None
    smtp_secure: bool = False  # implicit TLS (465); otherwise STARTTLS when offered
    smtp_timeout: float = 10.0

    # Terminal replay: where already-animated message ids are remembered
    reveal_store_path: Path = Path.home() / ".sorvx" / "animated_chats.json"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


def get_settings() -> Settings:
    return Settings()


# Package directory (holds templates/)
BASE_DIR = Path(__file__).resolve().parent.parent
