"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    APP_NAME: str = "One-Time Links"
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'onetime_links.db'}"

    LINK_DEFAULT_EXPIRATION_HOURS: int = 24
    LINK_TOKEN_BYTES: int = Field(default=32, ge=1, le=48)
    LINK_ISSUE_MAX_ATTEMPTS: int = 3

    LINK_CLEANUP_ENABLED: bool = True
    LINK_CLEANUP_INTERVAL_SECONDS: int = 60 * 60
    LINK_CLEANUP_STARTUP_DELAY_SECONDS: int = 0

    HOST: str = "127.0.0.1"
    PORT: int = 8000
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    VERIFICATION_LINK_EXPIRE_DAYS: int = 7

    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = ""
    SMTP_TLS: bool = True

    model_config = SettingsConfigDict(env_file=str(BASE_DIR / ".env"), env_file_encoding="utf-8", extra="ignore")

    @property
    def smtp_ready(self) -> bool:
        return bool(self.SMTP_HOST.strip() and self.SMTP_FROM.strip())

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
