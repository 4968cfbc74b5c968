"""Configuration for the CPR chat client.

Settings are read from ``CPRCHAT_*`` environment variables (or a ``.env``
file in the working directory). Call ``get_settings()`` for the shared
instance, or construct ``Settings(...)`` directly in tests.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CPRCHAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend
    backend_url: str = Field(default="http://localhost:3000", description="Chat backend base URL")
    chat_path: str = "/api/chat"
    chat_stream_path: str = "/api/chat/stream"
    chat_history_path: str = "/api/chat/history"
    sessions_path: str = "/api/sessions"
    request_timeout: float = Field(default=60.0, gt=0)

    # Auth (opaque credential, sent as a cookie)
    access_token: str | None = None
    auth_cookie_name: str = "verity_access_token"

    # Logging
    log_level: str = "INFO"
    debug: bool = False

    # Sessions
    session_title_chars: int = Field(default=50, ge=1, le=200)

    @field_validator("backend_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
