# backend/greycat/core/config.py
import logging
import os
from pathlib import Path
from typing import List, Literal

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "test", "production"] = Field(
        default="development", description="Deployment environment"
    )
    is_testing: bool = Field(default=False, description="Set by the test harness")
    log_level: str = Field(default="INFO", description="Root log level")

    # Database
    database_url_raw: str = Field(
        default="sqlite:///./greycat.db",
        validation_alias=AliasChoices("database_url", "DATABASE_URL"),
    )
    test_database_url: str = Field(
        default="sqlite+pysqlite:///:memory:",
        description="Database used when running under pytest",
    )
    database_pool_size: int = Field(default=20, description="Persistent connections (Postgres)")
    database_max_overflow: int = Field(default=10, description="Overflow connections (Postgres)")

    # Identity
    secret_key: SecretStr = Field(
        default=SecretStr("greycat-development-secret-key-change-me"),
        description="Signing key for session and bearer tokens",
    )
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24 * 7)
    session_cookie_name: str = Field(
        default="greycat_session", description="Cookie carrying the password-login session"
    )

    # Real-time
    broadcast_url: str = Field(
        default="",
        description="Broadcaster URL for the cross-worker relay (redis://..., memory://). "
        "Empty disables the relay.",
    )
    broadcast_queue_size: int = Field(
        default=256, description="Outbound event buffer per real-time connection"
    )
    sse_heartbeat_interval: int = Field(default=30, description="SSE heartbeat interval in seconds")

    # Messaging
    message_page_size_default: int = Field(default=50, description="Default page size")
    message_max_length: int = Field(default=5000, description="Maximum message text length")
    channel_title_max_length: int = Field(default=120)
    channel_description_max_length: int = Field(default=2000)

    cors_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = (value or "INFO").upper()
        if not isinstance(logging.getLevelName(normalized), int):
            raise ValueError(f"Unknown log level: {value}")
        return normalized

    def get_database_url(self) -> str:
        """Get the appropriate database URL based on context."""
        if self.is_testing or is_running_tests():
            return self.test_database_url
        return self.database_url_raw

    @property
    def database_url(self) -> str:
        return self.get_database_url()

    @property
    def cors_origin_list(self) -> List[str]:
        return [token.strip() for token in self.cors_origins.split(",") if token.strip()]

    @property
    def relay_enabled(self) -> bool:
        return bool(self.broadcast_url.strip())


settings = Settings()
