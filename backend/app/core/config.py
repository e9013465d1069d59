# backend/app/core/config.py
import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


_BACKEND_ROOT = Path(__file__).resolve().parents[2]

_DEFAULT_TOKEN_SECRET = "dev-action-token-secret-change-in-production"


class Settings(BaseSettings):
    """Application settings loaded from the environment (and backend/.env)."""

    model_config = SettingsConfigDict(
        env_file=str(_BACKEND_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: str = Field(default="development", description="deployment environment")
    log_level: str = Field(default="INFO")

    database_url: str = Field(
        default=f"sqlite:///{_BACKEND_ROOT / 'scheduling.db'}",
        description="SQLAlchemy database URL",
    )
    sqlite_busy_timeout_seconds: float = Field(default=30.0, gt=0)

    # Self-service action links
    action_token_secret: SecretStr = Field(default=SecretStr(_DEFAULT_TOKEN_SECRET))
    action_token_ttl_hours: int = Field(default=168, ge=1)
    action_token_algorithm: str = "HS256"

    # Slot engine
    slot_step_minutes: int = Field(default=15, ge=5, le=60)
    max_availability_range_days: int = Field(default=90, ge=1)
    default_display_timezone: str = "UTC"

    # Notifications
    reminder_window_hours: int = Field(default=24, ge=1)
    notification_max_attempts: int = Field(default=3, ge=1)

    # Trusted admin surface
    admin_api_key: Optional[SecretStr] = None

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        level = (v or "INFO").upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in {"prod", "production"}

    def get_database_url(self) -> str:
        return self.database_url


settings = Settings()

if settings.is_production and (
    settings.action_token_secret.get_secret_value() == _DEFAULT_TOKEN_SECRET
):
    logger.warning("[CONFIG] ACTION_TOKEN_SECRET is using the development default")
