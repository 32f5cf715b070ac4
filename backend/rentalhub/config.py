from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    database_url: str
    db_pool_size: int = 2
    db_max_overflow: int = 1
    db_pool_timeout: int = 5
    db_pool_recycle: int = 3600

    # Persistence collaborator bounds
    persistence_timeout_seconds: int = 5
    persistence_retry_attempts: int = 3
    persistence_retry_backoff_seconds: float = 1.0  # doubled after every failed attempt
    persistence_retry_backoff_max_seconds: float = 8.0

    # Rental lifecycle
    equipment_sync_background_retry: bool = True

    # Notifications
    notifications_enabled: bool = True
    notification_webhook_url: Optional[str] = None  # email / push relay
    notification_webhook_timeout_seconds: float = 10.0

    # CORS
    frontend_url: str = "http://localhost:5173"

    # Flask environment
    flask_env: str = "development"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    def is_dev(self) -> bool:
        """True when running in development mode."""
        return (self.flask_env or "").strip().lower() == "development"

    @field_validator("notification_webhook_url", mode="before")
    @classmethod
    def blank_webhook_url_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("persistence_retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("persistence_retry_attempts must be at least 1")
        return value


settings = Settings()
