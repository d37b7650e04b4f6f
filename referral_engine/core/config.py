from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="dev", alias="APP_ENV")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")
    app_base_url: str = Field(default="", alias="APP_BASE_URL")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./referral_engine.db",
        alias="DATABASE_URL",
    )

    celery_broker_url: str = Field(default="redis://localhost:6379/0", alias="CELERY_BROKER_URL")
    celery_result_backend: str = Field(
        default="redis://localhost:6379/1",
        alias="CELERY_RESULT_BACKEND",
    )

    reporting_timezone: str = Field(default="America/Chicago", alias="REPORTING_TIMEZONE")

    email_webhook_url: str = Field(default="", alias="EMAIL_WEBHOOK_URL")
    email_api_token: str = Field(default="", alias="EMAIL_API_TOKEN")
    email_from_address: str = Field(
        default="noreply@guardianstormrepair.com",
        alias="EMAIL_FROM_ADDRESS",
    )
    sms_webhook_url: str = Field(default="", alias="SMS_WEBHOOK_URL")
    sms_api_token: str = Field(default="", alias="SMS_API_TOKEN")
    sms_from_number: str = Field(default="", alias="SMS_FROM_NUMBER")

    notification_max_concurrency: int = Field(default=8, alias="NOTIFICATION_MAX_CONCURRENCY")
    notification_provider_timeout_seconds: float = Field(
        default=5.0,
        alias="NOTIFICATION_PROVIDER_TIMEOUT_SECONDS",
    )
    notification_flush_interval_seconds: int = Field(
        default=60,
        alias="NOTIFICATION_FLUSH_INTERVAL_SECONDS",
    )

    sweep_hour: int = Field(default=9, alias="SWEEP_HOUR")
    sweep_minute: int = Field(default=0, alias="SWEEP_MINUTE")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
