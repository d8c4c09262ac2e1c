from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./fint_budgets.db"
    app_env: str = "dev"
    app_cors_origins: str = "*"
    log_level: str = "INFO"
    # Fint receipts API (source of spend aggregates)
    receipts_api_url: str = "https://api.fint.ngthav.xyz"
    # Used only when the incoming request carries no Authorization header.
    receipts_api_token: str | None = None
    receipts_api_timeout: float = 15.0
    default_alert_threshold: int = Field(default=80, ge=1, le=100)
    slack_webhook_url: str | None = None
    telegram_bot_token: str | None = None
    telegram_chat_id: str | None = None


settings = Settings()
