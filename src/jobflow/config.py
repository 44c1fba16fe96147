from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "JobFlow"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 5000
    timezone: str = "UTC"
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/jobflow.db"
    data_dir: Path = Path("./data")

    # Fernet key, see `jobflow vault generate-key`
    encryption_key: str = ""

    sendgrid_api_key: str = ""
    default_sender_email: str = "noreply@jobflow.com"
    campaign_send_delay_ms: int = 100

    default_daily_target: int = 7

    cors_origins: str = "http://127.0.0.1:5000"
    user_id_header: str = "X-User-Id"

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("campaign_send_delay_ms")
    @classmethod
    def validate_delay(cls, value: int) -> int:
        if value < 0:
            raise ValueError("campaign_send_delay_ms must not be negative")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
