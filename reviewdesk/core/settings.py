from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = Field(default="ReviewDesk API", alias="APP_NAME")
    app_env: str = Field(default="local", alias="APP_ENV")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    store_backend: str = Field(default="http", alias="STORE_BACKEND")
    platform_api_url: str = Field(default="http://localhost:8080", alias="PLATFORM_API_URL")
    platform_api_token: str | None = Field(default=None, alias="PLATFORM_API_TOKEN")
    request_timeout_s: float = Field(default=15.0, alias="REQUEST_TIMEOUT_S")
    database_url: str = Field(
        default="sqlite+pysqlite:///./reviewdesk.db",
        alias="DATABASE_URL",
    )

    refresh_interval_s: float = Field(default=30.0, alias="REFRESH_INTERVAL_S")
    refresh_max_retries: int = Field(default=3, alias="REFRESH_MAX_RETRIES")
    refresh_retry_base_delay_s: float = Field(default=1.0, alias="REFRESH_RETRY_BASE_DELAY_S")
    auto_refresh_enabled: bool = Field(default=True, alias="AUTO_REFRESH_ENABLED")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
