from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    api_base_url: str = Field("", alias="API_BASE_URL")
    api_token: str = Field("", alias="API_TOKEN")
    user_email: str | None = Field(None, alias="DASHBOARD_USER_EMAIL")
    request_timeout: float = Field(10.0, alias="API_TIMEOUT_SECONDS")

    query_stale_seconds: float = Field(300.0, alias="QUERY_STALE_SECONDS")
    query_gc_seconds: float = Field(600.0, alias="QUERY_GC_SECONDS")
    query_retries: int = Field(3, alias="QUERY_RETRIES")
    query_retry_max_wait: float = Field(30.0, alias="QUERY_RETRY_MAX_WAIT")

    sse_path: str = Field("/api/realtime/sse", alias="SSE_PATH")
    sse_max_reconnect_attempts: int = Field(5, alias="SSE_MAX_RECONNECT_ATTEMPTS")

    ui_state_dir: str = Field(".local/timecraft", alias="UI_STATE_DIR")
    ui_state_max_age_hours: float = Field(24.0, alias="UI_STATE_MAX_AGE_HOURS")

    log_level: str = Field("INFO", alias="DASHBOARD_LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    @property
    def api_enabled(self) -> bool:
        return bool(self.api_base_url.strip() and self.api_token.strip())

    @property
    def sse_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}{self.sse_path}"


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
