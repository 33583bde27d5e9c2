import os
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="TECHENGLISH_DATABASE_URL")
    database_pool_size: int = Field(10, alias="TECHENGLISH_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="TECHENGLISH_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="TECHENGLISH_DATABASE_ECHO")
    debug_endpoints: bool = Field(False, alias="TECHENGLISH_DEBUG_ENDPOINTS")
    session_max_idle_minutes: int = Field(240, ge=1, alias="TECHENGLISH_SESSION_MAX_IDLE_MINUTES")
    progress_upsert_max_retries: int = Field(3, ge=1, alias="TECHENGLISH_PROGRESS_UPSERT_MAX_RETRIES")
    rate_limit_requests: int = Field(60, ge=1, alias="TECHENGLISH_RATE_LIMIT_REQUESTS")
    rate_limit_window_seconds: float = Field(60.0, gt=0, alias="TECHENGLISH_RATE_LIMIT_WINDOW_SECONDS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
