from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from fastapi import Depends
from typing_extensions import Annotated


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    log_level: str = "INFO"

    redis_dsn: str = "redis://localhost:6379/0"
    redis_enabled: bool = True
    redis_pool_size: int = 5
    redis_socket_timeout: float = 2.0

    goals_cache_ttl_seconds: int = 30  # list pages are short-lived
    tag_ttl_slack_seconds: int = 300  # tag set must outlive every tagged page

    default_page_size: int = 20
    max_page_size: int = 100
    default_progress_page_size: int = 50
    max_progress_page_size: int = 200

    reminder_scheduler_enabled: bool = True
    reminder_batch_size: int = 100
    reminder_tick_seconds: float = 60.0


@lru_cache
def get_settings() -> Settings:
    return Settings()


SettingsDep = Annotated[Settings, Depends(get_settings)]
