from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from fastapi import Depends
from typing_extensions import Annotated

from dotenv import load_dotenv

load_dotenv()

DEFAULT_BASE_URL = "http://localhost:8000"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite+aiosqlite:///./tasks.db"
    database_echo: bool = False

    # Empty string disables the Redis tier (L1 only)
    redis_dsn: str = "redis://localhost:6379/0"
    redis_pool_size: int = 5
    l1_maxsize: int = 2048
    l1_ttl_seconds: int = 60  # default L1 TTL
    l2_ttl_seconds: int = 300  # default Redis TTL
    cache_namespace: str = "appcache:"

    # Revalidation window of the task list data cache
    data_cache_revalidate_seconds: int = 15

    app_base_url: str | None = None
    deployment_host: str | None = None

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()


SettingsDep = Annotated[Settings, Depends(get_settings)]


def _normalize_base_url(value: str | None) -> str | None:
    if not value:
        return None
    if value.startswith("http://") or value.startswith("https://"):
        return value.rstrip("/")
    return f"https://{value.rstrip('/')}"


def get_app_base_url(settings: Settings | None = None) -> str:
    """Base URL used for outbound fetches back into this application."""
    settings = settings or get_settings()
    return (
        _normalize_base_url(settings.app_base_url)
        or _normalize_base_url(settings.deployment_host)
        or DEFAULT_BASE_URL
    )
