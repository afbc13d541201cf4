"""Конфигурация приложения."""
from datetime import datetime, timezone
from functools import lru_cache
from typing import Literal

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")
    app_env: str = "development"
    debug: bool = True
    api_prefix: str = "/api/v1"

    database_url: str | None = None
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "tendomarket"
    postgres_user: str = "tendomarket"
    postgres_password: str = "changeme"

    jwt_secret: str = "your-jwt-secret-min-32-chars"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7

    # bcrypt cost factor; one canonical value for scripts and the API
    password_hash_rounds: int = Field(12, ge=4, le=31)

    admin_bootstrap_strategy: Literal["find_or_create", "replace_all"] = "find_or_create"
    admin_default_email: str = "admin@tendo.uz"
    admin_default_password: str = "changeme"
    admin_default_first_name: str = "Admin"
    admin_default_last_name: str = "Super"
    admin_default_language: str = "ru"

    is_launched: bool = False
    launch_date: datetime = datetime(2025, 9, 15, tzinfo=timezone.utc)
    pre_launch_enabled: bool = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
