"""Storefront settings (STOREFRONT_* environment variables)."""
from functools import lru_cache

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class StorefrontSettings(BaseSettings):
    model_config = ConfigDict(env_prefix="STOREFRONT_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    api_base_url: str = "http://localhost:5000"
    launch_status_path: str = "/api/v1/launch/status"
    launch_poll_interval_ms: int = Field(30000, ge=10)
    launch_request_timeout_seconds: float = 10.0
    holding_route: str = "/pre-launch"
    gate_exempt_paths: list[str] = ["/health", "/static/", "/favicon.ico"]

    @property
    def launch_status_url(self) -> str:
        return self.api_base_url.rstrip("/") + self.launch_status_path

    @property
    def launch_poll_interval_seconds(self) -> float:
        return self.launch_poll_interval_ms / 1000.0


@lru_cache
def get_storefront_settings() -> StorefrontSettings:
    return StorefrontSettings()
