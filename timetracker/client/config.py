"""Timer client configuration using Pydantic Settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Client settings loaded from ``TIMETRACKER_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="TIMETRACKER_", extra="ignore"
    )

    api_base_url: str = "http://localhost:8000"
    poll_interval_seconds: float = 1.0
    tick_interval_seconds: float = 1.0
    request_timeout_seconds: float = 10.0
