"""Centralised client settings loaded from environment / .env file."""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Backend
    api_base: str = "http://localhost:8080"
    request_timeout: float = 15.0  # seconds

    # Google Maps (geocoding of free-text places)
    google_maps_key: str = ""
    google_geocode_url: str = "https://maps.googleapis.com/maps/api/geocode/json"

    # Session persistence
    session_backend: str = "file"  # memory | file | redis
    session_file: str = "~/.routelink/session.json"
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "routelink:"

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_prefix": "ROUTELINK_", "extra": "ignore"}

    @field_validator("api_base")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") or "http://localhost:8080"


settings = Settings()
