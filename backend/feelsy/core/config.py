from functools import lru_cache
from typing import ClassVar
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOCAL_HOSTNAMES = frozenset({"localhost", "127.0.0.1", "0.0.0.0"})


class Settings(BaseSettings):
    """Feelsy settings, read from the environment and an optional .env file."""

    # Must be non-empty at startup
    REQUIRED_SECRETS: ClassVar[tuple[str, ...]] = (
        "supabase_url",
        "supabase_anon_key",
        "supabase_service_role_key",
    )

    # development, staging or production
    environment: str = "development"

    # App
    app_name: str = "Feelsy API"
    debug: bool = False
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = ["http://localhost:8081"]

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""

    # Redis: cache, streak locks and the Celery broker
    redis_url: str = "redis://localhost:6379"

    rate_limit_enabled: bool = True

    # IANA zone whose calendar decides which day a check-in belongs to
    checkin_timezone: str = "UTC"

    # PostHog
    posthog_api_key: str = ""
    posthog_host: str = "https://us.i.posthog.com"
    posthog_enabled: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @model_validator(mode="after")
    def check_required_secrets(self) -> "Settings":
        missing = [
            name.upper() for name in self.REQUIRED_SECRETS if not getattr(self, name).strip()
        ]
        if missing:
            raise ValueError(
                f"Missing required secrets: {', '.join(missing)}. "
                "Set them in the environment or in .env."
            )
        return self

    @model_validator(mode="after")
    def check_checkin_timezone(self) -> "Settings":
        try:
            ZoneInfo(self.checkin_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(
                f"CHECKIN_TIMEZONE '{self.checkin_timezone}' is not a valid IANA timezone."
            ) from e
        return self

    @model_validator(mode="after")
    def check_production_cors(self) -> "Settings":
        """Production only accepts explicit, non-local origins."""
        if self.environment != "production":
            return self

        for origin in self.cors_origins:
            if origin == "*":
                raise ValueError("CORS_ORIGINS may not contain '*' in production.")
            hostname = urlparse(origin).hostname or origin
            if hostname in LOCAL_HOSTNAMES:
                raise ValueError(
                    f"CORS origin '{origin}' points at {hostname}, which is not allowed "
                    "in production."
                )
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
