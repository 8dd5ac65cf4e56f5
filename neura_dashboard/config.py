"""Gateway configuration pulled from environment variables via pydantic."""
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the Neura dashboard gateway."""
    model_config = SettingsConfigDict(env_prefix="NEURA_", extra="ignore", populate_by_name=True)

    # NEXT_PUBLIC_* names shared with the web frontend are accepted too.
    api_url: str = Field(
        default="http://localhost:8000",
        validation_alias=AliasChoices("NEURA_API_URL", "NEXT_PUBLIC_API_URL"),
    )
    supabase_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("NEURA_SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
    )
    supabase_anon_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("NEURA_SUPABASE_ANON_KEY", "NEXT_PUBLIC_SUPABASE_ANON_KEY"),
    )
    request_timeout_seconds: float = 30.0

    cache_ttl_seconds: int = 20 * 60
    overview_ttl_seconds: int | None = None  # cached until a forced refresh
    insights_ttl_seconds: int | None = None
    admin_ttl_seconds: int = 0

    poll_fast_interval_seconds: float = 2.0
    poll_slow_interval_seconds: float = 10.0
    poll_fast_count: int = 3
    completion_margin_ms: int = 1000
    stale_margin_ms: int = 5000
    completion_delay_seconds: float = 1.5

    session_redis_url: str | None = None
    session_ttl_seconds: int = 24 * 3600
    session_cookie_name: str = "neura_session"
    login_path: str = "/login"

    toast_duration_ms: int = 3000
    max_toasts: int = 50

    @field_validator("api_url", "supabase_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/") if v else v


settings = Settings()


if __name__ == "__main__":
    logger.logger.setLevel("DEBUG")
    logger.debug("Loaded settings: %s", settings.model_dump_json(indent=4))
    logger.info("Backend API: %s", mask_url(settings.api_url))
