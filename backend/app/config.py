"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Catalog database
    database_url: str | None = None

    # Session store
    redis_url: str | None = None
    session_ttl_seconds: int = 60 * 60 * 24 * 30

    # Narrative generator
    openai_api_key: SecretStr | None = None
    openai_model: str = "gpt-4o-mini"
    narrative_temperature: float = 0.7

    # External place lookup / photos
    google_maps_key: SecretStr | None = None
    places_language: str = "en"
    places_photo_max_width: int = 800
    unsplash_access_key: SecretStr | None = None

    # Dev/test escape hatch: run with stub narrative and no external places
    allow_stub_providers: bool = False

    # Timeouts (milliseconds)
    narrative_timeout_ms: int = 15000
    places_timeout_ms: int = 4000
    photos_timeout_ms: int = 4000
    catalog_timeout_ms: int = 2000

    # Retry jitter (milliseconds)
    provider_retry_count: int = 1
    retry_jitter_min_ms: int = 200
    retry_jitter_max_ms: int = 500

    # Circuit breaker
    circuit_breaker_failures: int = 5
    circuit_breaker_window_sec: int = 60
    circuit_breaker_half_open_sec: int = 30

    # Cache TTLs (seconds)
    places_cache_ttl_seconds: int = 6 * 3600
    photos_cache_ttl_seconds: int = 3600

    # Overall run deadline (seconds)
    pipeline_deadline_seconds: float = 90.0

    # Resolution
    catalog_search_limit: int = 10
    rank_by_rating: bool = False
    external_photo_limit: int = 3

    # Budget window (fraction either side of the target)
    budget_tolerance: float = 0.3

    # Assembly
    main_photo_limit: int = 10
    illustrative_photo_count: int = 3

    # Number of time slots resolved for a preview (None = all)
    preview_location_limit: int | None = 2


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
