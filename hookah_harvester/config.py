"""Application configuration using Pydantic settings."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(ValueError):
    """Raised when a component is built with unusable configuration."""
    pass


class Settings(BaseSettings):
    """Harvester settings, overridable through HARVESTER_* environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="HARVESTER_",
        case_sensitive=False,
        extra="ignore",
    )

    # Source
    base_url: str = "https://htreviews.org"
    user_agent: str = "Mozilla/5.0 (compatible; HookahHarvester/1.0; +https://htreviews.org)"

    # App Settings
    log_level: str = "INFO"
    log_dir: str = ""

    # ==========================================================================
    # Fetch Client Settings
    # ==========================================================================
    request_timeout_seconds: float = 30.0
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0  # Base delay between attempts
    retry_backoff_exponential: bool = True  # 1s, 2s, 4s... when enabled
    request_delay_seconds: float = 1.0  # Minimum gap between two requests
    concurrent_requests: int = 3  # Brands scraped at once in batch runs

    # ==========================================================================
    # Pagination Settings
    # ==========================================================================
    page_size: int = 20
    scroll_delay_seconds: float = 1.0  # Extra delay between listing pages
    fallback_page_delay_seconds: float = 0.5

    # ==========================================================================
    # Flavor Discovery Settings
    # ==========================================================================
    enable_api_extraction: bool = True
    enable_api_fallback: bool = True
    api_endpoint: str = "/postData"
    api_flavors_per_request: int = 20
    api_max_pages: int = 100
    api_request_delay_seconds: float = 0.5

    # ==========================================================================
    # Cache Settings
    # ==========================================================================
    cache_default_ttl_seconds: int = 86400  # 24 hours
    cache_check_period_seconds: int = 600  # Sweep expired keys every 10 minutes

    # ==========================================================================
    # Scheduled Refresh Settings
    # ==========================================================================
    scheduler_enabled: bool = True
    scheduler_timezone: str = "UTC"
    brands_refresh_cron: str = "0 2 * * *"
    flavors_refresh_cron: str = "0 3 * * *"
    full_refresh_cron: str = "0 4 * * *"
    scheduler_max_history: int = 100

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("page_size", "api_flavors_per_request", "concurrent_requests", "api_max_pages")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator(
        "max_retries",
        "request_delay_seconds",
        "scroll_delay_seconds",
        "retry_backoff_seconds",
        "cache_default_ttl_seconds",
    )
    @classmethod
    def _check_non_negative(cls, value):
        if value < 0:
            raise ValueError("must not be negative")
        return value


settings = Settings()
