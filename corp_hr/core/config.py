"""Application configuration."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    model_config = SettingsConfigDict(env_file=".env")

    # Database
    database_url: str
    database_pool_min_size: int = 2
    database_pool_max_size: int = 10

    # Corporation membership oracle
    corporation_data_url: str
    corporation_data_token: str | None = None

    # Internal API (shared secret with the session layer, optional)
    internal_api_key: str | None = None

    # Application
    log_level: str = "INFO"
    expose_error_details: bool = False

    # HR roles
    role_cache_ttl_seconds: int = 300
    expired_role_sweep_minutes: int = 60

    # Rate limits (slowapi syntax)
    submission_rate_limit: str = "10/minute"

    @field_validator("corporation_data_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the oracle base URL so endpoint paths can be appended."""
        return v.strip().rstrip("/")

    @field_validator("role_cache_ttl_seconds")
    @classmethod
    def validate_cache_ttl(cls, v: int) -> int:
        """Cache TTL must be positive; a zero TTL would make every read a miss."""
        if v <= 0:
            raise ValueError("ROLE_CACHE_TTL_SECONDS must be a positive number of seconds")
        return v


settings = Settings()
