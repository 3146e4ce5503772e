"""
Configuration management for CyberNexus ISMS.

Uses Pydantic Settings for type-safe configuration with
environment variable support.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List, Optional

from pydantic import Field, PostgresDsn, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "CyberNexus ISMS"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|staging|production|test)$")

    # API
    api_prefix: str = "/api/v1"
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    cors_origins: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    # Security
    secret_key: str = Field(..., min_length=32)
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    max_failed_logins: int = 5
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # Storage
    storage_backend: str = Field(default="postgres", pattern="^(memory|postgres)$")
    database_url: Optional[PostgresDsn] = None
    database_pool_min_size: int = 2
    database_pool_max_size: int = 20
    database_command_timeout: int = 60
    id_allocation_strategy: str = Field(default="counter", pattern="^(counter|scan)$")

    # Rate limiting (requests per window, per client IP)
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 100
    rate_limit_window_seconds: float = 15 * 60
    auth_rate_limit_requests: int = 5
    auth_rate_limit_window_seconds: float = 15 * 60
    # Proxies in front of the API that append to X-Forwarded-For; 0 uses the socket peer
    trusted_proxy_hops: int = Field(default=0, ge=0)

    # Alert horizons
    policy_review_horizon_days: int = 30
    upcoming_audit_horizon_days: int = 7
    alert_findings_limit: int = 10

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # "json" or "text"
    log_file: Optional[Path] = None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> List[str]:
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @model_validator(mode="after")
    def check_database_url(self) -> "Settings":
        """The postgres backend needs a DSN."""
        if self.storage_backend == "postgres" and self.database_url is None:
            raise ValueError("DATABASE_URL is required when STORAGE_BACKEND=postgres")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
