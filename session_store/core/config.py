"""
Core configuration module for Session Store.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the SESSION_STORE_ prefix.

Components take explicit constructor arguments and only fall back to these
settings when an argument is omitted.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All fields use the SESSION_STORE_ prefix for environment variables.
    Example: SESSION_STORE_STORAGE_BACKEND=redis
    """

    # =========================================================================
    # Service Configuration
    # =========================================================================
    service_name: str = Field(
        default="session-store",
        description="Name of the service for logging and identification",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level for structured logging",
    )

    # =========================================================================
    # Backend Selection
    # =========================================================================
    storage_backend: Literal["local", "redis"] = Field(
        default="local",
        description="Backend used for both the keyed mutex and session storage",
    )

    # =========================================================================
    # Redis Configuration
    # =========================================================================
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL for session records and locks",
    )
    redis_pool_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Size of the Redis connection pool",
    )

    # =========================================================================
    # Session Records
    # =========================================================================
    session_lifetime_seconds: int = Field(
        default=3600,
        ge=1,
        description="Sliding time-to-live of a stored session record",
    )
    session_key_prefix: str = Field(
        default="session:",
        description="Key prefix for session records in Redis",
    )
    session_id_length: int = Field(
        default=48,
        ge=24,
        description="Length of generated session identifiers (base64url chars)",
    )
    compression_threshold: int = Field(
        default=256,
        ge=0,
        description="Encoded payloads larger than this many bytes are deflated",
    )
    compression_level: int = Field(
        default=1,
        ge=0,
        le=9,
        description="zlib compression level for large payloads",
    )

    # =========================================================================
    # Lock Leases
    # =========================================================================
    lock_key_prefix: str = Field(
        default="session-lock:",
        description="Key prefix for lock leases in Redis",
    )
    lock_ttl_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=3600.0,
        description="Lease TTL; leases are renewed every TTL / 2 while held",
    )
    lock_retry_min_seconds: float = Field(
        default=0.01,
        gt=0.0,
        description="Initial back-off between lock acquisition attempts",
    )
    lock_retry_max_seconds: float = Field(
        default=0.5,
        gt=0.0,
        description="Maximum back-off between lock acquisition attempts",
    )

    model_config = {
        "env_prefix": "SESSION_STORE_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    # =========================================================================
    # Field Validators
    # =========================================================================
    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str) -> str:
        """Validate Redis URL format."""
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("Redis URL must start with redis:// or rediss://")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("session_id_length")
    @classmethod
    def validate_session_id_length(cls, v: int) -> int:
        """Session ids are base64url without padding, so length must be a multiple of 4."""
        if v % 4 != 0:
            raise ValueError("Session id length must be divisible by four")
        return v

    @model_validator(mode="after")
    def validate_lock_retry_bounds(self) -> "Settings":
        """Ensure the back-off window is not inverted."""
        if self.lock_retry_min_seconds > self.lock_retry_max_seconds:
            raise ValueError("lock_retry_min_seconds must not exceed lock_retry_max_seconds")
        return self


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses functools.lru_cache to ensure only one Settings instance is created.
    Tests call get_settings.cache_clear() after patching the environment.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()
