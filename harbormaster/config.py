"""Configuration loading for the HarborMaster registry.

This module provides centralized configuration management:
- Load settings from environment variables and .env files
- Validate configuration using pydantic
- Provide typed access to all settings
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment.

    Uses pydantic-settings for environment variable handling with
    .env file support.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Registry store configuration
    store_backend: Literal["postgresql", "sqlite"] = Field(
        default="postgresql",
        description="Registry store backend type",
    )
    database_url: str = Field(
        default="postgresql://harbormaster@localhost:5432/harbormaster",
        description="PostgreSQL connection URL",
    )
    store_sqlite_path: str = Field(
        default="./data/harbormaster.db",
        description="SQLite database file path",
    )
    store_pool_size: int = Field(
        default=10,
        description="Maximum number of pooled store connections",
    )
    create_database: bool = Field(
        default=False,
        description="Create the PostgreSQL database on startup when missing",
    )
    seed_on_startup: bool = Field(
        default=True,
        description="Insert sample docks, ships and haulers into an empty registry",
    )

    # HTTP server configuration
    http_host: str = Field(
        default="0.0.0.0",
        description="Host to listen on for the REST API",
    )
    http_port: int = Field(
        default=5000,
        description="Port to listen on for the REST API",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Seconds a request may wait for its registry operation",
    )
    max_body_bytes: int = Field(
        default=1024 * 1024,
        description="Largest accepted request body in bytes",
    )

    # Logging configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Log level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log format",
    )

    # Run mode
    run_mode: Literal["server", "init"] = Field(
        default="server",
        description="Serve the API, or initialize the store and exit",
    )

    # Development
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging",
    )

    @field_validator("store_pool_size")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        """Ensure pool size is positive."""
        if v <= 0:
            raise ValueError("store_pool_size must be positive")
        return v

    @field_validator("http_port")
    @classmethod
    def validate_http_port(cls, v: int) -> int:
        """Ensure HTTP port is in valid range."""
        if v <= 0 or v > 65535:
            raise ValueError("http_port must be between 1 and 65535")
        return v

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_request_timeout(cls, v: float) -> float:
        """Ensure request timeout is positive."""
        if v <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return v

    @field_validator("max_body_bytes")
    @classmethod
    def validate_max_body_bytes(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("max_body_bytes must be positive")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Ensure the URL names a PostgreSQL server when one is given."""
        if v and not v.startswith(("postgresql://", "postgres://")):
            raise ValueError("database_url must start with postgresql://")
        return v


def load_settings(env_file: str | None = None) -> Settings:
    """Load application settings from environment.

    Args:
        env_file: Optional path to .env file. If not provided,
                 uses the default .env in the current directory.

    Returns:
        Validated Settings instance.

    Raises:
        ValidationError: If settings validation fails.
    """
    if env_file:
        return Settings(_env_file=env_file)  # type: ignore[call-arg]
    return Settings()


__all__ = ["Settings", "load_settings"]
