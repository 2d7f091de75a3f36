"""
Centralized configuration management for the controller integration core.

This module provides a unified configuration system with support for:
- Environment variables (optionally loaded from a .env file)
- Feature flags
- Runtime configuration
- Validation using Pydantic
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from .constants import EnvironmentVariable, LogLevel, PriceWireUnit


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.DATABASE_URL.value, "sqlite:///./omada_voucher.db"
        ),
        description="Database connection string",
    )
    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum overflow connections")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    echo: bool = Field(default=False, description="Echo SQL statements")


class QueueConfig(BaseModel):
    """Queue configuration for Azure Storage Queues (log shipping)."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.AZURE_STORAGE_CONNECTION.value, ""),
        description="Azure Storage connection string",
    )
    logs_queue_name: str = Field(default="logs-queue", description="Logs queue name")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class ControllerConfig(BaseModel):
    """HTTP behaviour when talking to the wireless controller."""

    connect_timeout: float = Field(default=5.0, gt=0, description="Connect timeout (seconds)")
    read_timeout: float = Field(
        default_factory=lambda: float(
            os.getenv(EnvironmentVariable.CONTROLLER_TIMEOUT.value, "15")
        ),
        gt=0,
        description="Read timeout (seconds)",
    )
    verify_ssl: bool = Field(
        default_factory=lambda: _env_bool(EnvironmentVariable.CONTROLLER_VERIFY_SSL.value, "true"),
        description="Verify the controller TLS certificate",
    )
    page_size: int = Field(default=100, gt=0, description="Page size for site/group listings")
    voucher_page_size: int = Field(
        default=1000, gt=0, description="Page size for vouchers inside a group"
    )
    auth_header_format: str = Field(
        default="AccessToken={token}", description="Authorization header value template"
    )
    price_wire_unit: PriceWireUnit = Field(
        default_factory=lambda: PriceWireUnit(
            os.getenv(EnvironmentVariable.PRICE_WIRE_UNIT.value, PriceWireUnit.DECIMAL.value)
        ),
        description="Wire representation of voucher prices",
    )
    default_currency: str = Field(default="BRL", description="Currency when none is given")

    @field_validator("auth_header_format")
    def validate_header_format(cls, v: str) -> str:
        if "{token}" not in v:
            raise ValueError("auth_header_format must contain '{token}'")
        return v


class TokenConfig(BaseModel):
    """Token cache behaviour."""

    safety_margin_seconds: int = Field(
        default_factory=lambda: int(
            os.getenv(EnvironmentVariable.TOKEN_SAFETY_MARGIN.value, "60")
        ),
        ge=0,
        description="Seconds before provider expiry at which a token stops being used",
    )
    default_ttl_seconds: int = Field(
        default=7200, gt=0, description="TTL assumed when the controller omits expiresIn"
    )
    refresh_wait_timeout_seconds: float = Field(
        default=30.0, gt=0, description="How long callers wait on an in-flight refresh"
    )


class SyncConfig(BaseModel):
    """Synchronization scheduler behaviour."""

    interval_seconds: int = Field(
        default_factory=lambda: int(os.getenv(EnvironmentVariable.SYNC_INTERVAL.value, "300")),
        gt=0,
        description="Seconds between sync runs",
    )
    run_on_start: bool = Field(default=True, description="Run once as soon as the scheduler starts")
    max_step_attempts: int = Field(default=3, ge=1, description="Attempts per sync step")
    backoff_base_seconds: int = Field(default=2, ge=0, description="Base for exponential backoff")
    backoff_max_seconds: int = Field(default=60, ge=0, description="Maximum backoff")
    backoff_jitter: bool = Field(default=True, description="Randomize backoff by +/-25%")


class SecurityConfig(BaseModel):
    """Security-related configuration."""

    encryption_key: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.ENCRYPTION_KEY.value),
        description="Symmetric key for pgcrypto column encryption",
    )


class FeatureFlags(BaseModel):
    """Feature flags for controlling framework behavior."""

    enable_logs_queue: bool = Field(
        default=False, description="Ship logs to an Azure Storage Queue"
    )
    enable_auto_sync: bool = Field(default=True, description="Start the sync scheduler thread")


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.APP_ENV.value, "development"),
        description="Application environment",
    )
    debug: bool = Field(
        default_factory=lambda: _env_bool("DEBUG", "false"),
        description="Debug mode",
    )

    # Sub-configurations
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    controller: ControllerConfig = Field(default_factory=ControllerConfig)
    token: TokenConfig = Field(default_factory=TokenConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    features: FeatureFlags = Field(default_factory=FeatureFlags)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "AppConfig":
        """Create configuration from environment variables, loading env_file first if given."""
        if env_file:
            load_dotenv(env_file, override=False)
        return cls()


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
