"""
Configuration management for the dayplan sync engine.

All configuration comes from environment variables (optionally a .env
file) through pydantic-settings. Every setting has a default suitable for
local development.

Invariants:
    - Retry policies built from settings are immutable
    - The store API key is never logged

How to change safely:
    - Add new settings with defaults that keep existing deployments working
    - Keep initial-load retries more patient than interactive writes
"""

from __future__ import annotations

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .retry.policy import BackoffKind, RetryPolicies, RetryPolicy

logger = logging.getLogger(__name__)


class RetrySettings(BaseSettings):
    """Per-operation-kind retry defaults.

    Initial load blocks first paint, so it gets more attempts and a longer
    base delay than interactive writes, which must fail fast.
    """

    load_max_attempts: int = Field(default=3, ge=0)
    load_base_delay_ms: int = Field(default=1000, ge=0)
    write_max_attempts: int = Field(default=2, ge=0)
    write_base_delay_ms: int = Field(default=500, ge=0)
    reorder_max_attempts: int = Field(default=0, ge=0)
    reorder_base_delay_ms: int = Field(default=250, ge=0)
    backoff: str = Field(default="exponential", description="linear or exponential")

    model_config = SettingsConfigDict(env_prefix="DAYPLAN_RETRY_", extra="ignore")

    @field_validator("backoff")
    @classmethod
    def _check_backoff(cls, value: str) -> str:
        value = value.strip().lower()
        try:
            BackoffKind(value)
        except ValueError:
            raise ValueError(
                f"Invalid backoff '{value}'. Must be one of: linear, exponential"
            ) from None
        return value

    def policies(self) -> RetryPolicies:
        """Build the immutable policies handed to the mutation coordinator."""
        backoff = BackoffKind(self.backoff)
        return RetryPolicies(
            load=RetryPolicy(self.load_max_attempts, self.load_base_delay_ms, backoff),
            write=RetryPolicy(self.write_max_attempts, self.write_base_delay_ms, backoff),
            reorder=RetryPolicy(self.reorder_max_attempts, self.reorder_base_delay_ms, backoff),
        )


class StoreSettings(BaseSettings):
    """Hosted store endpoint."""

    url: str = Field(default="http://localhost:54321", description="Base URL of the store")
    api_key: str = Field(default="", description="Anonymous API key")
    timeout_seconds: float = Field(default=10.0, gt=0)
    schema_name: str = Field(default="public")

    model_config = SettingsConfigDict(env_prefix="DAYPLAN_STORE_", extra="ignore")


class ObservabilitySettings(BaseSettings):
    """Logging configuration."""

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or text")

    model_config = SettingsConfigDict(env_prefix="DAYPLAN_", extra="ignore")

    @field_validator("log_format")
    @classmethod
    def _check_format(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("json", "text"):
            raise ValueError(f"Invalid log_format '{value}'. Must be one of: json, text")
        return value


class SyncSettings(BaseSettings):
    """Complete engine configuration.

    Attributes:
        retry: Retry policy defaults
        store: Hosted store endpoint
        observability: Logging configuration
    """

    retry: RetrySettings = Field(default_factory=RetrySettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @classmethod
    def from_env(cls) -> SyncSettings:
        """Load every section from environment variables.

        Raises:
            ValueError: If a setting is invalid
        """
        return cls(
            retry=RetrySettings(),
            store=StoreSettings(),
            observability=ObservabilitySettings(),
        )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Sync configuration loaded",
            extra={
                "store_url": self.store.url,
                "store_api_key": "***" if self.store.api_key else None,
                "load_max_attempts": self.retry.load_max_attempts,
                "write_max_attempts": self.retry.write_max_attempts,
                "backoff": self.retry.backoff,
                "log_level": self.observability.log_level,
            },
        )
