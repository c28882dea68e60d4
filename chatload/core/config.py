"""Application configuration using Pydantic Settings.

Settings are loaded from environment variables (and an optional ``.env``
file) with validation. The variable names match the ones the legacy
load-test tooling used, e.g. ``MAX_CONCURRENT_REQUESTS`` and
``VERBOSE_OUTPUT``.
"""

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SCENARIO_MODELS = [
    "llama-3.1-8b",
    "llama-3.1-70b",
    "qwen-2.5-coder-32b",
    "llama-3.1-405b",
    "gpt-4o-mini",
]


class Settings(BaseSettings):
    """Load-test settings with validation.

    All settings can be overridden via environment variables matching the
    field names (case-insensitive).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Target API
    base_url: str = Field(
        default="https://api.mor.org",
        description="Base URL of the chat-completion API",
    )
    api_path: str = Field(
        default="/api/v1/chat/completions",
        description="Path of the chat-completion endpoint",
    )
    request_timeout_sec: float = Field(
        default=60.0,
        gt=0,
        description="Network timeout for a single exchange",
    )
    default_model: str = Field(
        default="default",
        min_length=1,
        description="Model used when a credential has no bound model",
    )
    system_prompt: str = Field(
        default="You are a helpful assistant.",
        description="System message sent with every request",
    )

    # Scheduling
    max_concurrent_requests: int = Field(
        default=100,
        ge=1,
        description="Concurrency limit: batch size and worker pool capacity",
    )
    max_workers: int = Field(
        default_factory=lambda: os.cpu_count() or 4,
        ge=1,
        description="Upper bound on threads used by concurrent scenarios",
    )
    exchanges_per_conversation: int = Field(
        default=3,
        ge=1,
        description="Number of exchanges in each conversation",
    )
    exchange_delay_min_sec: float = Field(
        default=1.0,
        ge=0.0,
        description="Lower bound of the pause between exchanges",
    )
    exchange_delay_max_sec: float = Field(
        default=3.0,
        ge=0.0,
        description="Upper bound (exclusive) of the pause between exchanges",
    )

    # Storage
    api_keys_file: str = Field(
        default="data/api_keys_temp.json",
        description="Path to the credential store",
    )
    results_dir: str = Field(
        default="results",
        description="Directory that receives test_<timestamp> result trees",
    )

    # Scenarios
    scenario_models: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCENARIO_MODELS),
        min_length=1,
        description="Models assigned one per key in the multi-model scenarios",
    )

    # Logging
    verbose_output: bool = Field(
        default=False,
        description="Log every request and response body",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )

    # Metrics
    metrics_port: int | None = Field(
        default=None,
        ge=1,
        le=65535,
        description="Expose Prometheus metrics on this port during a run",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str) -> str:
        """Ensure log level is uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("exchange_delay_max_sec")
    @classmethod
    def delay_bounds_ordered(cls, v: float, info) -> float:
        """Reject a delay range whose upper bound is below the lower bound."""
        lower = info.data.get("exchange_delay_min_sec")
        if lower is not None and v < lower:
            raise ValueError("exchange_delay_max_sec must be >= exchange_delay_min_sec")
        return v

    @property
    def api_endpoint(self) -> str:
        """Full URL of the chat-completion endpoint."""
        return f"{self.base_url}{self.api_path}"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
