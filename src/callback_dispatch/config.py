"""Application settings."""

import json
from enum import StrEnum
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class StoreBackend(StrEnum):
    """Available persistence adapters for callback state."""

    IN_MEMORY = "in_memory"
    POSTGRES = "postgres"


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "Callback Dispatch"
    api_prefix: str = ""
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    store_backend: StoreBackend = StoreBackend.IN_MEMORY
    postgres_dsn: str | None = None
    postgres_pool_min_size: int = 1
    postgres_pool_max_size: int = 10
    store_lease_seconds: float = 30.0
    worker_concurrency: int = 4
    queue_capacity: int = 1000
    default_timeout_seconds: float = 30.0
    callback_timeouts: Annotated[dict[str, float], NoDecode] = Field(default_factory=dict)
    max_attempts: int = 3
    retry_base_delay_seconds: float = 2.0
    retry_max_delay_seconds: float = 30.0
    retry_jitter_ratio: float = 0.125
    recovery_poll_seconds: float = 1.0
    recovery_batch_size: int = 20
    default_base_url: str | None = None
    signing_secret: str | None = None
    signing_key_id: str | None = None
    default_headers: Annotated[dict[str, str], NoDecode] = Field(default_factory=dict)

    @field_validator("default_headers", "callback_timeouts", mode="before")
    @classmethod
    def parse_key_value_pairs(cls, value: object) -> object:
        """Support `name=value,name=value` env var values in addition to JSON objects."""

        if not isinstance(value, str):
            return value
        stripped = value.strip()
        if not stripped:
            return {}
        if stripped.startswith("{"):
            return json.loads(stripped)

        pairs: dict[str, str] = {}
        for item in stripped.split(","):
            name, separator, raw = item.partition("=")
            if not separator or not name.strip():
                raise ValueError(f"Expected 'name=value' pair, got '{item.strip()}'.")
            pairs[name.strip()] = raw.strip()
        return pairs

    @model_validator(mode="after")
    def validate_dispatch_settings(self) -> "Settings":
        """Ensure backend and retry settings are consistent."""

        if self.store_backend == StoreBackend.POSTGRES and not self.postgres_dsn:
            raise ValueError(
                "CALLBACK_DISPATCH_POSTGRES_DSN is required when "
                "CALLBACK_DISPATCH_STORE_BACKEND=postgres."
            )
        if self.postgres_pool_min_size < 1:
            raise ValueError("CALLBACK_DISPATCH_POSTGRES_POOL_MIN_SIZE must be >= 1.")
        if self.postgres_pool_max_size < self.postgres_pool_min_size:
            raise ValueError(
                "CALLBACK_DISPATCH_POSTGRES_POOL_MAX_SIZE must be >= "
                "CALLBACK_DISPATCH_POSTGRES_POOL_MIN_SIZE."
            )
        if self.store_lease_seconds <= 0:
            raise ValueError("CALLBACK_DISPATCH_STORE_LEASE_SECONDS must be > 0.")
        if self.worker_concurrency < 1:
            raise ValueError("CALLBACK_DISPATCH_WORKER_CONCURRENCY must be >= 1.")
        if self.queue_capacity < 1:
            raise ValueError("CALLBACK_DISPATCH_QUEUE_CAPACITY must be >= 1.")
        if self.default_timeout_seconds <= 0:
            raise ValueError("CALLBACK_DISPATCH_DEFAULT_TIMEOUT_SECONDS must be > 0.")
        if any(timeout <= 0 for timeout in self.callback_timeouts.values()):
            raise ValueError("CALLBACK_DISPATCH_CALLBACK_TIMEOUTS values must be > 0.")
        if self.max_attempts < 1:
            raise ValueError("CALLBACK_DISPATCH_MAX_ATTEMPTS must be >= 1.")
        if self.retry_base_delay_seconds < 0:
            raise ValueError("CALLBACK_DISPATCH_RETRY_BASE_DELAY_SECONDS must be >= 0.")
        if self.retry_max_delay_seconds < self.retry_base_delay_seconds:
            raise ValueError(
                "CALLBACK_DISPATCH_RETRY_MAX_DELAY_SECONDS must be >= "
                "CALLBACK_DISPATCH_RETRY_BASE_DELAY_SECONDS."
            )
        if not 0 <= self.retry_jitter_ratio <= 1:
            raise ValueError("CALLBACK_DISPATCH_RETRY_JITTER_RATIO must be within [0, 1].")
        if self.recovery_poll_seconds <= 0:
            raise ValueError("CALLBACK_DISPATCH_RECOVERY_POLL_SECONDS must be > 0.")
        if self.recovery_batch_size < 1:
            raise ValueError("CALLBACK_DISPATCH_RECOVERY_BATCH_SIZE must be >= 1.")
        if self.signing_secret is not None and not self.signing_secret:
            raise ValueError("CALLBACK_DISPATCH_SIGNING_SECRET cannot be empty.")
        return self

    model_config = SettingsConfigDict(env_prefix="CALLBACK_DISPATCH_", extra="ignore")


__all__ = ["Settings", "StoreBackend"]
