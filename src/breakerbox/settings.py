from __future__ import annotations

from pydantic import ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from breakerbox.circuit_breaker.breaker import DEFAULT_PROBE_INTERVAL, BreakerConfig
from breakerbox.logging import get_log_level_value


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class BreakerSettings(BaseSettings):
    """Environment-driven settings for one breaker.

    Reads ``BREAKERBOX_*`` variables by default. Subclass and override
    ``model_config`` with ``prefixed_settings_config`` to host several
    breakers with distinct prefixes.
    """

    model_config = prefixed_settings_config("BREAKERBOX_")

    breaker_name: str
    timeout_seconds: float
    max_concurrent: int
    probe_interval_seconds: float = DEFAULT_PROBE_INTERVAL
    log_level: str = "INFO"

    @field_validator("breaker_name", mode="before")
    @classmethod
    def _validate_required_string(cls, value: object, info: ValidationInfo) -> object:
        if not isinstance(value, str):
            return value
        normalized = value.strip()
        if not normalized:
            raise ValueError(f"{info.field_name} must be non-empty")
        return normalized

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            normalized = value.strip().upper()
            get_log_level_value(normalized)
            return normalized
        return value

    @model_validator(mode="after")
    def _validate_breaker_settings(self) -> BreakerSettings:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        if self.probe_interval_seconds <= 0:
            raise ValueError("probe_interval_seconds must be > 0")
        return self

    def breaker_config(self) -> BreakerConfig:
        """Build the breaker configuration described by these settings."""
        return BreakerConfig(
            timeout=self.timeout_seconds,
            max_concurrent=self.max_concurrent,
            probe_interval=self.probe_interval_seconds,
        )
