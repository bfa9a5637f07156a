"""
Configuration management for OmniLedger.

Handles loading configuration from environment variables and validation.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

LOCK_MODES = ("optimistic", "pessimistic")
LOG_FORMATS = ("text", "json")


def _get_env_var(name: str, default: str | None = None, required: bool = False) -> str | None:
    """Get environment variable with optional default."""
    value = os.environ.get(name, default)
    if required and not value:
        raise ValueError(f"Required environment variable {name} is not set")
    return value


def _parse_number(name: str, raw: str | None, cast: type) -> Any:
    """Parse a numeric environment value, naming the variable on failure."""
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a {cast.__name__}, got {raw!r}") from None


@dataclass(frozen=True)
class Config:
    """Ledger configuration."""

    storage_backend: str = "memory"
    redis_url: str | None = None
    redis_prefix: str = "omniledger"
    # Compare-and-set attempts per operation before TransientConflictError
    max_conflict_retries: int = 5
    # "optimistic" = compare-and-set only, "pessimistic" = also hold account locks
    lock_mode: str = "optimistic"
    lock_ttl: int = 30  # seconds
    lock_retry_count: int = 3
    lock_retry_delay: float = 0.05  # seconds
    log_level: str = "INFO"
    log_format: str = "text"
    env: str = "development"

    def __post_init__(self) -> None:
        if self.max_conflict_retries < 1:
            raise ValueError("max_conflict_retries must be at least 1")
        if self.lock_mode not in LOCK_MODES:
            raise ValueError(f"lock_mode must be one of {', '.join(LOCK_MODES)}")
        if self.lock_ttl <= 0:
            raise ValueError("lock_ttl must be positive")
        if self.lock_retry_count < 0 or self.lock_retry_delay < 0:
            raise ValueError("lock retry settings must not be negative")
        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")

    @property
    def pessimistic_locking(self) -> bool:
        return self.lock_mode == "pessimistic"

    @classmethod
    def from_env(cls, **overrides: Any) -> Config:
        """Load configuration from environment variables."""
        values: dict[str, Any] = {
            "storage_backend": _get_env_var("OMNILEDGER_STORAGE_BACKEND", default="memory"),
            "redis_url": _get_env_var("OMNILEDGER_REDIS_URL"),
            "redis_prefix": _get_env_var("OMNILEDGER_REDIS_PREFIX", default="omniledger"),
            "max_conflict_retries": _parse_number(
                "OMNILEDGER_MAX_CONFLICT_RETRIES",
                _get_env_var("OMNILEDGER_MAX_CONFLICT_RETRIES"),
                int,
            ),
            "lock_mode": _get_env_var("OMNILEDGER_LOCK_MODE", default="optimistic"),
            "lock_ttl": _parse_number(
                "OMNILEDGER_LOCK_TTL", _get_env_var("OMNILEDGER_LOCK_TTL"), int
            ),
            "lock_retry_count": _parse_number(
                "OMNILEDGER_LOCK_RETRY_COUNT", _get_env_var("OMNILEDGER_LOCK_RETRY_COUNT"), int
            ),
            "lock_retry_delay": _parse_number(
                "OMNILEDGER_LOCK_RETRY_DELAY", _get_env_var("OMNILEDGER_LOCK_RETRY_DELAY"), float
            ),
            "log_level": _get_env_var("OMNILEDGER_LOG_LEVEL", default="INFO"),
            "log_format": _get_env_var("OMNILEDGER_LOG_FORMAT", default="text"),
            "env": _get_env_var("OMNILEDGER_ENV", default="development"),
        }
        # Unset numeric variables fall back to the dataclass defaults
        values = {k: v for k, v in values.items() if v is not None}
        values.update(overrides)
        return cls(**values)

    def with_updates(self, **updates: Any) -> Config:
        """Create a new Config with updated values."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update(updates)
        return Config(**current)
