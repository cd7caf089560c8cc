"""
Configuration management for flowlog.

Two layers:

* :class:`Settings` loads process-wide defaults from ``FLOWLOG_``-prefixed
  environment variables and ``.env`` files via pydantic-settings.
* :class:`LoggerConfig` models the per-logger document a caller passes to
  :meth:`flowlog.FlowLogger.update_config`::

      {"logger": {"LOG_LEVEL": "info", "redact": {"global": {"Digit": "redact"}}}}
"""

from __future__ import annotations

from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from flowlog.errors import ConfigError

# Winston-compatible levels, most to least important.
LOG_LEVELS: dict[str, int] = {
    "error": 0,
    "warn": 1,
    "info": 2,
    "http": 3,
    "verbose": 4,
    "debug": 5,
    "silly": 6,
}

DEFAULT_LOG_LEVEL = "error"


def _normalise_level(value: Any) -> str:
    level = str(value).strip().lower()
    if level == "warning":
        level = "warn"
    if level not in LOG_LEVELS:
        raise ValueError(f"unknown log level {value!r}; expected one of {', '.join(LOG_LEVELS)}")
    return level


class Settings(BaseSettings):
    """Process-wide defaults loaded from ``FLOWLOG_``-prefixed environment variables.

    Attributes:
        log_level: Default level threshold for new loggers.
        redact: Default redaction policy (JSON mapping in the environment).
        flow_key: Metadata key holding the caller's current flow.
        state_key: Metadata key holding the caller's current state.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLOWLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ──
    log_level: str = Field(default=DEFAULT_LOG_LEVEL, description="Default level threshold.")

    # ── Redaction ──
    redact: dict[str, Any] = Field(
        default_factory=dict,
        description="Default redaction policy keyed by 'global' or flow/state.",
    )
    flow_key: str = Field(default="Flow", description="Metadata key for the current flow.")
    state_key: str = Field(default="NextState", description="Metadata key for the current state.")

    @field_validator("log_level", mode="before")
    @classmethod
    def _check_log_level(cls, value: Any) -> str:
        return _normalise_level(value)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached settings singleton.

    Returns:
        The global ``Settings`` instance.
    """
    return Settings()


class LoggerSection(BaseModel):
    """The ``logger`` block of a :class:`LoggerConfig`."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    log_level: str = Field(
        default_factory=lambda: get_settings().log_level,
        alias="LOG_LEVEL",
    )
    redact: dict[str, Any] | None = Field(default_factory=lambda: dict(get_settings().redact) or None)

    @field_validator("log_level", mode="before")
    @classmethod
    def _check_log_level(cls, value: Any) -> str:
        return _normalise_level(value)


class LoggerConfig(BaseModel):
    """Per-logger configuration document.

    Unknown top-level sections are kept so callers can hand over their
    whole application config unchanged.
    """

    model_config = ConfigDict(extra="allow")

    logger: LoggerSection = Field(default_factory=LoggerSection)

    @classmethod
    def default(cls) -> LoggerConfig:
        """Build the default config from :func:`get_settings`."""
        return cls()

    @classmethod
    def parse(cls, obj: LoggerConfig | Mapping[str, Any]) -> LoggerConfig:
        """Validate *obj* into a :class:`LoggerConfig`.

        Args:
            obj: An existing config or a plain mapping.

        Returns:
            The validated config.

        Raises:
            ConfigError: If *obj* is not a mapping or fails validation.
        """
        if isinstance(obj, cls):
            return obj
        if not isinstance(obj, Mapping):
            raise ConfigError(f"logger config must be a mapping, got {type(obj).__name__}")
        data = dict(obj)
        if data.get("logger") is None:
            data.pop("logger", None)
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc

    @property
    def log_level(self) -> str:
        return self.logger.log_level

    @property
    def redact(self) -> dict[str, Any] | None:
        return self.logger.redact
