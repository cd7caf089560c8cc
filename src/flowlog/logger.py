"""
Call-context logger for flowlog.

:class:`FlowLogger` keeps a dict of call metadata (call ids, the current
``Flow`` and ``NextState``, ...) and writes one JSON object per record::

    {"message": ..., "messageKey": "PINEntered", "CallId": "...",
     "Flow": "SRS", "NextState": "PINValidation", "level": "info",
     "Timestamp": "2026-10-18T12:00:00.000000Z"}

Before rendering, the ``message`` payload is redacted with the policy from
the logger's config (see :mod:`flowlog.redaction`).
"""

from __future__ import annotations

import sys
from collections.abc import Mapping
from typing import IO, Any

import structlog

from flowlog.config import LOG_LEVELS, LoggerConfig, get_settings
from flowlog.errors import ConfigError
from flowlog.processors import (
    LevelFilter,
    RedactMessage,
    count_event,
    drop_private,
    enumerate_error,
)
from flowlog.redaction import RedactionPolicy
from flowlog.utils import coerce_number

logger = structlog.get_logger()


class _RecordLogger(structlog.BoundLoggerBase):
    """Bound logger that runs the pipeline with the level as method name."""

    def emit(self, level: str, record: dict[str, Any]) -> Any:
        try:
            args, kw = self._process_event(level, None, record)
        except structlog.DropEvent:
            return None
        return self._logger.msg(*args, **kw)


class FlowLogger:
    """Structured JSON logger carrying call metadata.

    Every level method takes ``(msg_key, message)``.  *message* may be a
    string, a JSON string, any JSON-like structure or an exception.

    Args:
        metadata: Initial call metadata merged into every record.
        config: Logger config mapping or :class:`LoggerConfig`.  Defaults
            come from :func:`flowlog.config.get_settings`.
        stream: Output stream; defaults to ``sys.stdout``.
    """

    def __init__(
        self,
        metadata: Mapping[str, Any] | None = None,
        config: LoggerConfig | Mapping[str, Any] | None = None,
        *,
        stream: IO[str] | None = None,
    ) -> None:
        settings = get_settings()
        self._metadata: dict[str, Any] = dict(metadata or {})
        self._config = LoggerConfig.default()
        self._policy = RedactionPolicy.coerce(self._config.redact)
        if config is not None:
            self.update_config(config)

        self._log = structlog.wrap_logger(
            structlog.PrintLogger(stream if stream is not None else sys.stdout),
            wrapper_class=_RecordLogger,
            processors=[
                drop_private,
                LevelFilter(lambda: self.level),
                enumerate_error,
                RedactMessage(
                    lambda: self._policy,
                    flow_key=settings.flow_key,
                    state_key=settings.state_key,
                ),
                structlog.processors.TimeStamper(fmt="iso", utc=True, key="Timestamp"),
                count_event,
                structlog.processors.JSONRenderer(ensure_ascii=False),
            ],
        )

    # ── configuration ──

    @property
    def config(self) -> LoggerConfig:
        return self._config

    @property
    def level(self) -> str:
        """Current level threshold."""
        return self._config.log_level

    @property
    def policy(self) -> RedactionPolicy:
        """Active redaction policy."""
        return self._policy

    def update_config(self, config: LoggerConfig | Mapping[str, Any] | None = None) -> None:
        """Replace the logger config.

        A missing or non-mapping *config* restores the default config.  An
        invalid one is logged and also falls back to the default.

        Args:
            config: The new config document.
        """
        if config is None or not isinstance(config, (Mapping, LoggerConfig)):
            self._config = LoggerConfig.default()
        else:
            try:
                self._config = LoggerConfig.parse(config)
            except ConfigError as exc:
                logger.warning("invalid_logger_config", error=str(exc))
                self._config = LoggerConfig.default()
        self._policy = RedactionPolicy.coerce(self._config.redact)

    # ── metadata ──

    def add_metadata(self, data: Mapping[str, Any]) -> None:
        """Merge *data* into the call metadata."""
        self._metadata.update(data)

    def add_metadata_key(self, key: str, value: Any) -> None:
        self._metadata[key] = value

    def remove_metadata_key(self, key: str) -> None:
        self._metadata.pop(key, None)

    def remove_metadata(self, data: Mapping[str, Any] | None = None) -> None:
        """Remove every key of *data* from the call metadata."""
        for key in data or {}:
            self._metadata.pop(key, None)

    def get_metadata(self) -> dict[str, Any]:
        return self._metadata

    # ── records ──

    def _build_record(self, msg_key: str, message: Any, level: str) -> dict[str, Any]:
        record: dict[str, Any] = {"messageKey": msg_key}
        record.update(self._metadata)
        # The logged payload and level win over same-named metadata.
        record["message"] = message
        record["level"] = level
        return record

    def log(self, level: str, msg_key: str, message: Any = None) -> None:
        """Write a record at *level*.

        Raises:
            ValueError: If *level* is not a known level name.
        """
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level {level!r}")
        self._log.emit(level, self._build_record(msg_key, message, level))

    def error(self, msg_key: str, message: Any = None) -> None:
        self.log("error", msg_key, message)

    def warn(self, msg_key: str, message: Any = None) -> None:
        self.log("warn", msg_key, message)

    warning = warn

    def info(self, msg_key: str, message: Any = None) -> None:
        self.log("info", msg_key, message)

    def http(self, msg_key: str, message: Any = None) -> None:
        self.log("http", msg_key, message)

    def verbose(self, msg_key: str, message: Any = None) -> None:
        self.log("verbose", msg_key, message)

    def debug(self, msg_key: str, message: Any = None) -> None:
        self.log("debug", msg_key, message)

    def silly(self, msg_key: str, message: Any = None) -> None:
        self.log("silly", msg_key, message)

    def metric(self, msg_key: str, metric: Any, multiplier: Any = None) -> None:
        """Log a numeric metric at ``info``.

        The value is attached as a string ``metric`` field for the duration
        of the record.  Non-numeric metrics are logged as ``0``; a numeric,
        non-zero *multiplier* scales the value.

        Args:
            msg_key: Message key for the record.
            metric: The metric value.
            multiplier: Optional scale factor.
        """
        value = coerce_number(metric) or 0
        factor = coerce_number(multiplier)
        if factor:
            value = coerce_number(value * factor) or 0
        self.add_metadata_key("metric", str(value))
        try:
            self.info(msg_key, str(metric))
        finally:
            self.remove_metadata_key("metric")
