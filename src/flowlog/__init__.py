"""
flowlog: structured call-flow logging with policy-driven redaction.

Provides the :class:`FlowLogger` façade, which writes one JSON object per
record enriched with call metadata, and the :func:`redact` engine it uses
to mask sensitive fields by flow/state or globally before emission.
"""

from flowlog.config import LoggerConfig, Settings, get_settings
from flowlog.errors import ConfigError, FlowlogError
from flowlog.logger import FlowLogger
from flowlog.redaction import MASK, RedactionPolicy, redact, redact_deep, try_parse_container

__all__ = [
    "ConfigError",
    "FlowLogger",
    "FlowlogError",
    "LoggerConfig",
    "MASK",
    "RedactionPolicy",
    "Settings",
    "get_settings",
    "redact",
    "redact_deep",
    "try_parse_container",
]
