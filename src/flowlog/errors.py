"""
Exception hierarchy for flowlog.

Redaction never raises; these are reserved for configuration problems
surfaced while building a logger.
"""

from __future__ import annotations


class FlowlogError(Exception):
    """Base class for all flowlog errors."""


class ConfigError(FlowlogError):
    """A logger configuration document failed validation."""
