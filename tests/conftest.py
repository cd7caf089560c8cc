"""Shared fixtures for flowlog tests."""

from __future__ import annotations

import io
import json
import os
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from flowlog.config import get_settings

# Make helpers in this module importable from test files
# (needed with --import-mode=importlib).
sys.path.insert(0, str(Path(__file__).resolve().parent))


@pytest.fixture(autouse=True)
def _clean_settings() -> Iterator[None]:
    """Hide FLOWLOG_ env vars and reset the settings cache around each test."""
    env = {k: v for k, v in os.environ.items() if not k.startswith("FLOWLOG_")}
    with patch.dict(os.environ, env, clear=True):
        get_settings.cache_clear()
        yield
    get_settings.cache_clear()


@pytest.fixture()
def policy() -> dict[str, Any]:
    """Redaction policy scoped to the PIN validation step and the IVR start."""
    return {
        "SRS": {"PINValidation": {"Digit": "redact"}},
        "InitialFlow": {"StartIVR": {"message": "redact"}},
    }


@pytest.fixture()
def info() -> dict[str, Any]:
    """A typical call payload."""
    return {
        "Digit": "RedactOnlyForPIN",
        "CallSid": "1a2b3c",
        "ADDRESS1": "123 Sesame St.",
    }


@pytest.fixture()
def stream() -> io.StringIO:
    """In-memory sink for FlowLogger output."""
    return io.StringIO()


def read_records(stream: io.StringIO) -> list[dict[str, Any]]:
    """Parse every JSON line written to *stream*."""
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]
