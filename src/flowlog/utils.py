"""
Shared utility functions for flowlog.

Helpers for turning exceptions into key-enumerable mappings and for the
lenient number handling used by metric records.
"""

from __future__ import annotations

import math
import traceback
from typing import Any


def error_to_dict(exc: BaseException) -> dict[str, Any]:
    """Describe *exc* as a plain mapping.

    The mapping always carries ``message`` (the exception text) and
    ``stack`` (the formatted traceback), followed by any public instance
    attributes the exception holds.

    Args:
        exc: The exception to describe.

    Returns:
        A new ``dict`` suitable for key-based redaction and JSON rendering.
    """
    fields: dict[str, Any] = {
        "message": str(exc),
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
    }
    for name, value in getattr(exc, "__dict__", {}).items():
        if not name.startswith("_") and name not in fields:
            fields[name] = value
    return fields


def coerce_number(value: Any) -> float | int | None:
    """Return *value* as a finite number, or ``None`` if it is not one.

    Numeric strings are accepted.  Booleans, NaN and infinities are not.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, float) or not math.isfinite(value):
        return None
    return int(value) if value.is_integer() else value
