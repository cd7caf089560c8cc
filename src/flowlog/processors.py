"""
structlog processors that make up the :class:`flowlog.FlowLogger` pipeline.

Each processor takes ``(logger, method_name, event_dict)``.  For flowlog
records *method_name* is the winston level name (``"error"`` .. ``"silly"``)
and the logged payload lives under ``event_dict["message"]``.
"""

from __future__ import annotations

from collections.abc import Callable, MutableMapping
from typing import Any

import structlog

from flowlog.config import LOG_LEVELS
from flowlog.metrics import events_dropped_total, events_total
from flowlog.redaction import RedactionPolicy, redact
from flowlog.utils import error_to_dict

EventDict = MutableMapping[str, Any]


def drop_private(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Drop records whose metadata carries a truthy ``private`` flag."""
    if event_dict.get("private"):
        events_dropped_total.labels(reason="private").inc()
        raise structlog.DropEvent
    return event_dict


class LevelFilter:
    """Drop records less important than the current threshold.

    Args:
        threshold: Callable returning the active level name.  Read on every
            record so threshold changes apply immediately.
    """

    def __init__(self, threshold: Callable[[], str]) -> None:
        self._threshold = threshold

    def __call__(self, logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        limit = LOG_LEVELS.get(self._threshold(), 0)
        if LOG_LEVELS.get(method_name, 0) > limit:
            events_dropped_total.labels(reason="level").inc()
            raise structlog.DropEvent
        return event_dict


def enumerate_error(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace an exception ``message`` with its text and add its ``stack``."""
    message = event_dict.get("message")
    if isinstance(message, BaseException):
        fields = error_to_dict(message)
        event_dict["stack"] = fields["stack"]
        event_dict["message"] = fields["message"]
    return event_dict


class RedactMessage:
    """Redact ``event_dict["message"]`` under the record's flow and state.

    Flow and state are read from the record itself, where the logger's
    metadata has already been merged.

    Args:
        policy: Callable returning the active :class:`RedactionPolicy`.
        flow_key: Record key holding the current flow.
        state_key: Record key holding the current state.
    """

    def __init__(
        self,
        policy: Callable[[], RedactionPolicy],
        flow_key: str = "Flow",
        state_key: str = "NextState",
    ) -> None:
        self._policy = policy
        self._flow_key = flow_key
        self._state_key = state_key

    def __call__(self, logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        if "message" in event_dict:
            event_dict["message"] = redact(
                event_dict["message"],
                flow=event_dict.get(self._flow_key),
                state=event_dict.get(self._state_key),
                needs_redacting=self._policy(),
            )
        return event_dict


def count_event(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    events_total.labels(level=method_name).inc()
    return event_dict
