"""
Policy-driven redaction of log payloads.

Walks an arbitrarily nested value (mappings, sequences, and strings that
themselves hold serialised JSON, possibly several levels deep) and masks
every value whose *key* is named by the active :class:`RedactionPolicy`.
String-encoded containers are parsed, redacted and re-encoded in place so
the payload keeps its original shape.

A policy looks like::

    {
        "global": {"ADDRESS1": "redact"},
        "SRS": {"PINValidation": {"Digit": "redact"}},
    }

``global`` fields are masked everywhere; flow/state fields only when the
caller's current flow and state select them.  Any truthy marker works.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog

from flowlog.utils import error_to_dict

logger = structlog.get_logger()

MASK = "***"
CIRCULAR = "[Circular]"
GLOBAL_SCOPE = "global"

__all__ = [
    "CIRCULAR",
    "GLOBAL_SCOPE",
    "MASK",
    "NodeKind",
    "RedactionPolicy",
    "classify",
    "redact",
    "redact_deep",
    "try_parse_container",
]


class NodeKind(str, Enum):
    """Shape of a single node in a payload."""

    SCALAR = "scalar"
    CONTAINER = "container"
    ENCODED_CONTAINER = "encoded_container"


def _load_container(value: Any) -> dict[str, Any] | list[Any] | None:
    # RecursionError propagates so redact() can fail closed.
    if not isinstance(value, str):
        return None
    try:
        parsed = json.loads(value)
    except ValueError:
        return None
    if isinstance(parsed, (dict, list)):
        return parsed
    return None


def try_parse_container(value: Any) -> dict[str, Any] | list[Any] | None:
    """Parse *value* if it is a string holding a JSON object or array.

    Args:
        value: Any payload node.

    Returns:
        The parsed ``dict`` or ``list``, or ``None`` when *value* is not a
        string, is not valid JSON, is nested too deeply to decode, or
        decodes to a scalar or ``null``.
    """
    try:
        return _load_container(value)
    except RecursionError:
        return None


def classify(value: Any) -> tuple[NodeKind, Any]:
    """Resolve the kind of *value* once.

    Returns:
        ``(kind, node)`` where *node* is the parsed container for
        :attr:`NodeKind.ENCODED_CONTAINER` and *value* itself otherwise.

    Raises:
        RecursionError: If *value* is a JSON string nested too deeply to decode.
    """
    if isinstance(value, (Mapping, list, tuple)):
        return NodeKind.CONTAINER, value
    parsed = _load_container(value)
    if parsed is not None:
        return NodeKind.ENCODED_CONTAINER, parsed
    return NodeKind.SCALAR, value


def _marked(scope: Mapping[Any, Any], key: Any) -> bool:
    try:
        return bool(scope.get(key))
    except TypeError:
        return False


@dataclass(frozen=True)
class RedactionPolicy:
    """Field names to mask, scoped globally or by (flow, state).

    The wrapped mapping is owned by the caller and never mutated.  Scope
    entries that are not mappings are ignored.

    Attributes:
        rules: The raw policy mapping.
    """

    rules: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, needs_redacting: RedactionPolicy | Mapping[str, Any] | None) -> RedactionPolicy:
        """Wrap a raw mapping; anything that is not a mapping is an empty policy."""
        if isinstance(needs_redacting, cls):
            return needs_redacting
        if isinstance(needs_redacting, Mapping):
            return cls(needs_redacting)
        return cls()

    @property
    def global_fields(self) -> Mapping[Any, Any] | None:
        """Fields masked at every level regardless of flow/state."""
        scope = self.rules.get(GLOBAL_SCOPE)
        return scope if isinstance(scope, Mapping) else None

    def scoped_fields(self, flow: Any, state: Any) -> Mapping[Any, Any] | None:
        """Fields masked only under *flow* / *state*, if such a scope exists."""
        if flow is None or state is None or flow == GLOBAL_SCOPE:
            return None
        try:
            states = self.rules.get(flow)
            if not isinstance(states, Mapping):
                return None
            fields = states.get(state)
        except TypeError:
            return None
        return fields if isinstance(fields, Mapping) else None

    def scopes_for(self, flow: Any, state: Any) -> tuple[Mapping[Any, Any], ...]:
        """All scopes active for *flow* / *state*, resolved once per call."""
        return tuple(
            scope
            for scope in (self.global_fields, self.scoped_fields(flow, state))
            if scope is not None
        )

    def applies_to(self, flow: Any, state: Any) -> bool:
        """``True`` if a global scope exists or *flow* / *state* select one."""
        return bool(self.scopes_for(flow, state))

    def matches(self, key: Any, flow: Any, state: Any) -> bool:
        """``True`` if *key* must be masked under *flow* / *state*."""
        return any(_marked(scope, key) for scope in self.scopes_for(flow, state))


class _Redactor:
    """Depth-first walker for a single redaction call.

    Containers come back as new objects only when something inside them
    changed; untouched subtrees are returned by reference.
    """

    def __init__(self, scopes: tuple[Mapping[Any, Any], ...]) -> None:
        self._scopes = scopes
        # ids of the containers on the current descent path
        self._ancestors: set[int] = set()

    def _masks(self, key: Any) -> bool:
        return any(_marked(scope, key) for scope in self._scopes)

    def visit(self, value: Any) -> Any:
        kind, node = classify(value)
        if kind is NodeKind.SCALAR:
            return value
        if kind is NodeKind.ENCODED_CONTAINER:
            redacted = self.visit(node)
            if redacted is node:
                return value
            return json.dumps(redacted, separators=(",", ":"), ensure_ascii=False)

        if id(node) in self._ancestors:
            return CIRCULAR
        self._ancestors.add(id(node))
        try:
            if isinstance(node, Mapping):
                return self._visit_mapping(node)
            return self._visit_sequence(node)
        finally:
            self._ancestors.discard(id(node))

    def _visit_mapping(self, node: Mapping[Any, Any]) -> Mapping[Any, Any]:
        out: dict[Any, Any] = {}
        changed = False
        for key, item in node.items():
            # A masked value is never descended into.
            new = MASK if self._masks(key) else self.visit(item)
            changed = changed or new is not item
            out[key] = new
        return out if changed else node

    def _visit_sequence(self, node: list[Any] | tuple[Any, ...]) -> list[Any] | tuple[Any, ...]:
        items = [self.visit(item) for item in node]
        if all(new is old for new, old in zip(items, node)):
            return node
        return tuple(items) if isinstance(node, tuple) else items


def redact_deep(
    value: Any,
    flow: Any,
    state: Any,
    policy: RedactionPolicy | Mapping[str, Any] | None,
) -> Any:
    """Recursively mask every field of *value* named by *policy*.

    Masking is key-driven: the whole value under a matched key becomes
    :data:`MASK` whatever its type.  Sequence elements have no key and are
    only affected through the mappings they contain.  Strings holding JSON
    containers are redacted and re-encoded as strings; a container that
    refers back to one of its ancestors is replaced by :data:`CIRCULAR`.
    A cyclic payload therefore always comes back as a new object, even
    when nothing in it is masked, so the result stays serialisable.

    Args:
        value: The payload to redact.
        flow: The caller's current flow.
        state: The caller's current state.
        policy: A :class:`RedactionPolicy` or raw policy mapping.

    Returns:
        The redacted payload.  *value* itself is never mutated.
    """
    scopes = RedactionPolicy.coerce(policy).scopes_for(flow, state)
    return _Redactor(scopes).visit(value)


def _redact_payload(info: Any, flow: Any, state: Any, policy: RedactionPolicy) -> Any:
    if isinstance(info, BaseException):
        info = error_to_dict(info)
    elif isinstance(info, str):
        parsed = _load_container(info)
        if parsed is None:
            return info
        info = parsed
    if isinstance(info, (Mapping, list, tuple)):
        return redact_deep(info, flow, state, policy)
    return info


def redact(
    info: Any,
    flow: Any = None,
    state: Any = None,
    needs_redacting: RedactionPolicy | Mapping[str, Any] | None = None,
) -> Any:
    """Mask the sensitive fields of a log payload.

    A string payload holding a JSON container is returned as the redacted
    container, not re-encoded.  Any other string, and any scalar, comes
    back unchanged.  Exceptions are redacted as their
    :func:`~flowlog.utils.error_to_dict` mapping.

    Never raises: payloads nested too deeply to walk or decode are replaced by
    :data:`MASK` as a whole.

    Args:
        info: The payload to redact.
        flow: The caller's current flow.
        state: The caller's current state.
        needs_redacting: A :class:`RedactionPolicy` or raw policy mapping.

    Returns:
        The redacted payload, or *info* itself when no policy applies.
    """
    policy = RedactionPolicy.coerce(needs_redacting)
    if not policy.applies_to(flow, state):
        return info
    try:
        return _redact_payload(info, flow, state, policy)
    except RecursionError:
        logger.warning("redaction_failed", reason="max_depth", flow=flow, state=state)
        return MASK
