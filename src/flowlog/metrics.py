"""
Prometheus metrics for flowlog.

Counters for records emitted and dropped by :class:`flowlog.FlowLogger`.
They register on the default ``prometheus_client`` registry, so any
exporter the host process already runs picks them up.
"""

from __future__ import annotations

from prometheus_client import Counter

# ── Prometheus metrics ──
events_total = Counter(
    "flowlog_events_total",
    "Log records emitted by flowlog",
    ["level"],
)
events_dropped_total = Counter(
    "flowlog_events_dropped_total",
    "Log records dropped before emission",
    ["reason"],
)
