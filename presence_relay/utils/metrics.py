"""
Prometheus metrics for presence and message relay monitoring.

Metrics are registered on the default registry and exposed by the
/metrics endpoint.
"""

from typing import Any

from prometheus_client import REGISTRY, Counter, Gauge, Histogram


def _get_or_create(metric_cls: type, name: str, doc: str, **kwargs: Any):
    """
    Get existing metric or create new one.

    Prevents duplicate registration errors during development with --reload.
    """
    try:
        return metric_cls(name, doc, **kwargs)
    except ValueError:
        # Metric already exists, retrieve it from registry
        return REGISTRY._names_to_collectors[name]


# WebSocket Connection Metrics
ws_connections_active = _get_or_create(
    Gauge, "ws_connections_active", "Number of open WebSocket connections"
)

ws_connections_total = _get_or_create(
    Counter,
    "ws_connections_total",
    "Total WebSocket connections",
    labelnames=["status"],  # accepted, evicted
)

# Presence Metrics
presence_users_online = _get_or_create(
    Gauge, "presence_users_online", "Number of registered users"
)

ws_events_received_total = _get_or_create(
    Counter,
    "ws_events_received_total",
    "Total WebSocket events received",
    labelnames=["event"],
)

ws_events_sent_total = _get_or_create(
    Counter,
    "ws_events_sent_total",
    "Total WebSocket events sent",
    labelnames=["event"],
)

ws_events_dropped_total = _get_or_create(
    Counter,
    "ws_events_dropped_total",
    "Total inbound WebSocket frames dropped",
    labelnames=["reason"],  # malformed, unregistered, unknown_user
)

ws_send_failures_total = _get_or_create(
    Counter,
    "ws_send_failures_total",
    "Total failed sends to WebSocket connections",
)

# Relay Metrics
relay_messages_total = _get_or_create(
    Counter,
    "relay_messages_total",
    "Total relayed chat messages",
    labelnames=["outcome"],  # delivered, stored_only, store_error
)

store_create_duration_seconds = _get_or_create(
    Histogram,
    "store_create_duration_seconds",
    "Message store create duration in seconds",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)


__all__ = [
    "ws_connections_active",
    "ws_connections_total",
    "presence_users_online",
    "ws_events_received_total",
    "ws_events_sent_total",
    "ws_events_dropped_total",
    "ws_send_failures_total",
    "relay_messages_total",
    "store_create_duration_seconds",
]
