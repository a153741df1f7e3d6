"""
Pytest configuration and fixtures for testing.

This module provides shared fixtures for presence state, message stores
and mock connections.
"""

import asyncio
import os
import tempfile

import pytest

# Set environment variables for testing before importing app modules
os.environ.setdefault(
    "LOG_FILE_PATH",
    os.path.join(tempfile.gettempdir(), "presence_relay_test_errors.log"),
)
os.environ.setdefault("WS_SEND_TIMEOUT_SECONDS", "1.0")
os.environ.setdefault("STORE_TIMEOUT_SECONDS", "1.0")

from tests.mocks.store_mocks import InMemoryMessageStore  # noqa: E402


@pytest.fixture
def broadcaster():
    """
    Provides a fresh PresenceBroadcaster with a short send timeout.

    Returns:
        PresenceBroadcaster: Broadcaster with empty presence state
    """
    from presence_relay.managers.presence_broadcaster import (
        PresenceBroadcaster,
    )

    return PresenceBroadcaster(
        default_activity="Online", send_timeout=0.2, evict_stale=True
    )


@pytest.fixture
def memory_store():
    """
    Provides an in-memory message store.

    Returns:
        InMemoryMessageStore: Empty store
    """
    return InMemoryMessageStore()


@pytest.fixture
def reset_presence():
    """
    Resets the process-wide presence state around a test.

    The WebSocket endpoint and HTTP routes use the module-level
    presence_broadcaster and message_relay singletons; this fixture gives
    every test an empty registry and an in-memory message store.

    Yields:
        InMemoryMessageStore: Store installed on message_relay
    """
    from presence_relay.managers.activity_tracker import ActivityTracker
    from presence_relay.managers.connection_registry import (
        ConnectionRegistry,
    )
    from presence_relay.managers.message_relay import message_relay
    from presence_relay.managers.presence_broadcaster import (
        presence_broadcaster,
    )

    original_store = message_relay.store
    store = InMemoryMessageStore()

    presence_broadcaster.registry = ConnectionRegistry()
    presence_broadcaster.activities = ActivityTracker()
    presence_broadcaster._lock = asyncio.Lock()
    message_relay.store = store

    yield store

    presence_broadcaster.registry = ConnectionRegistry()
    presence_broadcaster.activities = ActivityTracker()
    message_relay.store = original_store
