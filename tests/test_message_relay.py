"""
Tests for the message relay.

This module tests persist-then-deliver ordering, delivery to offline
receivers, store failures and timeouts.
"""

import pytest

from presence_relay.managers.message_relay import MessageRelay
from tests.mocks.store_mocks import FailingMessageStore, SlowMessageStore
from tests.mocks.websocket_mocks import (
    create_mock_connection,
    sent_event_names,
    sent_events,
)


async def _online(broadcaster, *users):
    """Register users with fresh mock connections and clear their calls."""
    conns = {}
    for user in users:
        conns[user] = create_mock_connection(f"conn-{user}")
        await broadcaster.connect(user, conns[user])
    for conn in conns.values():
        conn.send_event.reset_mock()
    return conns


class TestMessageRelay:
    """Tests for MessageRelay.relay."""

    @pytest.mark.asyncio
    async def test_relay_delivers_to_receiver_and_sender(
        self, broadcaster, memory_store
    ):
        """Test both parties receive the persisted message."""
        conns = await _online(broadcaster, "alice", "bob")
        relay = MessageRelay(broadcaster, memory_store)

        message = await relay.relay("alice", "bob", "hi")

        assert message is not None
        assert memory_store.messages == [message]
        for user in ("alice", "bob"):
            assert sent_event_names(conns[user]) == ["receive_message"]
            assert sent_events(conns[user])[0].data == message

    @pytest.mark.asyncio
    async def test_relay_to_offline_receiver_still_persists(
        self, broadcaster, memory_store
    ):
        """Test an offline receiver is skipped and the sender echoed."""
        conns = await _online(broadcaster, "alice")
        relay = MessageRelay(broadcaster, memory_store)

        message = await relay.relay("alice", "bob", "are you there?")

        assert message is not None
        assert len(memory_store.messages) == 1
        assert sent_event_names(conns["alice"]) == ["receive_message"]

    @pytest.mark.asyncio
    async def test_relay_to_self_delivers_once(self, broadcaster, memory_store):
        """Test a message to oneself reaches the connection once."""
        conns = await _online(broadcaster, "alice")
        relay = MessageRelay(broadcaster, memory_store)

        await relay.relay("alice", "alice", "note to self")

        assert sent_event_names(conns["alice"]) == ["receive_message"]

    @pytest.mark.asyncio
    async def test_store_failure_notifies_origin_only(self, broadcaster):
        """Test a failed write sends message_error to the requester only."""
        conns = await _online(broadcaster, "alice", "bob")
        store = FailingMessageStore("Failed to save message")
        relay = MessageRelay(broadcaster, store)

        message = await relay.relay(
            "alice", "bob", "hi", origin=conns["alice"]
        )

        assert message is None
        assert store.calls == 1
        assert sent_event_names(conns["alice"]) == ["message_error"]
        assert sent_events(conns["alice"])[0].data == "Failed to save message"
        conns["bob"].send_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_failure_without_origin_uses_registry(
        self, broadcaster
    ):
        """Test the sender's registered connection gets the error."""
        conns = await _online(broadcaster, "alice", "bob")
        relay = MessageRelay(broadcaster, FailingMessageStore())

        await relay.relay("alice", "bob", "hi")

        assert sent_event_names(conns["alice"]) == ["message_error"]
        conns["bob"].send_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_timeout_is_store_error(self, broadcaster):
        """Test a store call exceeding the timeout aborts the relay."""
        conns = await _online(broadcaster, "alice", "bob")
        store = SlowMessageStore(delay=5)
        relay = MessageRelay(broadcaster, store, timeout=0.05)

        message = await relay.relay(
            "alice", "bob", "hi", origin=conns["alice"]
        )

        assert message is None
        assert store.messages == []
        assert sent_event_names(conns["alice"]) == ["message_error"]
        assert "timed out" in sent_events(conns["alice"])[0].data
        conns["bob"].send_event.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_messages_keep_store_order(self, broadcaster, memory_store):
        """Test consecutive messages arrive in persistence order."""
        conns = await _online(broadcaster, "alice", "bob")
        relay = MessageRelay(broadcaster, memory_store)

        for text in ("one", "two", "three"):
            await relay.relay("alice", "bob", text)

        received = [e.data.content for e in sent_events(conns["bob"])]
        assert received == ["one", "two", "three"]
        ids = [e.data.id for e in sent_events(conns["bob"])]
        assert ids == sorted(ids)
