"""
Tests for the async chat client.

The WebSocket connection is replaced with an in-process fake and the
history endpoint with an httpx.MockTransport.
"""

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from presence_relay.client.chat_client import ChatClient, _http_base_from_ws
from presence_relay.constants import MAX_ACTIVITY_LENGTH
from presence_relay.settings import app_settings
from tests.mocks.websocket_mocks import FakeServerSocket


def _history_transport(messages: list[dict], status_code: int = 200):
    """Build a MockTransport serving a fixed conversation history."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/messages/alice/bob"
        return httpx.Response(status_code, json=messages)

    return httpx.MockTransport(handler)


def _wire_message(message_id: int, sender: str, receiver: str) -> dict:
    return {
        "id": message_id,
        "senderId": sender,
        "receiverId": receiver,
        "content": f"message {message_id}",
        "createdAt": datetime(2024, 1, 1, tzinfo=UTC).isoformat(),
    }


async def _settle() -> None:
    """Let the listener task drain queued frames."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def fake_socket():
    """
    Provides a fake server socket and patches websockets.connect.

    Yields:
        FakeServerSocket: The socket ChatClient will connect to
    """
    socket = FakeServerSocket()
    with patch(
        "presence_relay.client.chat_client.websockets.connect",
        new=AsyncMock(return_value=socket),
    ):
        yield socket


class TestChatClient:
    """Tests for ChatClient class."""

    def test_http_base_from_ws(self):
        """Test the history base URL is derived from the WebSocket URL."""
        assert _http_base_from_ws("ws://localhost:8000/ws") == (
            "http://localhost:8000"
        )
        assert _http_base_from_ws("wss://chat.example.com/ws") == (
            "https://chat.example.com"
        )

    @pytest.mark.asyncio
    async def test_connect_announces_user(self, fake_socket):
        """Test connecting sends user_connected with the local id."""
        client = ChatClient("alice", "ws://localhost:8000/ws")

        await client.connect()
        try:
            assert client.is_connected
            assert fake_socket.sent == [
                {"event": "user_connected", "data": "alice"}
            ]
        finally:
            await client.disconnect()

        assert fake_socket.closed
        assert not client.is_connected

    @pytest.mark.asyncio
    async def test_listener_applies_server_events(self, fake_socket):
        """Test inbound frames update the mirror."""
        async with ChatClient("alice", "ws://localhost:8000/ws") as client:
            fake_socket.push({"event": "users_online", "data": ["alice", "bob"]})
            fake_socket.push(
                {
                    "event": "activity_updated",
                    "data": {"userId": "bob", "activity": "Away"},
                }
            )
            await _settle()

            assert client.mirror.online_users == {"alice", "bob"}
            assert client.mirror.activities == {"bob": "Away"}

    @pytest.mark.asyncio
    async def test_non_object_frame_does_not_stop_listener(self, fake_socket):
        """Test a JSON array frame is skipped and later frames still apply."""
        async with ChatClient("alice", "ws://localhost:8000/ws") as client:
            fake_socket.push([1, 2])
            fake_socket.push({"event": "users_online", "data": ["bob"]})
            await _settle()

            assert client.mirror.online_users == {"bob"}
            assert client.is_connected

    @pytest.mark.asyncio
    async def test_server_close_marks_disconnected(self, fake_socket):
        """Test the client notices the stream ending."""
        client = ChatClient("alice", "ws://localhost:8000/ws")
        await client.connect()

        fake_socket.finish()
        await _settle()

        assert not client.is_connected
        await client.disconnect()

    @pytest.mark.asyncio
    async def test_send_message(self, fake_socket):
        """Test a chat message is emitted with camelCase keys."""
        async with ChatClient("alice", "ws://localhost:8000/ws") as client:
            sent = await client.send_message("bob", "hi")

        assert sent is True
        assert fake_socket.sent[-1] == {
            "event": "send_message",
            "data": {"senderId": "alice", "receiverId": "bob", "content": "hi"},
        }

    @pytest.mark.asyncio
    async def test_send_blank_message_skipped(self, fake_socket):
        """Test blank content is never sent."""
        async with ChatClient("alice", "ws://localhost:8000/ws") as client:
            sent = await client.send_message("bob", "   ")

        assert sent is False
        assert len(fake_socket.sent) == 1

    @pytest.mark.asyncio
    async def test_send_when_disconnected(self):
        """Test sending without a connection is refused."""
        client = ChatClient("alice", "ws://localhost:8000/ws")

        assert await client.send_message("bob", "hi") is False
        assert await client.update_activity("Away") is False

    @pytest.mark.asyncio
    async def test_update_activity(self, fake_socket):
        """Test the activity label is published for the local user."""
        async with ChatClient("alice", "ws://localhost:8000/ws") as client:
            await client.update_activity("Coding")

        assert fake_socket.sent[-1] == {
            "event": "update_activity",
            "data": {"userId": "alice", "activity": "Coding"},
        }

    @pytest.mark.asyncio
    async def test_select_conversation_loads_history(self):
        """Test switching peers fetches and filters the history."""
        history = [
            _wire_message(1, "alice", "bob"),
            _wire_message(2, "bob", "alice"),
        ]
        http = httpx.AsyncClient(
            base_url="http://test", transport=_history_transport(history)
        )
        client = ChatClient(
            "alice", "ws://test/ws", http_client=http
        )

        await client.select_conversation("bob")

        assert client.mirror.selected_peer == "bob"
        assert [m.id for m in client.mirror.messages] == [1, 2]
        await http.aclose()

    @pytest.mark.asyncio
    async def test_history_error_leaves_conversation_empty(self):
        """Test a failed fetch yields an empty conversation."""
        http = httpx.AsyncClient(
            base_url="http://test",
            transport=_history_transport([], status_code=503),
        )
        client = ChatClient("alice", "ws://test/ws", http_client=http)
        client.mirror.messages = ["stale"]

        await client.select_conversation("bob")

        assert client.mirror.messages == []
        await http.aclose()


class TestChatClientInputValidation:
    """Tests for input rejected before anything is sent."""

    @pytest.mark.asyncio
    async def test_blank_activity_not_sent(self, fake_socket):
        """Test an empty or whitespace label returns False."""
        async with ChatClient("alice", "ws://localhost:8000/ws") as client:
            assert await client.update_activity("") is False
            assert await client.update_activity("   ") is False

        assert len(fake_socket.sent) == 1

    @pytest.mark.asyncio
    async def test_oversized_activity_not_sent(self, fake_socket):
        """Test a label over the length limit returns False."""
        async with ChatClient("alice", "ws://localhost:8000/ws") as client:
            sent = await client.update_activity("x" * (MAX_ACTIVITY_LENGTH + 1))

        assert sent is False
        assert len(fake_socket.sent) == 1

    @pytest.mark.asyncio
    async def test_oversized_message_not_sent(self, fake_socket):
        """Test content over the configured maximum returns False."""
        content = "x" * (app_settings.MAX_MESSAGE_LENGTH + 1)

        async with ChatClient("alice", "ws://localhost:8000/ws") as client:
            sent = await client.send_message("bob", content)

        assert sent is False
        assert len(fake_socket.sent) == 1

    @pytest.mark.asyncio
    async def test_empty_receiver_not_sent(self, fake_socket):
        """Test a message without a receiver id returns False."""
        async with ChatClient("alice", "ws://localhost:8000/ws") as client:
            sent = await client.send_message("", "hi")

        assert sent is False
        assert len(fake_socket.sent) == 1
