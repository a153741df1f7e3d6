"""
Mock factory functions for WebSocket testing.

Provides mocks that satisfy the Connection protocol used by the presence
managers.
"""

import asyncio
import json
import uuid
from unittest.mock import AsyncMock, MagicMock


def create_mock_connection(connection_id: str | None = None):
    """
    Creates a mock connection with an async send_event and close.

    Args:
        connection_id: Identifier of the transport. Random when omitted.

    Returns:
        MagicMock: Mocked connection instance
    """
    conn_mock = MagicMock()
    conn_mock.connection_id = connection_id or str(uuid.uuid4())

    conn_mock.send_event = AsyncMock()
    conn_mock.close = AsyncMock()

    return conn_mock


def create_failing_connection(
    exc: BaseException | None = None, connection_id: str | None = None
):
    """
    Creates a mock connection whose send_event always raises.

    Args:
        exc: Exception raised by send_event. Defaults to ConnectionError.
        connection_id: Identifier of the transport.

    Returns:
        MagicMock: Mocked connection instance
    """
    conn_mock = create_mock_connection(connection_id)
    conn_mock.send_event.side_effect = exc or ConnectionError("peer gone")
    return conn_mock


def sent_events(conn_mock) -> list:
    """
    Get the events passed to send_event, in call order.

    Args:
        conn_mock: A connection created by create_mock_connection

    Returns:
        list: Event models sent to the connection
    """
    return [call.args[0] for call in conn_mock.send_event.call_args_list]


def sent_event_names(conn_mock) -> list[str]:
    """Get the `event` names sent to a mock connection, in call order."""
    return [event.event for event in sent_events(conn_mock)]


class FakeServerSocket:
    """
    Stand-in for a websockets client connection.

    Frames pushed with `push` are yielded by async iteration; `finish`
    ends the stream as a server close would.
    """

    def __init__(self):
        self.sent: list[dict] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, text: str) -> None:
        self.sent.append(json.loads(text))

    async def close(self) -> None:
        self.closed = True
        self._inbox.put_nowait(None)

    def push(self, frame) -> None:
        self._inbox.put_nowait(json.dumps(frame))

    def finish(self) -> None:
        self._inbox.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        frame = await self._inbox.get()
        if frame is None:
            raise StopAsyncIteration
        return frame


