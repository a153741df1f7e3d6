"""
Tests for the WebSocket event router.

This module tests handler registration, exhaustiveness checking and
dispatch.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from presence_relay.api.ws.constants import ClientEventType
from presence_relay.routing import EventRouter, event_router
from presence_relay.schemas.events import UserConnectedRequest


class TestEventRouter:
    """Tests for EventRouter class."""

    def test_register_handler(self):
        """Test the decorator registers and returns the handler."""
        router = EventRouter()

        async def handler(websocket, request):
            pass

        decorated = router.register(ClientEventType.USER_CONNECTED)(handler)

        assert decorated is handler
        assert (
            router.handlers_registry[ClientEventType.USER_CONNECTED] is handler
        )

    def test_register_same_handler_twice(self):
        """Test re-registering the same function is a no-op."""
        router = EventRouter()

        async def handler(websocket, request):
            pass

        router.register(ClientEventType.USER_CONNECTED)(handler)
        router.register(ClientEventType.USER_CONNECTED)(handler)

        assert len(router.handlers_registry) == 1

    def test_register_conflicting_handler_raises(self):
        """Test a second handler for the same event is rejected."""
        router = EventRouter()

        async def first(websocket, request):
            pass

        async def second(websocket, request):
            pass

        router.register(ClientEventType.USER_CONNECTED)(first)

        with pytest.raises(ValueError):
            router.register(ClientEventType.USER_CONNECTED)(second)

    def test_ensure_exhaustive_reports_missing(self):
        """Test a partial registry fails the exhaustiveness check."""
        router = EventRouter()

        async def handler(websocket, request):
            pass

        router.register(ClientEventType.USER_CONNECTED)(handler)

        assert router.missing_handlers() == [
            ClientEventType.UPDATE_ACTIVITY,
            ClientEventType.SEND_MESSAGE,
        ]
        with pytest.raises(RuntimeError, match="update_activity"):
            router.ensure_exhaustive()

    def test_application_router_is_exhaustive(self):
        """Test every client event has a handler once handlers load."""
        from presence_relay.api.ws.handlers import load_handlers

        load_handlers()

        assert event_router.missing_handlers() == []
        event_router.ensure_exhaustive()

    @pytest.mark.asyncio
    async def test_dispatch_calls_handler(self):
        """Test dispatch routes by the request's event name."""
        router = EventRouter()
        calls = AsyncMock()

        async def handler(websocket, request):
            await calls(websocket, request)

        router.register(ClientEventType.USER_CONNECTED)(handler)
        websocket = MagicMock()
        request = UserConnectedRequest(data="alice")

        await router.dispatch(websocket, request)

        calls.assert_awaited_once_with(websocket, request)
