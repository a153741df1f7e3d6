import json
import uuid
from typing import Any, Type

from pydantic import BaseModel
from starlette import status
from starlette.endpoints import WebSocketEndpoint
from starlette.types import Receive, Scope, Send
from starlette.websockets import WebSocket

from presence_relay.api.ws.constants import ConnectionState
from presence_relay.exceptions import MalformedEvent
from presence_relay.logging import clear_log_context, logger, set_log_context
from presence_relay.managers.presence_broadcaster import presence_broadcaster
from presence_relay.middlewares.correlation_id import set_correlation_id
from presence_relay.utils.metrics import (
    ws_connections_active,
    ws_connections_total,
    ws_events_dropped_total,
)


class PresenceWebSocket(WebSocket):  # type: ignore[misc]
    """
    WebSocket carrying presence/relay state for one transport.

    Attributes:
        connection_id: Unique identifier of this transport.
        connection_state: Current lifecycle state.
        user_id: Identity bound by `user_connected`, if any.
    """

    def __init__(self, scope: Scope, receive: Receive, send: Send) -> None:
        super().__init__(scope, receive=receive, send=send)
        self.connection_id = str(uuid.uuid4())
        self.connection_state = ConnectionState.DISCONNECTED
        self.user_id: str | None = None

    async def send_event(self, event: BaseModel) -> None:
        """
        Sends a server event over the WebSocket connection.

        The event is serialized with camelCase keys and sent as a text
        frame.
        """
        text = event.model_dump_json(by_alias=True)
        await self.send({"type": "websocket.send", "text": text})

    def mark_registered(self, user_id: str) -> None:
        self.user_id = user_id
        self.connection_state = ConnectionState.REGISTERED
        set_log_context(user_id=user_id)

    def mark_active(self) -> None:
        if self.connection_state == ConnectionState.REGISTERED:
            self.connection_state = ConnectionState.ACTIVE


class PresenceWebSocketEndpoint(WebSocketEndpoint):  # type: ignore[misc]
    """
    WebSocket endpoint with presence lifecycle management.

    Accepts the transport, runs one receive loop per connection and
    guarantees that a closed transport is removed from the presence
    registry. Malformed frames are dropped without closing the connection.
    """

    encoding = None
    websocket_class: Type[WebSocket] = PresenceWebSocket

    async def dispatch(self) -> None:
        """
        Manage the WebSocket connection lifecycle.

        The function performs the following steps:
        1. Creates the PresenceWebSocket and calls on_connect.
        2. Receives frames until the transport closes. Each text frame is
           decoded and handed to on_receive; a MalformedEvent only drops
           that frame.
        3. On an unexpected error sets close code 1011 and re-raises.
        4. Always calls on_disconnect, which deregisters the connection.
        """
        websocket = self.websocket_class(
            self.scope, receive=self.receive, send=self.send
        )
        await self.on_connect(websocket)

        close_code = status.WS_1000_NORMAL_CLOSURE

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.receive":
                    try:
                        data = await self.decode(websocket, message)
                        await self.on_receive(websocket, data)
                    except MalformedEvent as ex:
                        logger.warning(
                            f"Dropped malformed frame on connection "
                            f"{websocket.connection_id}: {ex}"
                        )
                        ws_events_dropped_total.labels(
                            reason="malformed"
                        ).inc()
                elif message["type"] == "websocket.disconnect":
                    close_code = int(
                        message.get("code") or status.WS_1000_NORMAL_CLOSURE
                    )
                    break
        except Exception as exc:
            close_code = status.WS_1011_INTERNAL_ERROR
            raise exc
        finally:
            await self.on_disconnect(websocket, close_code)

    async def decode(
        self, websocket: WebSocket, message: dict[str, Any]
    ) -> Any:
        """
        Decode an incoming text frame as JSON.

        Raises:
            MalformedEvent: For binary frames and invalid JSON.
        """
        text = message.get("text")
        if text is None:
            raise MalformedEvent("Binary frames are not supported")

        try:
            return json.loads(text)
        except json.JSONDecodeError as ex:
            raise MalformedEvent(f"Invalid JSON: {ex.msg}") from ex

    async def on_connect(self, websocket: PresenceWebSocket) -> None:
        """
        Accept the transport and enter the CONNECTING state.

        The connection is not visible to peers until the client sends
        `user_connected`.
        """
        await super().on_connect(websocket)
        websocket.connection_state = ConnectionState.CONNECTING

        # Reuse the id of preceding HTTP requests when the client sends one
        set_correlation_id(
            websocket.headers.get("x-correlation-id")
            or websocket.connection_id
        )
        set_log_context(connection_id=websocket.connection_id)

        ws_connections_total.labels(status="accepted").inc()
        ws_connections_active.inc()
        logger.debug(
            f"Client connected to websocket (connection_id: {websocket.connection_id})"
        )

    async def on_disconnect(
        self, websocket: PresenceWebSocket, close_code: int
    ) -> None:
        """
        Remove the connection from presence state and announce it.

        Runs for every transport drop, registered or not; an unregistered
        or superseded connection produces no broadcast.
        """
        await super().on_disconnect(websocket, close_code)
        websocket.connection_state = ConnectionState.DISCONNECTED

        user_id = await presence_broadcaster.disconnect(websocket)
        ws_connections_active.dec()

        log_msg = (
            f"Client of user {user_id} disconnected with code {close_code}"
            if user_id is not None
            else f"Connection {websocket.connection_id} closed with code {close_code}"
        )
        logger.debug(log_msg)
        clear_log_context()
