from typing import Any

from fastapi import APIRouter

from presence_relay.api.ws.handlers import load_handlers
from presence_relay.api.ws.websocket import (
    PresenceWebSocket,
    PresenceWebSocketEndpoint,
)
from presence_relay.logging import logger
from presence_relay.routing import event_router
from presence_relay.schemas.events import parse_client_event
from presence_relay.utils.metrics import ws_events_received_total

load_handlers()
event_router.ensure_exhaustive()

router = APIRouter()


@router.websocket_route("/ws")
class Web(PresenceWebSocketEndpoint):
    """
    WebSocket endpoint for presence updates and chat relay.

    Every frame is validated into one of the client event models and routed
    through `event_router`.
    """

    async def on_receive(
        self, websocket: PresenceWebSocket, data: Any
    ) -> None:
        """
        Validate a decoded frame and dispatch it to its handler.

        Raises:
            MalformedEvent: If the frame is not a known, well-formed event.
                The dispatch loop drops the frame and keeps the connection.
        """
        request = parse_client_event(data)
        ws_events_received_total.labels(event=request.event).inc()
        logger.debug(
            f"Received {request.event} on connection {websocket.connection_id}"
        )

        await event_router.dispatch(websocket, request)
