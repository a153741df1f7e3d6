"""
WebSocket handler for chat messages.
"""

from presence_relay.api.ws.constants import ClientEventType
from presence_relay.api.ws.websocket import PresenceWebSocket
from presence_relay.logging import logger
from presence_relay.managers.message_relay import message_relay
from presence_relay.routing import event_router
from presence_relay.schemas.events import SendMessageRequest
from presence_relay.utils.metrics import ws_events_dropped_total


@event_router.register(ClientEventType.SEND_MESSAGE)
async def send_message_handler(
    websocket: PresenceWebSocket, request: SendMessageRequest
) -> None:
    """
    Persist a chat message, then relay it to receiver and sender.

    Failures are reported to this connection only as `message_error`.

    Request:
        {
            "event": "send_message",
            "data": {"senderId": str, "receiverId": str, "content": str}
        }
    """
    if not websocket.connection_state.is_registered:
        logger.warning(
            f"Dropped send_message from unregistered connection "
            f"{websocket.connection_id}"
        )
        ws_events_dropped_total.labels(reason="unregistered").inc()
        return

    websocket.mark_active()
    await message_relay.relay(
        request.data.sender_id,
        request.data.receiver_id,
        request.data.content,
        origin=websocket,
    )
