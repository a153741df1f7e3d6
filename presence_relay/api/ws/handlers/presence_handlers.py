"""
WebSocket handlers for presence: registration and activity updates.
"""

from presence_relay.api.ws.constants import ClientEventType
from presence_relay.api.ws.websocket import PresenceWebSocket
from presence_relay.logging import logger
from presence_relay.managers.presence_broadcaster import presence_broadcaster
from presence_relay.routing import event_router
from presence_relay.schemas.events import (
    UpdateActivityRequest,
    UserConnectedRequest,
)
from presence_relay.utils.metrics import ws_events_dropped_total


@event_router.register(ClientEventType.USER_CONNECTED)
async def user_connected_handler(
    websocket: PresenceWebSocket, request: UserConnectedRequest
) -> None:
    """
    Bind the connection to a user and announce it.

    Moves the connection from CONNECTING to REGISTERED. Sending
    `user_connected` again re-registers (possibly under another identity).

    Request:
        {"event": "user_connected", "data": "<userId>"}
    """
    await presence_broadcaster.connect(request.data, websocket)
    websocket.mark_registered(request.data)


@event_router.register(ClientEventType.UPDATE_ACTIVITY)
async def update_activity_handler(
    websocket: PresenceWebSocket, request: UpdateActivityRequest
) -> None:
    """
    Set a user's activity label and broadcast the delta.

    Request:
        {"event": "update_activity", "data": {"userId": str, "activity": str}}
    """
    if not websocket.connection_state.is_registered:
        logger.warning(
            f"Dropped update_activity from unregistered connection "
            f"{websocket.connection_id}"
        )
        ws_events_dropped_total.labels(reason="unregistered").inc()
        return

    websocket.mark_active()
    applied = await presence_broadcaster.update_activity(
        request.data.user_id, request.data.activity
    )
    if not applied:
        ws_events_dropped_total.labels(reason="unknown_user").inc()
