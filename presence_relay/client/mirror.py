"""
Client-side replica of presence, activity and conversation state.

The mirror is kept consistent purely by applying server events in the
order they arrive. It never talks to the network itself; ChatClient feeds
it.
"""

from collections.abc import Callable, Iterable
from typing import Any

from pydantic import BaseModel

from presence_relay.api.ws.constants import ServerEventType
from presence_relay.exceptions import MalformedEvent
from presence_relay.logging import logger
from presence_relay.schemas.events import (
    ActivitiesEvent,
    ActivityUpdatedEvent,
    MessageErrorEvent,
    ReceiveMessageEvent,
    ServerEvent,
    UserConnectedEvent,
    UserDisconnectedEvent,
    UsersOnlineEvent,
    parse_server_event,
)
from presence_relay.schemas.message import MessageRead


class ClientSessionMirror:
    """
    Local view of the server state for one signed-in user.

    Attributes:
        user_id: The local identity.
        online_users: Users currently online.
        activities: Activity label per user.
        messages: Messages of the selected conversation, in arrival order.
        selected_peer: The user the selected conversation is with.
        last_error: Text of the most recent `message_error`, if any.
    """

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        self.online_users: set[str] = set()
        self.activities: dict[str, str] = {}
        self.messages: list[MessageRead] = []
        self.selected_peer: str | None = None
        self.last_error: str | None = None

        self._handlers: dict[ServerEventType, Callable[[Any], None]] = {
            ServerEventType.USERS_ONLINE: self._on_users_online,
            ServerEventType.USER_CONNECTED: self._on_user_connected,
            ServerEventType.USER_DISCONNECTED: self._on_user_disconnected,
            ServerEventType.ACTIVITY_UPDATED: self._on_activity_updated,
            ServerEventType.ACTIVITIES: self._on_activities,
            ServerEventType.RECEIVE_MESSAGE: self._on_receive_message,
            ServerEventType.MESSAGE_ERROR: self._on_message_error,
        }

    def apply(self, event: ServerEvent | Any) -> bool:
        """
        Apply one server event.

        Args:
            event: A validated server event or any decoded JSON frame.

        Returns:
            False if a raw frame failed validation and was ignored.
        """
        if not isinstance(event, BaseModel):
            try:
                event = parse_server_event(event)
            except MalformedEvent as ex:
                logger.warning(f"Ignoring malformed server event: {ex}")
                return False

        self._handlers[ServerEventType(event.event)](event)
        return True

    def select_conversation(self, peer_id: str | None) -> None:
        """
        Switch the active conversation.

        Always clears `messages`, even when re-selecting the same peer;
        repopulating from history is up to the caller.
        """
        self.selected_peer = peer_id
        self.messages = []

    def load_history(self, messages: Iterable[MessageRead]) -> None:
        """Replace `messages` with the history of the selected conversation."""
        self.messages = [
            message
            for message in messages
            if self.belongs_to_conversation(message)
        ]

    def belongs_to_conversation(self, message: MessageRead) -> bool:
        """
        True if message was exchanged between the local user and the
        selected peer.
        """
        if self.selected_peer is None:
            return False
        return message.involves(self.user_id, self.selected_peer)

    def is_online(self, user_id: str) -> bool:
        return user_id in self.online_users

    def _on_users_online(self, event: UsersOnlineEvent) -> None:
        self.online_users = set(event.data)

    def _on_user_connected(self, event: UserConnectedEvent) -> None:
        self.online_users.add(event.data)

    def _on_user_disconnected(self, event: UserDisconnectedEvent) -> None:
        self.online_users.discard(event.data)
        self.activities.pop(event.data, None)

    def _on_activity_updated(self, event: ActivityUpdatedEvent) -> None:
        self.activities[event.data.user_id] = event.data.activity

    def _on_activities(self, event: ActivitiesEvent) -> None:
        self.activities = dict(event.data)

    def _on_receive_message(self, event: ReceiveMessageEvent) -> None:
        if not self.belongs_to_conversation(event.data):
            logger.debug(
                f"Discarding message {event.data.id} outside the selected conversation"
            )
            return
        self.messages.append(event.data)

    def _on_message_error(self, event: MessageErrorEvent) -> None:
        logger.warning(f"Message error: {event.data}")
        self.last_error = event.data
