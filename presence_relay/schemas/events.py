"""
Closed set of WebSocket events.

Every frame on the wire is a JSON object `{"event": <name>, "data": ...}`.
Each event name maps to exactly one model below, and the unions are
discriminated on `event`, so an unknown name or a payload of the wrong
shape fails validation instead of reaching a handler.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import (
    Field,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from presence_relay.constants import MAX_ACTIVITY_LENGTH, MAX_USER_ID_LENGTH
from presence_relay.exceptions import MalformedEvent
from presence_relay.schemas.base import CamelModel
from presence_relay.schemas.message import MessageRead
from presence_relay.settings import app_settings

UserId = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True, min_length=1, max_length=MAX_USER_ID_LENGTH
    ),
]
ActivityLabel = Annotated[
    str,
    StringConstraints(
        strip_whitespace=True, min_length=1, max_length=MAX_ACTIVITY_LENGTH
    ),
]


# ============================================================================
# Payloads
# ============================================================================


class ActivityPayload(CamelModel):
    user_id: UserId
    activity: ActivityLabel


class SendMessagePayload(CamelModel):
    sender_id: UserId
    receiver_id: UserId
    content: str

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be blank")
        if len(value) > app_settings.MAX_MESSAGE_LENGTH:
            raise ValueError(
                f"content exceeds {app_settings.MAX_MESSAGE_LENGTH} characters"
            )
        return value


# ============================================================================
# Client -> Server
# ============================================================================


class UserConnectedRequest(CamelModel):
    event: Literal["user_connected"] = "user_connected"
    data: UserId


class UpdateActivityRequest(CamelModel):
    event: Literal["update_activity"] = "update_activity"
    data: ActivityPayload


class SendMessageRequest(CamelModel):
    event: Literal["send_message"] = "send_message"
    data: SendMessagePayload


ClientEvent = Annotated[
    Union[UserConnectedRequest, UpdateActivityRequest, SendMessageRequest],
    Field(discriminator="event"),
]


# ============================================================================
# Server -> Client
# ============================================================================


class UsersOnlineEvent(CamelModel):
    event: Literal["users_online"] = "users_online"
    data: list[str]


class UserConnectedEvent(CamelModel):
    event: Literal["user_connected"] = "user_connected"
    data: str


class UserDisconnectedEvent(CamelModel):
    event: Literal["user_disconnected"] = "user_disconnected"
    data: str


class ActivityUpdatedEvent(CamelModel):
    event: Literal["activity_updated"] = "activity_updated"
    data: ActivityPayload


class ActivitiesEvent(CamelModel):
    event: Literal["activities"] = "activities"
    data: dict[str, str]


class ReceiveMessageEvent(CamelModel):
    event: Literal["receive_message"] = "receive_message"
    data: MessageRead


class MessageErrorEvent(CamelModel):
    event: Literal["message_error"] = "message_error"
    data: str


ServerEvent = Annotated[
    Union[
        UsersOnlineEvent,
        UserConnectedEvent,
        UserDisconnectedEvent,
        ActivityUpdatedEvent,
        ActivitiesEvent,
        ReceiveMessageEvent,
        MessageErrorEvent,
    ],
    Field(discriminator="event"),
]

client_event_adapter: TypeAdapter[ClientEvent] = TypeAdapter(ClientEvent)
server_event_adapter: TypeAdapter[ServerEvent] = TypeAdapter(ServerEvent)


def parse_client_event(raw: Any) -> ClientEvent:
    """
    Validate a decoded frame sent by a client.

    Raises:
        MalformedEvent: If the frame is not a known, well-formed event.
    """
    try:
        return client_event_adapter.validate_python(raw)
    except ValidationError as ex:
        raise MalformedEvent(
            f"Invalid client event: {ex.error_count()} validation error(s)"
        ) from ex


def parse_server_event(raw: Any) -> ServerEvent:
    """
    Validate a decoded frame pushed by the server.

    Raises:
        MalformedEvent: If the frame is not a known, well-formed event.
    """
    try:
        return server_event_adapter.validate_python(raw)
    except ValidationError as ex:
        raise MalformedEvent(
            f"Invalid server event: {ex.error_count()} validation error(s)"
        ) from ex
