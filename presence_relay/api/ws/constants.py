from enum import StrEnum


class ClientEventType(StrEnum):
    """
    Events a client may send to the server.

    Attributes:
        USER_CONNECTED: Bind the sending connection to a user identity.
        UPDATE_ACTIVITY: Change the activity label of a user.
        SEND_MESSAGE: Persist and relay a chat message.
    """

    USER_CONNECTED = "user_connected"
    UPDATE_ACTIVITY = "update_activity"
    SEND_MESSAGE = "send_message"


class ServerEventType(StrEnum):
    """
    Events the server pushes to clients.

    Attributes:
        USERS_ONLINE: Full list of online user ids (replace).
        USER_CONNECTED: A single user came online (add).
        USER_DISCONNECTED: A single user went offline (remove).
        ACTIVITY_UPDATED: One activity label changed (upsert).
        ACTIVITIES: Full activity map, sent to a freshly registered client.
        RECEIVE_MESSAGE: A persisted chat message.
        MESSAGE_ERROR: A send_message request failed (sender only).
    """

    USERS_ONLINE = "users_online"
    USER_CONNECTED = "user_connected"
    USER_DISCONNECTED = "user_disconnected"
    ACTIVITY_UPDATED = "activity_updated"
    ACTIVITIES = "activities"
    RECEIVE_MESSAGE = "receive_message"
    MESSAGE_ERROR = "message_error"


class ConnectionState(StrEnum):
    """
    Lifecycle of a single WebSocket transport.

    DISCONNECTED -> CONNECTING -> REGISTERED -> ACTIVE -> DISCONNECTED

    REGISTERED and ACTIVE behave the same: both may send and receive.
    Any transport drop moves straight to DISCONNECTED.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    REGISTERED = "registered"
    ACTIVE = "active"

    @property
    def is_registered(self) -> bool:
        return self in (ConnectionState.REGISTERED, ConnectionState.ACTIVE)
