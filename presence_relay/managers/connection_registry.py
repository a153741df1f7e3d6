from dataclasses import dataclass

from presence_relay.logging import logger
from presence_relay.protocols import Connection


@dataclass(frozen=True)
class Registration:
    """
    Outcome of ConnectionRegistry.register.

    Attributes:
        user_id: The identity that was registered.
        replaced: Connection previously mapped to user_id, if it was a
            different transport. It is no longer reachable via the registry.
        released_user_id: Identity previously bound to the registering
            connection, if it differs from user_id. Its entry was removed.
    """

    user_id: str
    replaced: Connection | None = None
    released_user_id: str | None = None


class ConnectionRegistry:
    """
    Bidirectional mapping between user identities and live connections.

    Holds at most one connection per user and at most one user per
    connection. The registry does no locking of its own; its owner
    (PresenceBroadcaster) serializes every call.
    """

    def __init__(self) -> None:
        self._by_user: dict[str, Connection] = {}
        self._by_connection: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._by_user)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._by_user

    def register(self, user_id: str, connection: Connection) -> Registration:
        """
        Map user_id to connection, overwriting any existing mapping.

        Never raises. Registering the same pair twice is a no-op apart
        from the returned Registration.

        Args:
            user_id: The user identity.
            connection: The live connection to bind.

        Returns:
            Registration describing what the call displaced.
        """
        connection_id = connection.connection_id

        replaced = self._by_user.get(user_id)
        if replaced is not None and replaced.connection_id == connection_id:
            replaced = None
        elif replaced is not None:
            self._by_connection.pop(replaced.connection_id, None)
            logger.debug(
                f"Connection {replaced.connection_id} of user {user_id} "
                f"replaced by {connection_id}"
            )

        released_user_id = self._by_connection.get(connection_id)
        if released_user_id == user_id:
            released_user_id = None
        elif released_user_id is not None:
            self._by_user.pop(released_user_id, None)
            logger.debug(
                f"Connection {connection_id} rebound from user "
                f"{released_user_id} to {user_id}"
            )

        self._by_user[user_id] = connection
        self._by_connection[connection_id] = user_id

        return Registration(
            user_id=user_id,
            replaced=replaced,
            released_user_id=released_user_id,
        )

    def lookup(self, user_id: str) -> Connection | None:
        """Get the live connection of user_id, if registered."""
        return self._by_user.get(user_id)

    def user_of(self, connection_id: str) -> str | None:
        """Get the user bound to connection_id, if any."""
        return self._by_connection.get(connection_id)

    def remove_by_connection(self, connection_id: str) -> str | None:
        """
        Remove the entry whose connection matches connection_id.

        Args:
            connection_id: Identifier of the closed transport.

        Returns:
            The user id that was removed, or None if the connection was not
            registered (including a connection that was replaced).
        """
        user_id = self._by_connection.pop(connection_id, None)
        if user_id is None:
            return None

        del self._by_user[user_id]
        return user_id

    def online_ids(self) -> list[str]:
        """Snapshot of registered user ids in registration order."""
        return list(self._by_user)

    def connections(self) -> list[Connection]:
        """Snapshot of registered connections."""
        return list(self._by_user.values())
