import asyncio
from collections.abc import Iterable

from pydantic import BaseModel
from starlette.websockets import WebSocketDisconnect

from presence_relay.constants import (
    WS_CLOSE_TIMEOUT_SECONDS,
    WS_POLICY_VIOLATION_CODE,
    WS_SUPERSEDED_REASON,
)
from presence_relay.logging import logger
from presence_relay.managers.activity_tracker import ActivityTracker
from presence_relay.managers.connection_registry import (
    ConnectionRegistry,
    Registration,
)
from presence_relay.protocols import Connection
from presence_relay.schemas.events import (
    ActivitiesEvent,
    ActivityPayload,
    ActivityUpdatedEvent,
    UserConnectedEvent,
    UserDisconnectedEvent,
    UsersOnlineEvent,
)
from presence_relay.schemas.presence import PresenceSnapshot
from presence_relay.settings import app_settings
from presence_relay.utils.metrics import (
    presence_users_online,
    ws_connections_total,
    ws_events_sent_total,
    ws_send_failures_total,
)


class PresenceBroadcaster:
    """
    Single owner of presence state and its fan-out.

    Owns the ConnectionRegistry and the ActivityTracker. Every mutation, the
    snapshot of connections it broadcasts to, and the broadcast itself run
    under one asyncio.Lock. Concurrent connects, disconnects and activity
    updates are therefore seen by every peer in one total order, and a
    connection added or removed meanwhile never gets a partial view.

    Notification shapes:
    - connect/disconnect: full online list (`users_online`) to every peer,
      preceded by the incremental `user_connected`/`user_disconnected`.
    - activity change: only the `{userId, activity}` delta.
    """

    def __init__(
        self,
        default_activity: str | None = None,
        send_timeout: float | None = None,
        evict_stale: bool | None = None,
    ) -> None:
        self.registry = ConnectionRegistry()
        self.activities = ActivityTracker()
        self.default_activity = (
            default_activity
            if default_activity is not None
            else app_settings.DEFAULT_ACTIVITY
        )
        self.send_timeout = (
            send_timeout
            if send_timeout is not None
            else app_settings.WS_SEND_TIMEOUT_SECONDS
        )
        self.evict_stale = (
            evict_stale
            if evict_stale is not None
            else app_settings.WS_EVICT_STALE_CONNECTIONS
        )
        self._lock = asyncio.Lock()

    async def connect(
        self, user_id: str, connection: Connection
    ) -> Registration:
        """
        Register connection for user_id and announce it to every peer.

        The user's activity is reset to the default label. The new
        connection additionally receives the full activity map.

        Args:
            user_id: Identity announced by the client.
            connection: The connection that sent `user_connected`.

        Returns:
            Registration describing any displaced connection or identity.
        """
        async with self._lock:
            registration = self.registry.register(user_id, connection)
            released = registration.released_user_id
            if released is not None:
                self.activities.remove(released)
            self.activities.set(user_id, self.default_activity)
            presence_users_online.set(len(self.registry))

            peers = self.registry.connections()
            if released is not None:
                await self._fan_out(peers, UserDisconnectedEvent(data=released))
            await self._fan_out(peers, UserConnectedEvent(data=user_id))
            await self._fan_out(
                peers, UsersOnlineEvent(data=self.registry.online_ids())
            )
            await self._send(
                connection, ActivitiesEvent(data=self.activities.snapshot())
            )

        logger.info(
            f"User connected: {user_id}. "
            f"Total users online: {len(self.registry)}"
        )

        if registration.replaced is not None and self.evict_stale:
            await self._evict(registration.replaced)

        return registration

    async def disconnect(self, connection: Connection) -> str | None:
        """
        Remove a closed connection and announce the departure.

        Unknown connections (never registered, or already replaced) are a
        no-op: nothing is removed and nothing is broadcast.

        Returns:
            The user id that went offline, or None.
        """
        async with self._lock:
            user_id = self.registry.remove_by_connection(
                connection.connection_id
            )
            if user_id is None:
                logger.debug(
                    f"Connection {connection.connection_id} was not "
                    "registered, nothing to announce"
                )
                return None

            self.activities.remove(user_id)
            presence_users_online.set(len(self.registry))

            peers = self.registry.connections()
            await self._fan_out(peers, UserDisconnectedEvent(data=user_id))
            await self._fan_out(
                peers, UsersOnlineEvent(data=self.registry.online_ids())
            )

        logger.info(
            f"User disconnected: {user_id}. "
            f"Total users online: {len(self.registry)}"
        )
        return user_id

    async def update_activity(self, user_id: str, label: str) -> bool:
        """
        Set the activity label of a registered user and broadcast the delta.

        Updates for users that are not registered are ignored so the
        tracker never holds an entry that no disconnect will clean up.
        Re-sending the current label is accepted without a broadcast.

        Returns:
            True if the user is registered and now has the label.
        """
        async with self._lock:
            if user_id not in self.registry:
                logger.debug(
                    f"Ignoring activity update for offline user {user_id}"
                )
                return False

            if not self.activities.set(user_id, label):
                logger.debug(f"Activity of {user_id} unchanged: {label!r}")
                return True

            await self._fan_out(
                self.registry.connections(),
                ActivityUpdatedEvent(
                    data=ActivityPayload(user_id=user_id, activity=label)
                ),
            )

        logger.debug(f"Activity of {user_id} set to {label!r}")
        return True

    async def send_to_users(
        self, user_ids: Iterable[str], event: BaseModel
    ) -> list[str]:
        """
        Send event to the live connection of each user, if any.

        Each user id is looked up independently; a connection is sent the
        event at most once even if several ids resolve to it.

        Returns:
            The user ids whose connection was sent the event.
        """
        delivered: list[str] = []
        async with self._lock:
            seen: set[str] = set()
            for user_id in user_ids:
                connection = self.registry.lookup(user_id)
                if connection is None:
                    continue
                if connection.connection_id in seen:
                    delivered.append(user_id)
                    continue
                seen.add(connection.connection_id)
                if await self._send(connection, event):
                    delivered.append(user_id)
        return delivered

    async def send_to(self, connection: Connection, event: BaseModel) -> bool:
        """Send event to one connection, ordered with the broadcasts."""
        async with self._lock:
            return await self._send(connection, event)

    async def snapshot(self) -> PresenceSnapshot:
        """Consistent copy of the online list and the activity map."""
        async with self._lock:
            return PresenceSnapshot(
                online=self.registry.online_ids(),
                activities=self.activities.snapshot(),
            )

    async def _fan_out(
        self, connections: list[Connection], event: BaseModel
    ) -> None:
        """
        Send event to every connection of a snapshot concurrently.

        Failures are handled per connection by _send and never interrupt
        the fan-out.
        """
        if not connections:
            return

        await asyncio.gather(
            *[self._send(connection, event) for connection in connections]
        )

    async def _send(self, connection: Connection, event: BaseModel) -> bool:
        """
        Send one event with a timeout.

        A connection that cannot be written to is closed; its own dispatch
        loop then runs the normal disconnect path.

        Returns:
            True if the event was sent.
        """
        event_name = getattr(event, "event", type(event).__name__)
        try:
            await asyncio.wait_for(
                connection.send_event(event), timeout=self.send_timeout
            )
        except (
            TimeoutError,
            WebSocketDisconnect,
            ConnectionError,
            RuntimeError,
        ) as e:
            # TimeoutError: peer is not draining its socket
            # WebSocketDisconnect/ConnectionError: peer is gone
            # RuntimeError: WebSocket in invalid state
            logger.warning(
                f"Failed to send {event_name} to connection "
                f"{connection.connection_id}: {e!r}"
            )
            ws_send_failures_total.inc()
            await self._close(connection)
            return False
        except Exception as e:
            logger.warning(
                f"Unexpected error sending {event_name} to connection "
                f"{connection.connection_id}: {e!r}"
            )
            ws_send_failures_total.inc()
            await self._close(connection)
            return False

        ws_events_sent_total.labels(event=event_name).inc()
        return True

    async def _evict(self, connection: Connection) -> None:
        logger.info(
            f"Closing superseded connection {connection.connection_id}"
        )
        ws_connections_total.labels(status="evicted").inc()
        await self._close(
            connection,
            code=WS_POLICY_VIOLATION_CODE,
            reason=WS_SUPERSEDED_REASON,
        )

    async def _close(
        self,
        connection: Connection,
        code: int = 1011,
        reason: str | None = None,
    ) -> None:
        try:
            await asyncio.wait_for(
                connection.close(code=code, reason=reason),
                timeout=WS_CLOSE_TIMEOUT_SECONDS,
            )
        except (
            TimeoutError,
            WebSocketDisconnect,
            ConnectionError,
            RuntimeError,
        ) as e:
            logger.debug(
                f"Connection {connection.connection_id} already closed: {e!r}"
            )


presence_broadcaster = PresenceBroadcaster()
