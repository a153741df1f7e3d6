import asyncio
import time

from presence_relay.exceptions import StoreError
from presence_relay.logging import logger
from presence_relay.managers.presence_broadcaster import (
    PresenceBroadcaster,
    presence_broadcaster,
)
from presence_relay.protocols import Connection, MessageStore
from presence_relay.schemas.events import (
    MessageErrorEvent,
    ReceiveMessageEvent,
)
from presence_relay.schemas.message import MessageRead
from presence_relay.settings import app_settings
from presence_relay.storage.message_store import SQLMessageStore
from presence_relay.utils.metrics import (
    relay_messages_total,
    store_create_duration_seconds,
)


class MessageRelay:
    """
    Persist-then-deliver relay for chat messages.

    The store is the single source of truth: nothing is announced to any
    peer until `MessageStore.create` has succeeded. Live delivery on top of
    it is best effort; an offline receiver is skipped, not queued.
    """

    def __init__(
        self,
        presence: PresenceBroadcaster,
        store: MessageStore,
        timeout: float | None = None,
    ) -> None:
        self.presence = presence
        self.store = store
        self.timeout = (
            timeout
            if timeout is not None
            else app_settings.STORE_TIMEOUT_SECONDS
        )

    async def relay(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        origin: Connection | None = None,
    ) -> MessageRead | None:
        """
        Persist a message and deliver it to the receiver and the sender.

        Steps:
        1. Persist via the store, bounded by the store timeout.
        2. On failure send `message_error` to the requesting connection
           (or, without one, the sender's registered connection) and stop.
        3. On success look up receiver and sender independently and send
           `receive_message` to each live connection found. The sender gets
           its own message through this same path.

        Args:
            sender_id: User sending the message.
            receiver_id: User the message is addressed to.
            content: Message text.
            origin: Connection the request arrived on.

        Returns:
            The persisted message, or None if persistence failed.
        """
        try:
            message = await self._persist(sender_id, receiver_id, content)
        except StoreError as ex:
            logger.error(
                f"Message error from {sender_id} to {receiver_id}: {ex}"
            )
            relay_messages_total.labels(outcome="store_error").inc()
            await self._notify_error(sender_id, str(ex), origin)
            return None

        delivered = await self.presence.send_to_users(
            [receiver_id, sender_id], ReceiveMessageEvent(data=message)
        )

        outcome = "delivered" if receiver_id in delivered else "stored_only"
        relay_messages_total.labels(outcome=outcome).inc()
        logger.debug(
            f"Message {message.id} from {sender_id} to {receiver_id} "
            f"{outcome} (recipients: {delivered})"
        )
        return message

    async def _persist(
        self, sender_id: str, receiver_id: str, content: str
    ) -> MessageRead:
        start_time = time.time()
        try:
            return await asyncio.wait_for(
                self.store.create(sender_id, receiver_id, content),
                timeout=self.timeout,
            )
        except TimeoutError as ex:
            raise StoreError(
                f"Message store timed out after {self.timeout}s"
            ) from ex
        finally:
            store_create_duration_seconds.observe(time.time() - start_time)

    async def _notify_error(
        self, sender_id: str, reason: str, origin: Connection | None
    ) -> None:
        event = MessageErrorEvent(data=reason)
        if origin is not None:
            await self.presence.send_to(origin, event)
        else:
            await self.presence.send_to_users([sender_id], event)


message_relay = MessageRelay(presence_broadcaster, SQLMessageStore())
