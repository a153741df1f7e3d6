"""
Protocol classes for structural subtyping (duck typing with type safety).

Protocols define interfaces without requiring explicit inheritance. The
presence managers only rely on these, so tests can substitute any object
that implements the required methods.

Example:
    ```python
    from presence_relay.protocols import MessageStore


    async def save(store: MessageStore) -> None:
        # Works with any store implementation
        message = await store.create("alice", "bob", "hi")
    ```
"""

from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from presence_relay.schemas.message import MessageRead


@runtime_checkable
class Connection(Protocol):
    """
    Protocol for a live transport connection.

    Attributes:
        connection_id: Unique, stable identifier of the transport.
    """

    connection_id: str

    async def send_event(self, event: BaseModel) -> None:
        """Serialize and send one server event."""
        ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        """Close the transport."""
        ...


@runtime_checkable
class MessageStore(Protocol):
    """
    Protocol for durable message storage.

    `create` either returns the stored, immutable message or raises
    StoreError; partial writes are never visible.
    """

    async def create(
        self, sender_id: str, receiver_id: str, content: str
    ) -> MessageRead:
        """
        Persist a new message.

        Args:
            sender_id: User who sent the message.
            receiver_id: User the message is addressed to.
            content: Message text.

        Returns:
            The persisted message.

        Raises:
            StoreError: If the message could not be persisted.
        """
        ...
