"""SQL-backed implementation of the MessageStore protocol."""

from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from presence_relay.exceptions import StoreError
from presence_relay.logging import logger
from presence_relay.models.message import Message
from presence_relay.repositories.message_repository import MessageRepository
from presence_relay.schemas.message import MessageRead
from presence_relay.storage.db import async_session


class SQLMessageStore:
    """
    Persists messages through MessageRepository, one transaction each.

    The returned MessageRead is built only after the transaction commits,
    so callers never see a message that was not durably stored.
    """

    def __init__(
        self, session_factory: Callable[[], AsyncSession] = async_session
    ) -> None:
        self.session_factory = session_factory

    async def create(
        self, sender_id: str, receiver_id: str, content: str
    ) -> MessageRead:
        """
        Persist a new message.

        Raises:
            StoreError: If the database rejected or failed the write, or
                could not be reached.
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    repo = MessageRepository(session)
                    message = await repo.create(
                        Message(
                            sender_id=sender_id,
                            receiver_id=receiver_id,
                            content=content,
                        )
                    )
                    stored = MessageRead.model_validate(message)
        except (SQLAlchemyError, OSError) as ex:
            logger.error(f"Database error saving message: {ex}")
            raise StoreError("Failed to save message") from ex

        return stored
