"""
Repository for Message entity with conversation queries.

Example:
    ```python
    from presence_relay.repositories.message_repository import (
        MessageRepository,
    )
    from presence_relay.storage.db import async_session

    async with async_session() as session:
        repo = MessageRepository(session)
        history = await repo.get_conversation("alice", "bob")
    ```
"""

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from presence_relay.logging import logger
from presence_relay.models.message import Message
from presence_relay.repositories.base import BaseRepository


class MessageRepository(BaseRepository[Message]):
    """
    Repository for Message entity operations.

    Provides the operations inherited from BaseRepository plus the
    conversation lookup used by the history endpoint.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, Message)

    async def get_conversation(
        self, user_id: str, peer_id: str
    ) -> list[Message]:
        """
        Get every message exchanged between two users, oldest first.

        Args:
            user_id: One endpoint of the conversation.
            peer_id: The other endpoint.

        Returns:
            Messages in either direction ordered by creation time.

        Raises:
            SQLAlchemyError: If database query fails.
        """
        stmt = (
            select(Message)
            .where(
                or_(
                    and_(
                        Message.sender_id == user_id,
                        Message.receiver_id == peer_id,
                    ),
                    and_(
                        Message.sender_id == peer_id,
                        Message.receiver_id == user_id,
                    ),
                )
            )
            .order_by(Message.created_at, Message.id)
        )
        try:
            result = await self.session.exec(stmt)
            return list(result.all())
        except SQLAlchemyError as e:
            logger.error(
                f"Error retrieving conversation {user_id}<->{peer_id}: {e}"
            )
            raise
