"""
Dependency injection configuration for FastAPI.

Every dependency here can be replaced in tests with
`app.dependency_overrides[...]`.

Example:
    ```python
    from fastapi import APIRouter
    from presence_relay.dependencies import MessageRepoDep

    router = APIRouter()

    @router.get("/messages/{user_id}/{peer_id}")
    async def history(user_id: str, peer_id: str, repo: MessageRepoDep):
        return await repo.get_conversation(user_id, peer_id)
    ```
"""

from typing import Annotated

from fastapi import Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from presence_relay.managers.presence_broadcaster import (
    PresenceBroadcaster,
    presence_broadcaster,
)
from presence_relay.repositories.message_repository import MessageRepository
from presence_relay.storage.db import get_session

SessionDep = Annotated[AsyncSession, Depends(get_session)]


def get_message_repository(session: SessionDep) -> MessageRepository:
    """
    Get MessageRepository instance with injected session.

    Args:
        session: Database session from dependency injection.

    Returns:
        MessageRepository instance.
    """
    return MessageRepository(session)


def get_presence_broadcaster() -> PresenceBroadcaster:
    """Get the process-wide PresenceBroadcaster."""
    return presence_broadcaster


MessageRepoDep = Annotated[MessageRepository, Depends(get_message_repository)]
PresenceDep = Annotated[PresenceBroadcaster, Depends(get_presence_broadcaster)]
