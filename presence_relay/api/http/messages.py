from fastapi import APIRouter, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from presence_relay.dependencies import MessageRepoDep
from presence_relay.logging import logger
from presence_relay.schemas.message import MessageRead

router = APIRouter()


@router.get(
    "/messages/{user_id}/{peer_id}",
    response_model=list[MessageRead],
    response_model_by_alias=True,
    summary="Conversation history between two users",
    tags=["messages"],
)
async def get_conversation(
    user_id: str, peer_id: str, repo: MessageRepoDep
) -> list[MessageRead]:
    """
    Return every message exchanged between two users, oldest first.

    This is the history source clients use to repopulate a conversation
    after switching to it; live updates arrive over the WebSocket.

    Raises:
        HTTPException: 503 if the message store is unavailable.
    """
    try:
        messages = await repo.get_conversation(user_id, peer_id)
    except SQLAlchemyError as ex:
        logger.error(f"Error fetching messages {user_id}<->{peer_id}: {ex}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Message store unavailable",
        ) from ex

    return [MessageRead.model_validate(message) for message in messages]
