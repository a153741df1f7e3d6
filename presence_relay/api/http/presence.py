from fastapi import APIRouter, status

from presence_relay.dependencies import PresenceDep
from presence_relay.schemas.presence import PresenceSnapshot

router = APIRouter()


@router.get(
    "/presence",
    response_model=PresenceSnapshot,
    status_code=status.HTTP_200_OK,
    summary="Online users and their activities",
    tags=["presence"],
)
async def get_presence(presence: PresenceDep) -> PresenceSnapshot:
    """
    Return a consistent snapshot of who is online and what they are doing.

    The online list and the activity map are read under the same lock, so
    they always describe the same moment.
    """
    return await presence.snapshot()
