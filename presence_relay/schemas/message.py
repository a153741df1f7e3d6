from datetime import datetime

from pydantic import ConfigDict

from presence_relay.schemas.base import CamelModel


class MessageRead(CamelModel):
    """
    A persisted chat message as carried by the relay.

    Instances are produced only by a MessageStore after a successful write
    and are immutable.

    Attributes:
        id: Store-assigned identifier.
        sender_id: User who sent the message.
        receiver_id: User the message is addressed to.
        content: Message text.
        created_at: Time the store accepted the message.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    sender_id: str
    receiver_id: str
    content: str
    created_at: datetime

    def involves(self, user_id: str, peer_id: str) -> bool:
        """True if the message was exchanged between the two users."""
        return (self.sender_id, self.receiver_id) in (
            (user_id, peer_id),
            (peer_id, user_id),
        )
