from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Message(SQLModel, table=True):
    """
    SQLModel representing a persisted chat message.

    Rows are written once by SQLMessageStore and never updated. Use
    MessageRepository for all database operations.

    Attributes:
        id: Primary key identifier
        sender_id: User who sent the message
        receiver_id: User the message is addressed to
        content: Message text
        created_at: Time the message was stored (UTC)
    """

    __tablename__ = "messages"
    __table_args__ = {"extend_existing": True}

    id: int | None = Field(default=None, primary_key=True)
    sender_id: str = Field(index=True)
    receiver_id: str = Field(index=True)
    content: str
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_type=DateTime(timezone=True),
        nullable=False,
    )
