# mailslot/models/message.py

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Column, DateTime, String, Text

from mailslot.models.base import Base

TITLE_LENGTH = 60


def new_message_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """A pending anonymous message. Immutable once created."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[str] = None
    title: str
    content: str
    received_at: Optional[datetime] = Field(default=None, alias="receivedAt")

    @classmethod
    def from_content(cls, content: str) -> "Message":
        return cls(title=content[:TITLE_LENGTH], content=content)

    def stamped(self, message_id: Optional[str] = None, received_at: Optional[datetime] = None) -> "Message":
        """Copy with the id and receive time filled in (existing values win)."""
        return self.model_copy(update={
            "id": self.id or message_id or new_message_id(),
            "received_at": self.received_at or received_at or utcnow(),
        })


class StoredMessage(Base):
    __tablename__ = "pending_messages"

    id = Column(String(32), primary_key=True, default=new_message_id)
    title = Column(String(TITLE_LENGTH), nullable=False)
    content = Column(Text, nullable=False)
    received_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @classmethod
    def from_message(cls, message: Message) -> "StoredMessage":
        return cls(
            id=message.id,
            title=message.title,
            content=message.content,
            received_at=message.received_at,
        )

    def to_message(self) -> Message:
        received_at = self.received_at
        # SQLite hands back naive datetimes
        if received_at is not None and received_at.tzinfo is None:
            received_at = received_at.replace(tzinfo=timezone.utc)
        return Message(id=self.id, title=self.title, content=self.content, received_at=received_at)
