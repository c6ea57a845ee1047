# alapio/models/message.py

import enum
from sqlalchemy import Column, String, Text, DateTime, Index
from alapio.models.base import Base, utcnow


class MessageType(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"


class Message(Base):
    __tablename__ = "messages"

    # Client-generated; a collision is rejected, never overwritten
    id = Column(String(255), primary_key=True)

    # No foreign keys: identities come from an external provider and
    # a message may reach the store before its receiver ever logged in
    sender_id = Column(String(255), nullable=False, index=True)
    receiver_id = Column(String(255), nullable=False, index=True)

    content = Column(Text, nullable=False, default="")
    type = Column(String(16), nullable=False, default=MessageType.TEXT.value)

    # May hold a whole data URL for inline attachments
    file_url = Column(Text, nullable=True)
    file_name = Column(String(1024), nullable=True)

    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        Index("ix_messages_pair", "sender_id", "receiver_id"),
    )

    def __repr__(self):
        return f"<Message id={self.id!r} {self.sender_id!r}->{self.receiver_id!r} type={self.type!r}>"
