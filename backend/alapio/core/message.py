# alapio/core/message.py

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from alapio.core.errors import DuplicateMessageIdError, StorageError
from alapio.models.base import utcnow
from alapio.models.message import Message, MessageType


def append_message(
    db: Session,
    message_id: str,
    sender_id: str,
    receiver_id: str,
    content: str = "",
    type: str = MessageType.TEXT.value,
    file_url: Optional[str] = None,
    file_name: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> Message:
    """
    Write a message row. Rows are never updated afterwards; an id that is
    already stored raises DuplicateMessageIdError and the first row wins.
    """
    if isinstance(type, MessageType):
        type = type.value

    try:
        if db.get(Message, message_id) is not None:
            raise DuplicateMessageIdError(message_id)

        message = Message(
            id=message_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content or "",
            type=type,
            file_url=file_url,
            file_name=file_name,
            timestamp=timestamp or utcnow(),
        )
        db.add(message)
        db.commit()
        db.refresh(message)
        return message
    except IntegrityError as e:
        db.rollback()
        # Lost a race with a concurrent insert of the same id
        if db.get(Message, message_id) is not None:
            raise DuplicateMessageIdError(message_id) from e
        raise StorageError(str(e.orig)) from e
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(str(e)) from e


def get_conversation(db: Session, user_a: str, user_b: str) -> List[Message]:
    """All messages exchanged between two users, oldest first."""
    try:
        return (
            db.query(Message)
            .filter(
                or_(
                    and_(Message.sender_id == user_a, Message.receiver_id == user_b),
                    and_(Message.sender_id == user_b, Message.receiver_id == user_a),
                )
            )
            .order_by(Message.timestamp.asc())
            .all()
        )
    except SQLAlchemyError as e:
        raise StorageError(str(e)) from e
