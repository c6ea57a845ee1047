# alapio/schemas.py

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from alapio.models.message import MessageType


class UserIn(BaseModel):
    """Identity triple handed over by the external auth provider."""
    id: str = Field(min_length=1)
    username: str = Field(min_length=1)
    avatar: Optional[str] = ""


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    avatar: Optional[str] = None
    last_seen: Optional[datetime] = None


class MessageIn(BaseModel):
    # Unknown keys are tolerated; the raw payload is what gets forwarded
    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    sender_id: Optional[str] = None
    receiver_id: str = Field(min_length=1)
    content: Optional[str] = ""
    type: MessageType = MessageType.TEXT
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    # Client clock (ISO string or epoch millis); the stored timestamp is server-side
    timestamp: Optional[Union[str, int, float]] = None


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    sender_id: str
    receiver_id: str
    content: str
    type: MessageType
    file_url: Optional[str] = None
    file_name: Optional[str] = None
    timestamp: datetime


class TypingIn(BaseModel):
    sender_id: Optional[str] = None
    receiver_id: str = Field(min_length=1)
