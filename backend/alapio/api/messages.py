# alapio/api/messages.py

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from alapio.core.message import get_conversation
from alapio.infra.database import get_db
from alapio.schemas import MessageOut

router = APIRouter(prefix="/messages")


@router.get("/{user_a}/{user_b}", response_model=List[MessageOut])
def get_messages(user_a: str, user_b: str, db: Session = Depends(get_db)):
    """Full history between two users, oldest first."""
    return get_conversation(db, user_a, user_b)
