# alapio/api/users.py

import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from alapio.core.rate_limit import LOGIN_LIMIT, limiter
from alapio.core.user import list_users, upsert_user
from alapio.infra.database import get_db
from alapio.schemas import UserIn, UserOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users")


@router.get("", response_model=List[UserOut])
def get_users(db: Session = Depends(get_db)):
    """Directory snapshot for the sidebar."""
    return list_users(db)


@router.post("")
@limiter.limit(LOGIN_LIMIT)
def post_user(request: Request, payload: UserIn, db: Session = Depends(get_db)):
    """
    Called at login with the identity supplied by the auth provider.
    The id is taken as given; it is not verified here.
    """
    # StorageError is turned into a 500 {"error": ...} by the app handler
    upsert_user(db, payload.id, payload.username, payload.avatar)
    logger.info(f"✅ User {payload.id} upserted as '{payload.username}'")
    return {"success": True}


@router.get("/online")
def get_online_users(request: Request):
    return {"online": request.app.state.gateway.online_users()}
