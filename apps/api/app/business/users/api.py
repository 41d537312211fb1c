from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.business.users.schemas import MeRead, PushTokenUpdate, UserRead
from app.business.users.service import user_service
from app.core.auth import get_current_actor
from app.core.database import get_db
from app.platform.security.context import Actor


router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=MeRead)
def get_me(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> MeRead:
    return user_service.get_me(db, actor)


@router.put("/me/push-token", response_model=UserRead)
def update_push_token(
    payload: PushTokenUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> UserRead:
    return user_service.update_push_token(db, actor, payload)
