from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.business.users.models import User
from app.business.users.schemas import MeRead, PushTokenUpdate, UserRead
from app.core.database import transaction
from app.core.errors import NotFoundError
from app.platform.security.context import Actor


logger = logging.getLogger("app.users")


@dataclass(slots=True)
class UserService:
    def get_me(self, session: Session, actor: Actor) -> MeRead:
        user = self._get(session, actor.user_id)
        me = MeRead.model_validate(user)
        if actor.is_viewing_as:
            me.view_as_by = actor.original_user_id
            me.view_as_role = str(actor.original_role)
        return me

    def update_push_token(self, session: Session, actor: Actor, payload: PushTokenUpdate) -> UserRead:
        # a view-as session must not steal the target's notifications
        user = self._get(session, actor.real_user_id)
        with transaction(session):
            user.push_notification_token = payload.push_token or None
        session.refresh(user)
        logger.info("user.push_token_updated", extra={"user_id": user.id})
        return UserRead.model_validate(user)

    @staticmethod
    def _get(session: Session, user_id: str) -> User:
        user = session.get(User, user_id)
        if user is None or not user.is_active:
            raise NotFoundError("user")
        return user


user_service = UserService()
