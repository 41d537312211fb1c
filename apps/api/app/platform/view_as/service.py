"""Start and end view-as sessions.

A session lets an admin act as a franchise owner, or an admin or franchise owner act as one
of the franchise's agents. The session itself lives in the view-as store; the token handed
back only names the target and is useless once the session is gone.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.business.franchise.models import Franchise
from app.business.franchise.service import get_active_service_agent, is_franchise_member
from app.business.users.models import User
from app.core.auth import issue_token
from app.core.config import get_settings
from app.core.errors import BadRequestError, NotFoundError
from app.platform.security.context import Actor, Role
from app.platform.security.guard import AccessGuard
from app.platform.security.view_as import ViewAsSession
from app.platform.view_as.schemas import ViewAsExitRead, ViewAsTokenRead


logger = logging.getLogger("app.view_as")


@dataclass(slots=True)
class ViewAsService:
    def start_franchise_owner(
        self,
        session: Session,
        actor: Actor,
        franchise_id: uuid.UUID,
        guard: AccessGuard,
    ) -> ViewAsTokenRead:
        guard.ensure(guard.can_view_as_franchise_owner(actor), "only admins can view as a franchise owner")
        franchise = self._franchise(session, franchise_id)
        if franchise.owner_id is None:
            raise BadRequestError("franchise is company managed and has no owner")
        owner = session.get(User, franchise.owner_id)
        if owner is None or not owner.is_active:
            raise BadRequestError("franchise owner is not active")
        return self._start(actor, owner, Role.FRANCHISE_OWNER, franchise, guard)

    def start_agent(
        self,
        session: Session,
        actor: Actor,
        franchise_id: uuid.UUID,
        agent_id: str,
        guard: AccessGuard,
    ) -> ViewAsTokenRead:
        franchise = self._franchise(session, franchise_id)
        guard.ensure(guard.can_view_as_agent(actor, franchise.owner_id), "you cannot view as agents of this franchise")
        agent = get_active_service_agent(session, agent_id)
        if agent is None or not is_franchise_member(session, franchise.id, agent_id):
            raise BadRequestError("agent is not an active member of this franchise")
        return self._start(actor, agent, Role.SERVICE_AGENT, franchise, guard)

    def exit(self, actor: Actor, guard: AccessGuard) -> ViewAsExitRead:
        ended = guard.view_as_store.delete_for_user(actor.real_user_id)
        logger.info("view_as.ended", extra={"user_id": actor.real_user_id, "purged": ended})
        return ViewAsExitRead(ended_sessions=ended)

    @staticmethod
    def _start(actor: Actor, target: User, target_role: Role, franchise: Franchise, guard: AccessGuard) -> ViewAsTokenRead:
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=get_settings().view_as_ttl_seconds)
        # one live session per real user
        guard.view_as_store.delete_for_user(actor.user_id)
        guard.view_as_store.put(
            ViewAsSession(
                original_user_id=actor.user_id,
                original_role=str(actor.role),
                target_user_id=target.id,
                target_role=str(target_role),
                franchise_area_id=str(franchise.id),
                created_at=now,
                expires_at=expires_at,
            )
        )
        token = issue_token(
            {"sub": actor.user_id, "role": str(actor.role), "view_as_target_id": target.id},
            expires_at=expires_at,
        )
        logger.info(
            "view_as.started",
            extra={"user_id": actor.user_id, "role": str(target_role), "outcome": target.id},
        )
        return ViewAsTokenRead(
            access_token=token,
            target_user_id=target.id,
            target_role=str(target_role),
            franchise_id=franchise.id,
            expires_at=expires_at,
        )

    @staticmethod
    def _franchise(session: Session, franchise_id: uuid.UUID) -> Franchise:
        franchise = session.get(Franchise, franchise_id)
        if franchise is None:
            raise NotFoundError("franchise")
        return franchise


view_as_service = ViewAsService()
