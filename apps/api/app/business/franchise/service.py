from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.business.franchise.models import Franchise, FranchiseAgent
from app.business.franchise.schemas import FranchiseAgentAssign, FranchiseAgentRead, FranchiseCreate, FranchiseRead
from app.business.users.models import User
from app.core.database import transaction
from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.platform.security.context import Actor, Role
from app.platform.security.guard import AccessGuard, get_access_guard


logger = logging.getLogger("app.franchise")


def franchise_owner_id(session: Session, franchise_id: uuid.UUID | None) -> str | None:
    if franchise_id is None:
        return None
    return session.scalar(select(Franchise.owner_id).where(Franchise.id == franchise_id))


def is_franchise_member(session: Session, franchise_id: uuid.UUID, agent_id: str) -> bool:
    membership = session.scalar(
        select(FranchiseAgent.id).where(
            FranchiseAgent.franchise_id == franchise_id,
            FranchiseAgent.agent_id == agent_id,
            FranchiseAgent.is_active.is_(True),
        )
    )
    return membership is not None


def get_active_service_agent(session: Session, user_id: str | None) -> User | None:
    if not user_id:
        return None
    user = session.get(User, user_id)
    if user is None or not user.is_active or user.role != Role.SERVICE_AGENT:
        return None
    return user


def resolve_franchise_for_customer(session: Session, user: User | None) -> Franchise | None:
    """The customer's own franchise area if it is active, else the first active one in their city."""
    if user is None:
        return None
    if user.franchise_area_id is not None:
        franchise = session.get(Franchise, user.franchise_area_id)
        if franchise is not None and franchise.is_active:
            return franchise
    if user.city:
        return session.scalar(
            select(Franchise)
            .where(func.lower(Franchise.city) == user.city.strip().lower(), Franchise.is_active.is_(True))
            .order_by(Franchise.created_at.asc())
            .limit(1)
        )
    return None


@dataclass(slots=True)
class FranchiseService:
    def list_franchises(self, session: Session, actor: Actor) -> list[FranchiseRead]:
        stmt = select(Franchise)
        if actor.role == Role.FRANCHISE_OWNER:
            stmt = stmt.where(Franchise.owner_id == actor.user_id)
        elif actor.role != Role.ADMIN:
            stmt = stmt.where(Franchise.is_active.is_(True))
        rows = session.scalars(stmt.order_by(Franchise.name.asc())).all()
        return [FranchiseRead.model_validate(row) for row in rows]

    def get_franchise(self, session: Session, franchise_id: uuid.UUID) -> FranchiseRead:
        return FranchiseRead.model_validate(self._get(session, franchise_id))

    def create_franchise(self, session: Session, actor: Actor, payload: FranchiseCreate) -> FranchiseRead:
        if actor.role != Role.ADMIN:
            raise ForbiddenError("only admins can create franchises")
        if payload.owner_id is not None:
            owner = session.get(User, payload.owner_id)
            if owner is None or owner.role != Role.FRANCHISE_OWNER:
                raise BadRequestError("owner must be a franchise owner")

        franchise = Franchise(name=payload.name, city=payload.city.strip(), owner_id=payload.owner_id)
        with transaction(session):
            session.add(franchise)
            session.flush()
        session.refresh(franchise)
        logger.info("franchise.created", extra={"user_id": actor.user_id})
        return FranchiseRead.model_validate(franchise)

    def assign_agent(
        self,
        session: Session,
        actor: Actor,
        franchise_id: uuid.UUID,
        payload: FranchiseAgentAssign,
        guard: AccessGuard | None = None,
    ) -> FranchiseAgentRead:
        guard = guard or get_access_guard()
        franchise = self._get(session, franchise_id)
        guard.ensure(
            guard.can_manage_franchise_agents(actor, franchise.owner_id),
            "you cannot manage agents of this franchise",
        )
        if get_active_service_agent(session, payload.agent_id) is None:
            raise BadRequestError("user is not an active service agent")

        membership = session.scalar(
            select(FranchiseAgent).where(
                FranchiseAgent.franchise_id == franchise.id,
                FranchiseAgent.agent_id == payload.agent_id,
            )
        )
        if membership is not None and membership.is_active:
            raise ConflictError("agent is already assigned to this franchise")

        try:
            with transaction(session):
                if membership is None:
                    membership = FranchiseAgent(franchise_id=franchise.id, agent_id=payload.agent_id)
                    session.add(membership)
                else:
                    membership.is_active = True
                session.flush()
        except IntegrityError as exc:
            raise ConflictError("agent is already assigned to this franchise") from exc
        session.refresh(membership)
        return FranchiseAgentRead.model_validate(membership)

    def list_agents(
        self,
        session: Session,
        actor: Actor,
        franchise_id: uuid.UUID,
        guard: AccessGuard | None = None,
    ) -> list[FranchiseAgentRead]:
        guard = guard or get_access_guard()
        franchise = self._get(session, franchise_id)
        allowed = guard.can_manage_franchise_agents(actor, franchise.owner_id) or (
            actor.role == Role.SERVICE_AGENT and is_franchise_member(session, franchise.id, actor.user_id)
        )
        guard.ensure(allowed, "you cannot view agents of this franchise")
        rows = session.scalars(
            select(FranchiseAgent)
            .where(FranchiseAgent.franchise_id == franchise.id, FranchiseAgent.is_active.is_(True))
            .order_by(FranchiseAgent.assigned_date.asc())
        ).all()
        return [FranchiseAgentRead.model_validate(row) for row in rows]

    @staticmethod
    def _get(session: Session, franchise_id: uuid.UUID) -> Franchise:
        franchise = session.get(Franchise, franchise_id)
        if franchise is None:
            raise NotFoundError("franchise")
        return franchise


franchise_service = FranchiseService()
