from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.business.franchise.schemas import FranchiseAgentAssign, FranchiseAgentRead, FranchiseCreate, FranchiseRead
from app.business.franchise.service import franchise_service
from app.core.auth import get_current_actor
from app.core.database import get_db
from app.core.rbac import require_roles
from app.platform.security.context import Actor, Role
from app.platform.security.guard import AccessGuard, get_access_guard


router = APIRouter(prefix="/franchises", tags=["franchises"])


@router.get("", response_model=list[FranchiseRead])
def list_franchises(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[FranchiseRead]:
    return franchise_service.list_franchises(db, actor)


@router.post("", response_model=FranchiseRead, status_code=status.HTTP_201_CREATED)
def create_franchise(
    payload: FranchiseCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.ADMIN)),
) -> FranchiseRead:
    return franchise_service.create_franchise(db, actor, payload)


@router.get("/{franchise_id}", response_model=FranchiseRead)
def get_franchise(
    franchise_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> FranchiseRead:
    return franchise_service.get_franchise(db, franchise_id)


@router.post("/{franchise_id}/agents", response_model=FranchiseAgentRead, status_code=status.HTTP_201_CREATED)
def assign_agent(
    franchise_id: uuid.UUID,
    payload: FranchiseAgentAssign,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> FranchiseAgentRead:
    return franchise_service.assign_agent(db, actor, franchise_id, payload, guard)


@router.get("/{franchise_id}/agents", response_model=list[FranchiseAgentRead])
def list_agents(
    franchise_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> list[FranchiseAgentRead]:
    return franchise_service.list_agents(db, actor, franchise_id, guard)
