from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.auth import get_current_actor
from app.core.database import get_db
from app.platform.security.context import Actor
from app.platform.security.guard import AccessGuard, get_access_guard
from app.platform.view_as.schemas import (
    ViewAsAgentRequest,
    ViewAsExitRead,
    ViewAsFranchiseOwnerRequest,
    ViewAsTokenRead,
)
from app.platform.view_as.service import view_as_service


router = APIRouter(prefix="/view-as", tags=["view-as"])


@router.post("/franchise-owner", response_model=ViewAsTokenRead)
def view_as_franchise_owner(
    payload: ViewAsFranchiseOwnerRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> ViewAsTokenRead:
    return view_as_service.start_franchise_owner(db, actor, payload.franchise_id, guard)


@router.post("/agent", response_model=ViewAsTokenRead)
def view_as_agent(
    payload: ViewAsAgentRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> ViewAsTokenRead:
    return view_as_service.start_agent(db, actor, payload.franchise_id, payload.agent_id, guard)


@router.post("/exit", response_model=ViewAsExitRead)
def exit_view_as(
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> ViewAsExitRead:
    return view_as_service.exit(actor, guard)
