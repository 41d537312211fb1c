from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.business.installation.schemas import (
    InstallationRequestCreate,
    InstallationRequestRead,
    InstallationRequestStatusLiteral,
)
from app.business.installation.service import installation_request_service
from app.core.auth import get_current_actor
from app.core.database import get_db
from app.core.rbac import require_roles
from app.platform.security.context import Actor, Role
from app.platform.security.guard import AccessGuard, get_access_guard


router = APIRouter(prefix="/installation-requests", tags=["installation-requests"])


@router.post("", response_model=InstallationRequestRead, status_code=status.HTTP_201_CREATED)
def create_installation_request(
    payload: InstallationRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.CUSTOMER)),
) -> InstallationRequestRead:
    return installation_request_service.create_installation_request(db, actor, payload)


@router.get("", response_model=list[InstallationRequestRead])
def list_installation_requests(
    status_filter: InstallationRequestStatusLiteral | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[InstallationRequestRead]:
    return installation_request_service.list_installation_requests(db, actor, status=status_filter)


@router.get("/{installation_id}", response_model=InstallationRequestRead)
def get_installation_request(
    installation_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> InstallationRequestRead:
    return installation_request_service.get_installation_request(db, actor, installation_id, guard)
