from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.business.payments.gateway import PaymentGateway, get_payment_gateway
from app.business.payments.schemas import PaymentLinkRead, RefreshPaymentStatusRead
from app.business.payments.service import payments_service
from app.business.service_requests.schemas import (
    AssignAgent,
    InstallationServiceRequestCreate,
    ScheduleServiceRequest,
    ServiceRequestCreate,
    ServiceRequestRead,
    ServiceRequestStatusLiteral,
    ServiceRequestTypeLiteral,
    StatusUpdate,
)
from app.business.service_requests.service import service_request_service
from app.core.auth import get_current_actor
from app.core.database import get_db
from app.core.rbac import require_roles
from app.platform.action_history.schemas import ActionHistoryEntryRead
from app.platform.security.context import Actor, Role
from app.platform.security.guard import AccessGuard, get_access_guard


router = APIRouter(prefix="/service-requests", tags=["service-requests"])


@router.get("", response_model=list[ServiceRequestRead])
def list_service_requests(
    status_filter: ServiceRequestStatusLiteral | None = Query(default=None, alias="status"),
    type_filter: ServiceRequestTypeLiteral | None = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[ServiceRequestRead]:
    return service_request_service.list_service_requests(db, actor, status=status_filter, request_type=type_filter)


@router.get("/unassigned", response_model=list[ServiceRequestRead])
def list_unassigned(
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.ADMIN, Role.FRANCHISE_OWNER, Role.SERVICE_AGENT)),
) -> list[ServiceRequestRead]:
    return service_request_service.list_unassigned(db, actor)


@router.post("", response_model=ServiceRequestRead, status_code=status.HTTP_201_CREATED)
def create_service_request(
    payload: ServiceRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.CUSTOMER)),
) -> ServiceRequestRead:
    return service_request_service.create_service_request(db, actor, payload)


@router.post("/installation", response_model=ServiceRequestRead, status_code=status.HTTP_201_CREATED)
def create_installation_service_request(
    payload: InstallationServiceRequestCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.ADMIN, Role.FRANCHISE_OWNER)),
    guard: AccessGuard = Depends(get_access_guard),
) -> ServiceRequestRead:
    return service_request_service.create_installation_service_request(db, actor, payload, guard)


@router.get("/{request_id}", response_model=ServiceRequestRead)
def get_service_request(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> ServiceRequestRead:
    return service_request_service.get_service_request(db, actor, request_id, guard)


@router.put("/{request_id}/status", response_model=ServiceRequestRead)
def update_status(
    request_id: uuid.UUID,
    payload: StatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> ServiceRequestRead:
    return service_request_service.update_status(db, actor, request_id, payload, guard)


@router.post("/{request_id}/assign", response_model=ServiceRequestRead)
def assign_service_agent(
    request_id: uuid.UUID,
    payload: AssignAgent,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.ADMIN, Role.FRANCHISE_OWNER)),
    guard: AccessGuard = Depends(get_access_guard),
) -> ServiceRequestRead:
    return service_request_service.assign_service_agent(db, actor, request_id, payload.agent_id, guard)


@router.post("/{request_id}/assign-self", response_model=ServiceRequestRead)
def assign_to_self(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_roles(Role.SERVICE_AGENT)),
    guard: AccessGuard = Depends(get_access_guard),
) -> ServiceRequestRead:
    return service_request_service.assign_to_self(db, actor, request_id, guard)


@router.post("/{request_id}/schedule", response_model=ServiceRequestRead)
def schedule_service_request(
    request_id: uuid.UUID,
    payload: ScheduleServiceRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> ServiceRequestRead:
    return service_request_service.schedule_service_request(db, actor, request_id, payload.scheduled_date, guard)


@router.get("/{request_id}/history", response_model=list[ActionHistoryEntryRead])
def get_history(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> list[ActionHistoryEntryRead]:
    return service_request_service.get_history(db, actor, request_id, guard)


@router.post("/{request_id}/payment-link", response_model=PaymentLinkRead)
def generate_payment_link(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentLinkRead:
    return service_request_service.generate_payment_link(db, actor, request_id, gateway, guard)


@router.post("/{request_id}/refresh-payment", response_model=RefreshPaymentStatusRead)
def refresh_payment_status(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> RefreshPaymentStatusRead:
    return payments_service.refresh_payment_status(db, actor, request_id, gateway, guard)
