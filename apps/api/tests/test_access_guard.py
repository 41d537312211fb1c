from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.business.service_requests.models import ServiceRequest, ServiceRequestStatus, ServiceRequestType
from app.platform.security.context import Actor, Role
from app.platform.security.errors import AuthorizationError, ViewAsSessionExpiredError
from app.platform.security.guard import AccessGuard
from app.platform.security.view_as import InMemoryViewAsSessionStore, ViewAsSession


NOW = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self) -> None:
        self.now = NOW

    def __call__(self) -> datetime:
        return self.now


def _request(**overrides) -> ServiceRequest:
    values = {
        "id": uuid.uuid4(),
        "customer_id": "customer-1",
        "product_id": uuid.uuid4(),
        "franchise_id": uuid.uuid4(),
        "type": ServiceRequestType.GENERAL,
        "description": "leak",
        "status": ServiceRequestStatus.IN_PROGRESS,
        "assigned_to_id": "agent-1",
    }
    values.update(overrides)
    return ServiceRequest(**values)


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def guard(clock: Clock) -> AccessGuard:
    return AccessGuard(view_as_store=InMemoryViewAsSessionStore(clock=clock))


def test_plain_claims_resolve_to_caller(guard: AccessGuard) -> None:
    actor = guard.resolve_actor({"sub": "owner-1", "role": "franchise_owner"}, correlation_id="corr-1")

    assert actor.user_id == "owner-1"
    assert actor.role == Role.FRANCHISE_OWNER
    assert actor.correlation_id == "corr-1"
    assert not actor.is_viewing_as


@pytest.mark.parametrize("claims", [{"role": "admin"}, {"sub": "u-1", "role": "superuser"}])
def test_bad_claims_are_rejected(guard: AccessGuard, claims: dict[str, str]) -> None:
    with pytest.raises(AuthorizationError):
        guard.resolve_actor(claims)


def test_view_as_claims_resolve_to_target(guard: AccessGuard, clock: Clock) -> None:
    guard.view_as_store.put(
        ViewAsSession(
            original_user_id="admin-1",
            original_role="admin",
            target_user_id="owner-1",
            target_role="franchise_owner",
            franchise_area_id="fr-1",
            created_at=NOW,
            expires_at=NOW + timedelta(hours=2),
        )
    )

    actor = guard.resolve_actor({"sub": "admin-1", "role": "admin", "view_as_target_id": "owner-1"})

    assert actor.user_id == "owner-1"
    assert actor.role == Role.FRANCHISE_OWNER
    assert actor.real_user_id == "admin-1"
    assert actor.real_role == Role.ADMIN
    assert actor.franchise_area_id == "fr-1"

    clock.now = NOW + timedelta(hours=2)
    with pytest.raises(ViewAsSessionExpiredError):
        guard.resolve_actor({"sub": "admin-1", "role": "admin", "view_as_target_id": "owner-1"})


def test_view_as_claims_without_session_are_rejected(guard: AccessGuard) -> None:
    with pytest.raises(ViewAsSessionExpiredError) as exc_info:
        guard.resolve_actor({"sub": "admin-1", "role": "admin", "view_as_target_id": "owner-1"})

    assert exc_info.value.target_user_id == "owner-1"


def test_status_update_permissions(guard: AccessGuard) -> None:
    request = _request()

    assert guard.can_update_service_request_status(Actor("admin-1", Role.ADMIN), request, ServiceRequestStatus.CANCELLED, None)
    assert guard.can_update_service_request_status(
        Actor("owner-1", Role.FRANCHISE_OWNER), request, ServiceRequestStatus.COMPLETED, "owner-1"
    )
    assert not guard.can_update_service_request_status(
        Actor("owner-2", Role.FRANCHISE_OWNER), request, ServiceRequestStatus.COMPLETED, "owner-1"
    )
    assert guard.can_update_service_request_status(
        Actor("agent-1", Role.SERVICE_AGENT), request, ServiceRequestStatus.PAYMENT_PENDING, "owner-1"
    )
    assert not guard.can_update_service_request_status(
        Actor("agent-2", Role.SERVICE_AGENT), request, ServiceRequestStatus.PAYMENT_PENDING, "owner-1"
    )
    assert guard.can_update_service_request_status(
        Actor("customer-1", Role.CUSTOMER), request, ServiceRequestStatus.CANCELLED, "owner-1"
    )
    assert not guard.can_update_service_request_status(
        Actor("customer-1", Role.CUSTOMER), request, ServiceRequestStatus.IN_PROGRESS, "owner-1"
    )


def test_company_managed_franchise_has_no_owner_access(guard: AccessGuard) -> None:
    owner = Actor("owner-1", Role.FRANCHISE_OWNER)

    assert not guard.can_assign_agent(owner, None)
    assert not guard.can_manage_installation(owner, None)
    assert guard.can_assign_agent(Actor("admin-1", Role.ADMIN), None)


def test_unassigned_request_visible_to_franchise_members_only(guard: AccessGuard) -> None:
    request = _request(assigned_to_id=None, status=ServiceRequestStatus.CREATED)
    agent = Actor("agent-1", Role.SERVICE_AGENT)

    assert guard.can_view_service_request(agent, request, "owner-1", is_franchise_member=True)
    assert not guard.can_view_service_request(agent, request, "owner-1", is_franchise_member=False)
    assert not guard.can_view_service_request(Actor("customer-2", Role.CUSTOMER), request, "owner-1")


def test_view_as_permissions(guard: AccessGuard) -> None:
    admin = Actor("admin-1", Role.ADMIN)
    owner = Actor("owner-1", Role.FRANCHISE_OWNER)
    viewing = Actor("owner-1", Role.FRANCHISE_OWNER, original_user_id="admin-1", original_role=Role.ADMIN)

    assert guard.can_view_as_franchise_owner(admin)
    assert not guard.can_view_as_franchise_owner(owner)
    assert not guard.can_view_as_franchise_owner(viewing)
    assert guard.can_view_as_agent(owner, "owner-1")
    assert not guard.can_view_as_agent(owner, "owner-2")
    assert not guard.can_view_as_agent(viewing, "owner-1")


def test_self_assign_and_payment_collection(guard: AccessGuard) -> None:
    agent = Actor("agent-1", Role.SERVICE_AGENT)
    request = _request()

    assert guard.can_self_assign(agent, is_franchise_member=True)
    assert not guard.can_self_assign(Actor("owner-1", Role.FRANCHISE_OWNER), is_franchise_member=True)
    assert guard.can_collect_payment(agent, request, "owner-1")
    assert not guard.can_collect_payment(Actor("customer-1", Role.CUSTOMER), request, "owner-1")
