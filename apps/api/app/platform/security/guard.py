from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from app.core.errors import ForbiddenError
from app.platform.security.context import Actor, Role
from app.platform.security.errors import AuthorizationError, ViewAsSessionExpiredError
from app.platform.security.view_as import ViewAsSessionStore, get_view_as_store

if TYPE_CHECKING:
    from app.business.service_requests.models import ServiceRequest, ServiceRequestStatus


CUSTOMER_STATUS_TARGETS = {"COMPLETED", "CANCELLED"}


@dataclass(slots=True)
class AccessGuard:
    """Authorization predicates over an actor and the record it targets.

    Predicates never touch the database: callers load the franchise owner id or agent
    membership first and pass it in.
    """

    view_as_store: ViewAsSessionStore

    def resolve_actor(self, claims: Mapping[str, Any], *, correlation_id: str | None = None) -> Actor:
        subject = claims.get("sub")
        if not subject:
            raise AuthorizationError("token has no subject")
        try:
            role = Role(str(claims.get("role", "")))
        except ValueError as exc:
            raise AuthorizationError("token has an unknown role") from exc

        franchise_area_id = claims.get("franchise_area_id")
        target_id = claims.get("view_as_target_id")
        if not target_id:
            return Actor(
                user_id=str(subject),
                role=role,
                franchise_area_id=str(franchise_area_id) if franchise_area_id else None,
                correlation_id=correlation_id,
            )

        session = self.view_as_store.get(str(subject), str(target_id))
        if session is None:
            raise ViewAsSessionExpiredError(str(subject), str(target_id))
        return Actor(
            user_id=session.target_user_id,
            role=Role(session.target_role),
            franchise_area_id=session.franchise_area_id,
            original_user_id=session.original_user_id,
            original_role=Role(session.original_role),
            correlation_id=correlation_id,
        )

    @staticmethod
    def is_franchise_owner(actor: Actor, franchise_owner_id: str | None) -> bool:
        return actor.role == Role.FRANCHISE_OWNER and franchise_owner_id is not None and franchise_owner_id == actor.user_id

    def can_view_record(
        self,
        actor: Actor,
        *,
        customer_id: str | None,
        franchise_owner_id: str | None,
        assigned_to_id: str | None = None,
    ) -> bool:
        if actor.role == Role.ADMIN:
            return True
        if actor.role == Role.CUSTOMER:
            return customer_id == actor.user_id
        if actor.role == Role.SERVICE_AGENT:
            return assigned_to_id is not None and assigned_to_id == actor.user_id
        return self.is_franchise_owner(actor, franchise_owner_id)

    def can_view_service_request(
        self,
        actor: Actor,
        request: ServiceRequest,
        franchise_owner_id: str | None,
        *,
        is_franchise_member: bool = False,
    ) -> bool:
        if self.can_view_record(
            actor,
            customer_id=request.customer_id,
            franchise_owner_id=franchise_owner_id,
            assigned_to_id=request.assigned_to_id,
        ):
            return True
        # agents may look at open work in their franchise before picking it up
        return actor.role == Role.SERVICE_AGENT and request.assigned_to_id is None and is_franchise_member

    def can_update_service_request_status(
        self,
        actor: Actor,
        request: ServiceRequest,
        target: ServiceRequestStatus,
        franchise_owner_id: str | None,
    ) -> bool:
        if actor.role == Role.ADMIN:
            return True
        if actor.role == Role.FRANCHISE_OWNER:
            return self.is_franchise_owner(actor, franchise_owner_id)
        if actor.role == Role.SERVICE_AGENT:
            return request.assigned_to_id == actor.user_id
        return request.customer_id == actor.user_id and str(target) in CUSTOMER_STATUS_TARGETS

    def can_assign_agent(self, actor: Actor, franchise_owner_id: str | None) -> bool:
        return actor.role == Role.ADMIN or self.is_franchise_owner(actor, franchise_owner_id)

    def can_schedule(self, actor: Actor, request: ServiceRequest, franchise_owner_id: str | None) -> bool:
        if actor.role == Role.SERVICE_AGENT:
            return request.assigned_to_id == actor.user_id
        return self.can_assign_agent(actor, franchise_owner_id)

    def can_self_assign(self, actor: Actor, *, is_franchise_member: bool) -> bool:
        return actor.role == Role.SERVICE_AGENT and is_franchise_member

    def can_manage_installation(self, actor: Actor, franchise_owner_id: str | None) -> bool:
        return actor.role == Role.ADMIN or self.is_franchise_owner(actor, franchise_owner_id)

    def can_collect_payment(self, actor: Actor, request: ServiceRequest, franchise_owner_id: str | None) -> bool:
        if actor.role == Role.SERVICE_AGENT:
            return request.assigned_to_id == actor.user_id
        return self.can_manage_installation(actor, franchise_owner_id)

    def can_manage_franchise_agents(self, actor: Actor, franchise_owner_id: str | None) -> bool:
        return actor.role == Role.ADMIN or self.is_franchise_owner(actor, franchise_owner_id)

    def can_view_as_franchise_owner(self, actor: Actor) -> bool:
        return actor.real_role == Role.ADMIN and not actor.is_viewing_as

    def can_view_as_agent(self, actor: Actor, franchise_owner_id: str | None) -> bool:
        if actor.is_viewing_as:
            return False
        return actor.role == Role.ADMIN or self.is_franchise_owner(actor, franchise_owner_id)

    @staticmethod
    def ensure(allowed: bool, detail: str = "forbidden") -> None:
        if not allowed:
            raise ForbiddenError(detail)


def get_access_guard() -> AccessGuard:
    return AccessGuard(view_as_store=get_view_as_store())
