from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app import events
from app.business.catalog.models import Product
from app.business.franchise.service import franchise_owner_id, resolve_franchise_for_customer
from app.business.installation.models import InstallationRequest, InstallationRequestStatus, OrderType
from app.business.installation.repository import InstallationRequestRepository
from app.business.installation.schemas import InstallationRequestCreate, InstallationRequestRead
from app.business.users.models import User
from app.core.database import transaction
from app.core.errors import BadRequestError, ForbiddenError, NotFoundError
from app.platform.action_history.models import ActionType, EntityType
from app.platform.action_history.service import log_actor_action
from app.platform.security.context import Actor, Role
from app.platform.security.guard import AccessGuard, get_access_guard


logger = logging.getLogger("app.installation")


@dataclass(slots=True)
class InstallationRequestService:
    repository: InstallationRequestRepository = InstallationRequestRepository()

    def create_installation_request(
        self,
        session: Session,
        actor: Actor,
        payload: InstallationRequestCreate,
    ) -> InstallationRequestRead:
        if actor.role != Role.CUSTOMER:
            raise ForbiddenError("only customers can request installations")

        product = session.get(Product, payload.product_id)
        if product is None or not product.is_active:
            raise NotFoundError("product")
        if payload.order_type == OrderType.RENTAL and not product.is_rentable:
            raise BadRequestError("product is not available for rent")
        if payload.order_type == OrderType.PURCHASE and not product.is_purchasable:
            raise BadRequestError("product is not available for purchase")

        franchise = resolve_franchise_for_customer(session, session.get(User, actor.user_id))
        if franchise is None:
            raise BadRequestError("no franchise serves your area")

        installation = InstallationRequest(
            customer_id=actor.user_id,
            product_id=product.id,
            franchise_id=franchise.id,
            name=payload.name,
            phone=payload.phone,
            installation_address=payload.installation_address,
            order_type=payload.order_type,
            status=InstallationRequestStatus.SUBMITTED,
        )
        with transaction(session):
            session.add(installation)
            session.flush()
            log_actor_action(
                session,
                actor,
                ActionType.INSTALLATION_REQUEST_CREATED,
                entity_type=EntityType.INSTALLATION_REQUEST,
                installation_request_id=installation.id,
                to_status=InstallationRequestStatus.SUBMITTED,
                comment="installation requested",
                metadata={"orderType": payload.order_type, "franchiseId": str(franchise.id)},
            )
        session.refresh(installation)

        logger.info(
            "installation.created",
            extra={"installation_request_id": str(installation.id), "user_id": actor.user_id},
        )
        events.publish(
            {
                "event_type": "installation_request.created",
                "installation_request_id": str(installation.id),
                "franchise_id": str(franchise.id),
            }
        )
        return InstallationRequestRead.model_validate(installation)

    def list_installation_requests(
        self,
        session: Session,
        actor: Actor,
        *,
        status: str | None = None,
    ) -> list[InstallationRequestRead]:
        stmt = self.repository.apply_scope_query(select(InstallationRequest), actor)
        if status is not None:
            stmt = stmt.where(InstallationRequest.status == status)
        rows = session.scalars(stmt.order_by(InstallationRequest.created_at.desc())).all()
        return [InstallationRequestRead.model_validate(row) for row in rows]

    def get_installation_request(
        self,
        session: Session,
        actor: Actor,
        installation_id: uuid.UUID,
        guard: AccessGuard | None = None,
    ) -> InstallationRequestRead:
        guard = guard or get_access_guard()
        installation = session.get(InstallationRequest, installation_id)
        if installation is None:
            raise NotFoundError("installation request")
        if not guard.can_view_record(
            actor,
            customer_id=installation.customer_id,
            franchise_owner_id=franchise_owner_id(session, installation.franchise_id),
            assigned_to_id=installation.assigned_technician_id,
        ):
            raise ForbiddenError("you do not have access to this installation request")
        return InstallationRequestRead.model_validate(installation)


installation_request_service = InstallationRequestService()
