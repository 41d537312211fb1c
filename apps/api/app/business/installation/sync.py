"""Cascade service-request status onto the linked installation request.

Everything here runs on the caller's session inside the caller's transaction. Nothing in
this module commits.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.business.installation.models import InstallationRequest, InstallationRequestStatus
from app.business.payments.models import Payment, PaymentStatus
from app.business.service_requests.models import ServiceRequest, ServiceRequestStatus
from app.business.subscription.models import Subscription
from app.business.subscription.service import subscription_service
from app.platform.action_history.models import ActionType, EntityType
from app.platform.action_history.service import log_actor_action
from app.platform.security.context import Actor


logger = logging.getLogger("app.installation.sync")


INSTALLATION_STATUS_FOR: dict[ServiceRequestStatus, tuple[InstallationRequestStatus, ActionType]] = {
    ServiceRequestStatus.SCHEDULED: (
        InstallationRequestStatus.INSTALLATION_SCHEDULED,
        ActionType.INSTALLATION_REQUEST_SCHEDULED,
    ),
    ServiceRequestStatus.IN_PROGRESS: (
        InstallationRequestStatus.INSTALLATION_IN_PROGRESS,
        ActionType.INSTALLATION_REQUEST_IN_PROGRESS,
    ),
    ServiceRequestStatus.PAYMENT_PENDING: (
        InstallationRequestStatus.PAYMENT_PENDING,
        ActionType.INSTALLATION_REQUEST_PAYMENT_PENDING,
    ),
    ServiceRequestStatus.COMPLETED: (
        InstallationRequestStatus.INSTALLATION_COMPLETED,
        ActionType.INSTALLATION_REQUEST_COMPLETED,
    ),
    ServiceRequestStatus.CANCELLED: (
        InstallationRequestStatus.CANCELLED,
        ActionType.INSTALLATION_REQUEST_CANCELLED,
    ),
}


@dataclass(slots=True)
class SyncResult:
    from_status: str
    to_status: InstallationRequestStatus
    subscription: Subscription | None = None
    subscription_created: bool = False


def completed_installation_payment(session: Session, installation_id: uuid.UUID) -> Payment | None:
    return session.scalar(
        select(Payment)
        .where(
            Payment.installation_request_id == installation_id,
            Payment.status == PaymentStatus.COMPLETED,
        )
        .order_by(Payment.paid_date.desc(), Payment.created_at.desc())
        .limit(1)
    )


def sync_installation_status(
    session: Session,
    actor: Actor,
    installation: InstallationRequest,
    service_request: ServiceRequest,
    status: ServiceRequestStatus,
) -> SyncResult | None:
    """Mirror ``status`` onto ``installation`` and record it; unmapped statuses are a no-op."""
    mapping = INSTALLATION_STATUS_FOR.get(status)
    if mapping is None:
        return None

    target, action_type = mapping
    previous = installation.status
    installation.status = target
    result = SyncResult(from_status=previous, to_status=target)

    if status == ServiceRequestStatus.SCHEDULED:
        installation.assigned_technician_id = service_request.assigned_to_id
        installation.scheduled_date = service_request.scheduled_date
    elif status == ServiceRequestStatus.IN_PROGRESS:
        installation.assigned_technician_id = service_request.assigned_to_id
    elif status == ServiceRequestStatus.CANCELLED:
        installation.razorpay_payment_link = None
        installation.razorpay_subscription_id = None
    elif status == ServiceRequestStatus.COMPLETED:
        installation.completed_date = service_request.completed_date or datetime.now(timezone.utc)
        payment = completed_installation_payment(session, installation.id)
        if payment is not None:
            subscription, created = subscription_service.ensure_subscription(session, actor, installation, payment=payment)
            service_request.subscription_id = service_request.subscription_id or subscription.id
            result.subscription = subscription
            result.subscription_created = created

    session.flush()
    log_actor_action(
        session,
        actor,
        action_type,
        entity_type=EntityType.INSTALLATION_REQUEST,
        installation_request_id=installation.id,
        service_request_id=service_request.id,
        from_status=previous,
        to_status=target,
        comment=f"installation status synced from service request {status}",
        metadata={"serviceRequestStatus": str(status)},
    )
    logger.info(
        "installation.synced",
        extra={
            "installation_request_id": str(installation.id),
            "service_request_id": str(service_request.id),
            "from_status": previous,
            "to_status": str(target),
        },
    )
    return result
