from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app import events
from app.business.catalog.models import Product
from app.business.franchise.service import (
    franchise_owner_id,
    get_active_service_agent,
    is_franchise_member,
    resolve_franchise_for_customer,
)
from app.business.installation.models import InstallationRequest, InstallationRequestStatus
from app.business.installation.sync import completed_installation_payment, sync_installation_status
from app.business.payments.gateway import PaymentGateway, PaymentGatewayError
from app.business.payments.models import Payment, PaymentStatus, PaymentType
from app.business.payments.schemas import PaymentLinkRead, PaymentStatusSummary
from app.business.service_requests.models import ServiceRequest, ServiceRequestStatus, ServiceRequestType
from app.business.service_requests.repository import ServiceRequestRepository
from app.business.service_requests.schemas import (
    InstallationServiceRequestCreate,
    ServiceRequestCreate,
    ServiceRequestRead,
    StatusUpdate,
)
from app.business.service_requests.state_machine import (
    ACTION_TYPE_FOR_STATUS,
    TransitionFacts,
    TransitionPlan,
    assert_transition,
    dump_images,
    plan_transition,
)
from app.business.subscription.models import Subscription
from app.business.users.models import User
from app.core.config import get_settings
from app.core.database import transaction
from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.metrics import (
    observe_installation_sync,
    observe_subscription_created,
    observe_transition,
    observe_transition_rejected,
)
from app.platform.action_history.models import ActionType, EntityType
from app.platform.action_history.schemas import ActionHistoryEntryRead
from app.platform.action_history.service import list_history, log_actor_action
from app.platform.notifications.service import ServiceRequestNotifier, service_request_notifier
from app.platform.security.context import Actor, Role
from app.platform.security.guard import AccessGuard, get_access_guard
from app.platform.security.repository import agent_franchise_ids, owned_franchise_ids


logger = logging.getLogger("app.service_requests")

CLOSED_INSTALLATION_STATUSES = {
    InstallationRequestStatus.INSTALLATION_COMPLETED,
    InstallationRequestStatus.CANCELLED,
    InstallationRequestStatus.REJECTED,
}
PAYMENT_LINK_STATUSES = {ServiceRequestStatus.IN_PROGRESS, ServiceRequestStatus.PAYMENT_PENDING}

_NOTIFICATION_ACTION = {
    ServiceRequestStatus.ASSIGNED: "assigned",
    ServiceRequestStatus.SCHEDULED: "scheduled",
    ServiceRequestStatus.COMPLETED: "completed",
}


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


@dataclass(slots=True)
class ServiceRequestService:
    repository: ServiceRequestRepository = ServiceRequestRepository()
    notifier: ServiceRequestNotifier = service_request_notifier

    def list_service_requests(
        self,
        session: Session,
        actor: Actor,
        *,
        status: str | None = None,
        request_type: str | None = None,
    ) -> list[ServiceRequestRead]:
        stmt = self.repository.apply_scope_query(select(ServiceRequest), actor)
        if status is not None:
            stmt = stmt.where(ServiceRequest.status == status)
        if request_type is not None:
            stmt = stmt.where(ServiceRequest.type == request_type)
        rows = session.scalars(stmt.order_by(ServiceRequest.created_at.desc())).all()
        return [ServiceRequestRead.model_validate(row) for row in rows]

    def list_unassigned(self, session: Session, actor: Actor) -> list[ServiceRequestRead]:
        stmt = select(ServiceRequest).where(
            ServiceRequest.assigned_to_id.is_(None),
            ServiceRequest.type != ServiceRequestType.INSTALLATION,
            ServiceRequest.status.in_([ServiceRequestStatus.CREATED, ServiceRequestStatus.ASSIGNED]),
        )
        if actor.role == Role.SERVICE_AGENT:
            stmt = stmt.where(ServiceRequest.franchise_id.in_(agent_franchise_ids(actor.user_id)))
        elif actor.role == Role.FRANCHISE_OWNER:
            stmt = stmt.where(ServiceRequest.franchise_id.in_(owned_franchise_ids(actor.user_id)))
        elif actor.role != Role.ADMIN:
            raise ForbiddenError("only staff can list unassigned service requests")
        rows = session.scalars(stmt.order_by(ServiceRequest.created_at.asc())).all()
        return [ServiceRequestRead.model_validate(row) for row in rows]

    def get_service_request(
        self,
        session: Session,
        actor: Actor,
        request_id: uuid.UUID,
        guard: AccessGuard | None = None,
    ) -> ServiceRequestRead:
        request = self._get_visible(session, actor, request_id, guard or get_access_guard())
        return self._read(session, request)

    def get_history(
        self,
        session: Session,
        actor: Actor,
        request_id: uuid.UUID,
        guard: AccessGuard | None = None,
    ) -> list[ActionHistoryEntryRead]:
        request = self._get_visible(session, actor, request_id, guard or get_access_guard())
        return list_history(session, service_request_id=request.id)

    def create_service_request(self, session: Session, actor: Actor, payload: ServiceRequestCreate) -> ServiceRequestRead:
        if actor.role != Role.CUSTOMER:
            raise ForbiddenError("only customers can raise service requests")
        if payload.type == ServiceRequestType.INSTALLATION:
            raise BadRequestError("installation service requests are created from installation requests")

        product = session.get(Product, payload.product_id)
        if product is None or not product.is_active:
            raise NotFoundError("product")

        # franchise comes from exactly one source: subscription, installation, or the customer
        if payload.subscription_id is not None:
            subscription = session.get(Subscription, payload.subscription_id)
            if subscription is None or subscription.customer_id != actor.user_id:
                raise NotFoundError("subscription")
            franchise_id = subscription.franchise_id
            installation_request_id = None
        elif payload.installation_request_id is not None:
            installation = session.get(InstallationRequest, payload.installation_request_id)
            if installation is None or installation.customer_id != actor.user_id:
                raise NotFoundError("installation request")
            franchise_id = installation.franchise_id
            installation_request_id = installation.id
        else:
            franchise = resolve_franchise_for_customer(session, session.get(User, actor.user_id))
            if franchise is None:
                raise BadRequestError("no franchise serves your area")
            franchise_id = franchise.id
            installation_request_id = None

        request = ServiceRequest(
            customer_id=actor.user_id,
            product_id=product.id,
            subscription_id=payload.subscription_id,
            installation_request_id=installation_request_id,
            type=payload.type,
            description=payload.description,
            images=dump_images(payload.images),
            status=ServiceRequestStatus.CREATED,
            franchise_id=franchise_id,
            requires_payment=payload.requires_payment,
        )
        with transaction(session):
            session.add(request)
            session.flush()
            log_actor_action(
                session,
                actor,
                ActionType.SERVICE_REQUEST_CREATED,
                entity_type=EntityType.SERVICE_REQUEST,
                service_request_id=request.id,
                subscription_id=request.subscription_id,
                installation_request_id=request.installation_request_id,
                to_status=ServiceRequestStatus.CREATED,
                comment="service request created",
                metadata={"type": payload.type},
            )
        session.refresh(request)

        self._after_commit(session, actor, request, None, ServiceRequestStatus.CREATED, "service_request.created")
        self.notifier.notify(session, request, "created", actor)
        return self._read(session, request)

    def create_installation_service_request(
        self,
        session: Session,
        actor: Actor,
        payload: InstallationServiceRequestCreate,
        guard: AccessGuard | None = None,
    ) -> ServiceRequestRead:
        guard = guard or get_access_guard()
        installation = session.get(InstallationRequest, payload.installation_request_id)
        if installation is None:
            raise NotFoundError("installation request")
        guard.ensure(
            guard.can_manage_installation(actor, franchise_owner_id(session, installation.franchise_id)),
            "you cannot manage this installation request",
        )
        if installation.status in CLOSED_INSTALLATION_STATUSES:
            raise BadRequestError(f"installation request is {installation.status}")

        existing = session.scalar(
            select(ServiceRequest.id).where(
                ServiceRequest.installation_request_id == installation.id,
                ServiceRequest.type == ServiceRequestType.INSTALLATION,
            )
        )
        if existing is not None:
            raise ConflictError("an installation service request already exists for this installation")
        if payload.agent_id and get_active_service_agent(session, payload.agent_id) is None:
            raise BadRequestError("assigned user is not an active service agent")

        if payload.agent_id and payload.scheduled_date is not None:
            initial_status = ServiceRequestStatus.SCHEDULED
        elif payload.agent_id:
            initial_status = ServiceRequestStatus.ASSIGNED
        else:
            initial_status = ServiceRequestStatus.CREATED

        product = session.get(Product, installation.product_id)
        description = payload.description or f"Installation of {product.name if product else 'product'} for {installation.name}"
        request = ServiceRequest(
            customer_id=installation.customer_id,
            product_id=installation.product_id,
            installation_request_id=installation.id,
            type=ServiceRequestType.INSTALLATION,
            description=description,
            status=initial_status,
            assigned_to_id=payload.agent_id,
            franchise_id=installation.franchise_id,
            scheduled_date=payload.scheduled_date if initial_status == ServiceRequestStatus.SCHEDULED else None,
            requires_payment=True,
        )
        with transaction(session):
            session.add(request)
            session.flush()
            sync = sync_installation_status(session, actor, installation, request, initial_status)
            log_actor_action(
                session,
                actor,
                ActionType.SERVICE_REQUEST_CREATED,
                entity_type=EntityType.SERVICE_REQUEST,
                service_request_id=request.id,
                installation_request_id=installation.id,
                to_status=initial_status,
                comment="installation service request created",
                metadata={"agentId": payload.agent_id, "type": ServiceRequestType.INSTALLATION.value},
            )
        session.refresh(request)

        if sync is not None:
            observe_installation_sync(sync.to_status)
        self._after_commit(session, actor, request, None, initial_status, "service_request.created")
        self.notifier.notify(session, request, "created", actor)
        if payload.agent_id:
            self.notifier.notify(session, request, "assigned", actor)
        return self._read(session, request)

    def update_status(
        self,
        session: Session,
        actor: Actor,
        request_id: uuid.UUID,
        payload: StatusUpdate,
        guard: AccessGuard | None = None,
    ) -> ServiceRequestRead:
        guard = guard or get_access_guard()
        request = self._get(session, request_id)
        target = ServiceRequestStatus(payload.status)
        owner_id = franchise_owner_id(session, request.franchise_id)
        guard.ensure(
            guard.can_update_service_request_status(actor, request, target, owner_id),
            "you cannot update this service request",
        )

        installation = self._installation(session, request)
        facts = TransitionFacts(
            agent_is_valid=get_active_service_agent(session, payload.agent_id) is not None,
            installation_payment_completed=(
                installation is not None and completed_installation_payment(session, installation.id) is not None
            ),
            installation_status=installation.status if installation is not None else None,
        )
        plan = self._plan(
            request,
            target,
            agent_id=payload.agent_id,
            scheduled_date=payload.scheduled_date,
            before_images=payload.before_images,
            after_images=payload.after_images,
            facts=facts,
        )
        return self._apply(session, actor, request, installation, plan, payload.comment)

    def assign_service_agent(
        self,
        session: Session,
        actor: Actor,
        request_id: uuid.UUID,
        agent_id: str,
        guard: AccessGuard | None = None,
    ) -> ServiceRequestRead:
        guard = guard or get_access_guard()
        request = self._get(session, request_id)
        guard.ensure(
            guard.can_assign_agent(actor, franchise_owner_id(session, request.franchise_id)),
            "you cannot assign agents to this service request",
        )
        if request.assigned_to_id == agent_id:
            raise BadRequestError("service request is already assigned to this agent")
        if get_active_service_agent(session, agent_id) is None:
            raise BadRequestError("assigned user is not an active service agent")
        return self._assign(session, actor, request, agent_id, "agent assigned")

    def assign_to_self(
        self,
        session: Session,
        actor: Actor,
        request_id: uuid.UUID,
        guard: AccessGuard | None = None,
    ) -> ServiceRequestRead:
        guard = guard or get_access_guard()
        request = self._get(session, request_id)
        guard.ensure(
            guard.can_self_assign(actor, is_franchise_member=is_franchise_member(session, request.franchise_id, actor.user_id)),
            "you can only pick up service requests in your franchise",
        )
        if request.assigned_to_id is not None:
            raise BadRequestError("service request is already assigned")
        if get_active_service_agent(session, actor.user_id) is None:
            raise BadRequestError("assigned user is not an active service agent")
        return self._assign(session, actor, request, actor.user_id, "agent picked up the service request")

    def schedule_service_request(
        self,
        session: Session,
        actor: Actor,
        request_id: uuid.UUID,
        scheduled_date: datetime,
        guard: AccessGuard | None = None,
    ) -> ServiceRequestRead:
        guard = guard or get_access_guard()
        request = self._get(session, request_id)
        guard.ensure(
            guard.can_schedule(actor, request, franchise_owner_id(session, request.franchise_id)),
            "you cannot schedule this service request",
        )
        if _as_utc(scheduled_date) <= datetime.now(timezone.utc):
            raise BadRequestError("scheduled date must be in the future")

        installation = self._installation(session, request)
        if request.status != ServiceRequestStatus.SCHEDULED:
            plan = self._plan(
                request,
                ServiceRequestStatus.SCHEDULED,
                agent_id=None,
                scheduled_date=scheduled_date,
                before_images=[],
                after_images=[],
                facts=TransitionFacts(installation_status=installation.status if installation is not None else None),
            )
            return self._apply(session, actor, request, installation, plan, "service request scheduled")

        previous_date = request.scheduled_date
        with transaction(session):
            request.scheduled_date = scheduled_date
            if installation is not None:
                installation.scheduled_date = scheduled_date
            session.flush()
            log_actor_action(
                session,
                actor,
                ActionType.SERVICE_REQUEST_RESCHEDULED,
                entity_type=EntityType.SERVICE_REQUEST,
                service_request_id=request.id,
                installation_request_id=request.installation_request_id,
                subscription_id=request.subscription_id,
                from_status=request.status,
                to_status=request.status,
                comment="service request rescheduled",
                metadata={
                    "previousDate": previous_date.isoformat() if previous_date else None,
                    "scheduledDate": scheduled_date.isoformat(),
                },
            )
        session.refresh(request)
        events.publish(
            {
                "event_type": "service_request.rescheduled",
                "service_request_id": str(request.id),
                "scheduled_date": scheduled_date.isoformat(),
                "actor_id": actor.user_id,
            }
        )
        self.notifier.notify(session, request, "scheduled", actor)
        return self._read(session, request)

    def generate_payment_link(
        self,
        session: Session,
        actor: Actor,
        request_id: uuid.UUID,
        gateway: PaymentGateway,
        guard: AccessGuard | None = None,
    ) -> PaymentLinkRead:
        guard = guard or get_access_guard()
        request = self._get(session, request_id)
        guard.ensure(
            guard.can_collect_payment(actor, request, franchise_owner_id(session, request.franchise_id)),
            "you cannot collect payment for this service request",
        )
        installation = self._installation(session, request)
        if installation is None:
            raise BadRequestError("payment links are only available for installation service requests")
        if request.status not in PAYMENT_LINK_STATUSES:
            raise BadRequestError(f"cannot generate a payment link while the service request is {request.status}")

        product = session.get(Product, installation.product_id)
        if product is None:
            raise NotFoundError("product")
        amount = Decimal(product.rent_price or 0) + Decimal(product.deposit or 0)

        if installation.razorpay_payment_link and installation.razorpay_subscription_id:
            return PaymentLinkRead(
                payment_link=installation.razorpay_payment_link,
                razorpay_subscription_id=installation.razorpay_subscription_id,
                amount=amount,
                reused=True,
            )
        if not product.razorpay_plan_id:
            raise BadRequestError("product has no payment plan configured")

        try:
            gateway_subscription = gateway.create_subscription(
                product.razorpay_plan_id,
                get_settings().subscription_total_count,
                {
                    "installationRequestId": str(installation.id),
                    "serviceRequestId": str(request.id),
                    "customerId": installation.customer_id,
                },
            )
        except PaymentGatewayError as exc:
            logger.exception("payment.link_failed", extra={"service_request_id": str(request.id), "error": str(exc)})
            raise BadRequestError("failed to create payment link") from exc

        gateway_id = gateway_subscription.get("id")
        short_url = gateway_subscription.get("short_url")
        if not gateway_id or not short_url:
            raise BadRequestError("failed to create payment link")

        with transaction(session):
            installation.razorpay_subscription_id = gateway_id
            installation.razorpay_payment_link = short_url
            payment = Payment(
                installation_request_id=installation.id,
                service_request_id=request.id,
                customer_id=installation.customer_id,
                franchise_id=installation.franchise_id,
                amount=amount,
                type=PaymentType.DEPOSIT,
                status=PaymentStatus.PENDING,
                razorpay_subscription_id=gateway_id,
            )
            session.add(payment)
            session.flush()
            log_actor_action(
                session,
                actor,
                ActionType.PAYMENT_LINK_GENERATED,
                entity_type=EntityType.PAYMENT,
                payment_id=payment.id,
                service_request_id=request.id,
                installation_request_id=installation.id,
                to_status=PaymentStatus.PENDING,
                comment="payment link generated",
                metadata={"razorpaySubscriptionId": gateway_id, "amount": str(amount)},
            )

        logger.info("payment.link_generated", extra={"service_request_id": str(request.id), "payment_id": str(payment.id)})
        events.publish(
            {
                "event_type": "payment.link_generated",
                "service_request_id": str(request.id),
                "installation_request_id": str(installation.id),
                "razorpay_subscription_id": gateway_id,
            }
        )
        return PaymentLinkRead(payment_link=short_url, razorpay_subscription_id=gateway_id, amount=amount)

    def payment_status(self, session: Session, request: ServiceRequest) -> PaymentStatusSummary | None:
        if request.installation_request_id is not None:
            condition = Payment.installation_request_id == request.installation_request_id
        else:
            condition = Payment.service_request_id == request.id
        payments = session.scalars(select(Payment).where(condition).order_by(Payment.created_at.desc())).all()
        payment = next((item for item in payments if item.status == PaymentStatus.COMPLETED), None)
        if payment is None and payments:
            payment = payments[0]

        installation = self._installation(session, request)
        link = installation.razorpay_payment_link if installation is not None else None
        gateway_id = installation.razorpay_subscription_id if installation is not None else None
        if payment is None:
            if link is None:
                return None
            return PaymentStatusSummary(
                status=PaymentStatus.PENDING,
                razorpay_payment_link=link,
                razorpay_subscription_id=gateway_id,
            )
        return PaymentStatusSummary(
            status=payment.status,
            amount=payment.amount,
            method=payment.payment_method,
            paid_date=payment.paid_date,
            razorpay_payment_link=link,
            razorpay_subscription_id=payment.razorpay_subscription_id or gateway_id,
        )

    def _assign(self, session: Session, actor: Actor, request: ServiceRequest, agent_id: str, comment: str) -> ServiceRequestRead:
        installation = self._installation(session, request)
        plan = self._plan(
            request,
            ServiceRequestStatus.ASSIGNED,
            agent_id=agent_id,
            scheduled_date=None,
            before_images=[],
            after_images=[],
            facts=TransitionFacts(
                agent_is_valid=True,
                installation_status=installation.status if installation is not None else None,
            ),
        )
        return self._apply(session, actor, request, installation, plan, comment)

    @staticmethod
    def _plan(request: ServiceRequest, target: ServiceRequestStatus, **kwargs) -> TransitionPlan:
        try:
            assert_transition(request.status, target)
        except BadRequestError:
            observe_transition_rejected("invalid_transition")
            raise
        try:
            return plan_transition(request, target, **kwargs)
        except BadRequestError as exc:
            observe_transition_rejected("precondition")
            logger.info(
                "service_request.transition_rejected",
                extra={
                    "service_request_id": str(request.id),
                    "from_status": request.status,
                    "to_status": str(target),
                    "error": exc.detail,
                },
            )
            raise

    def _apply(
        self,
        session: Session,
        actor: Actor,
        request: ServiceRequest,
        installation: InstallationRequest | None,
        plan: TransitionPlan,
        comment: str | None,
    ) -> ServiceRequestRead:
        subscription_linked = request.subscription_id is not None
        with transaction(session):
            for name, value in plan.changes.items():
                setattr(request, name, value)
            if plan.target == ServiceRequestStatus.COMPLETED:
                request.completed_date = datetime.now(timezone.utc)
            session.flush()

            sync = None
            if installation is not None:
                sync = sync_installation_status(session, actor, installation, request, plan.target)

            log_actor_action(
                session,
                actor,
                ACTION_TYPE_FOR_STATUS[plan.target],
                entity_type=EntityType.SERVICE_REQUEST,
                service_request_id=request.id,
                installation_request_id=request.installation_request_id,
                subscription_id=request.subscription_id,
                from_status=plan.current,
                to_status=plan.target,
                comment=comment,
                metadata={
                    "fromStatus": str(plan.current),
                    "toStatus": str(plan.target),
                    "agentId": request.assigned_to_id,
                    "scheduledDate": request.scheduled_date.isoformat() if request.scheduled_date else None,
                },
            )
            if subscription_linked:
                log_actor_action(
                    session,
                    actor,
                    ActionType.SUBSCRIPTION_SERVICE_REQUEST_UPDATED,
                    entity_type=EntityType.SUBSCRIPTION,
                    subscription_id=request.subscription_id,
                    service_request_id=request.id,
                    from_status=plan.current,
                    to_status=plan.target,
                    comment=f"service request moved to {plan.target}",
                )
        session.refresh(request)

        if sync is not None:
            observe_installation_sync(sync.to_status)
            if sync.subscription_created:
                observe_subscription_created()
        self._after_commit(session, actor, request, plan.current, plan.target, "service_request.status_changed")
        self.notifier.notify(session, request, _NOTIFICATION_ACTION.get(plan.target, "status_changed"), actor)
        return self._read(session, request)

    @staticmethod
    def _after_commit(
        session: Session,
        actor: Actor,
        request: ServiceRequest,
        from_status: ServiceRequestStatus | None,
        to_status: ServiceRequestStatus,
        event_type: str,
    ) -> None:
        observe_transition(str(from_status) if from_status else "NONE", str(to_status))
        logger.info(
            event_type,
            extra={
                "service_request_id": str(request.id),
                "from_status": str(from_status) if from_status else None,
                "to_status": str(to_status),
                "user_id": actor.user_id,
            },
        )
        events.publish(
            {
                "event_type": event_type,
                "service_request_id": str(request.id),
                "from_status": str(from_status) if from_status else None,
                "to_status": str(to_status),
                "actor_id": actor.user_id,
                "view_as_by": actor.original_user_id,
            }
        )

    def _read(self, session: Session, request: ServiceRequest) -> ServiceRequestRead:
        read = ServiceRequestRead.model_validate(request)
        read.payment_status = self.payment_status(session, request)
        return read

    @staticmethod
    def _installation(session: Session, request: ServiceRequest) -> InstallationRequest | None:
        if request.installation_request_id is None:
            return None
        return session.get(InstallationRequest, request.installation_request_id)

    @staticmethod
    def _get(session: Session, request_id: uuid.UUID) -> ServiceRequest:
        request = session.get(ServiceRequest, request_id)
        if request is None:
            raise NotFoundError("service request")
        return request

    def _get_visible(self, session: Session, actor: Actor, request_id: uuid.UUID, guard: AccessGuard) -> ServiceRequest:
        request = self._get(session, request_id)
        member = actor.role == Role.SERVICE_AGENT and is_franchise_member(session, request.franchise_id, actor.user_id)
        if not guard.can_view_service_request(
            actor,
            request,
            franchise_owner_id(session, request.franchise_id),
            is_franchise_member=member,
        ):
            raise ForbiddenError("you do not have access to this service request")
        return request


service_request_service = ServiceRequestService()
