from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app import events
from app.business.franchise.service import franchise_owner_id
from app.business.installation.models import InstallationRequest, InstallationRequestStatus
from app.business.payments.gateway import PaymentGateway, PaymentGatewayError, find_paid_invoice
from app.business.payments.models import Payment, PaymentStatus, PaymentType
from app.business.payments.repository import PaymentRepository
from app.business.payments.schemas import PaymentRead, RefreshPaymentStatusRead
from app.business.service_requests.models import ServiceRequest, ServiceRequestStatus
from app.business.subscription.models import Subscription
from app.business.subscription.service import SubscriptionService, subscription_service
from app.core.database import transaction
from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.metrics import observe_reconciliation, observe_subscription_created
from app.platform.action_history.models import ActionType, EntityType
from app.platform.action_history.service import log_actor_action
from app.platform.notifications.service import ServiceRequestNotifier, service_request_notifier
from app.platform.security.context import Actor
from app.platform.security.guard import AccessGuard, get_access_guard


logger = logging.getLogger("app.payments")

RECONCILABLE_INSTALLATION_STATUSES = {
    InstallationRequestStatus.PAYMENT_PENDING,
    InstallationRequestStatus.INSTALLATION_COMPLETED,
}


def _paid_at(invoice: dict[str, Any]) -> datetime:
    paid_at = invoice.get("paid_at")
    if isinstance(paid_at, (int, float)) and paid_at > 0:
        return datetime.fromtimestamp(paid_at, tz=timezone.utc)
    return datetime.now(timezone.utc)


def _invoice_amount(invoice: dict[str, Any]) -> Decimal | None:
    # gateway amounts are in paise
    amount = invoice.get("amount_paid") or invoice.get("amount")
    if isinstance(amount, (int, float)) and amount > 0:
        return (Decimal(int(amount)) / Decimal(100)).quantize(Decimal("0.01"))
    return None


@dataclass(slots=True)
class PaymentsService:
    payment_repository: PaymentRepository = PaymentRepository()
    subscriptions: SubscriptionService = field(default_factory=lambda: subscription_service)
    notifier: ServiceRequestNotifier = service_request_notifier

    def refresh_payment_status(
        self,
        session: Session,
        actor: Actor,
        service_request_id: uuid.UUID,
        gateway: PaymentGateway,
        guard: AccessGuard | None = None,
    ) -> RefreshPaymentStatusRead:
        """Pull the gateway's view of an installation payment and reconcile local records.

        The gateway is read before anything is written. Safe to call repeatedly: a payment
        that is already recorded only gets its subscription repaired if missing.
        """
        guard = guard or get_access_guard()
        request = session.get(ServiceRequest, service_request_id)
        if request is None:
            raise NotFoundError("service request")
        owner_id = franchise_owner_id(session, request.franchise_id)
        allowed = guard.can_collect_payment(actor, request, owner_id) or request.customer_id == actor.user_id
        guard.ensure(allowed, "you cannot refresh payment for this service request")

        if request.installation_request_id is None:
            raise BadRequestError("service request is not linked to an installation request")
        installation = session.get(InstallationRequest, request.installation_request_id)
        if installation is None:
            raise NotFoundError("installation request")
        if installation.status not in RECONCILABLE_INSTALLATION_STATUSES:
            raise BadRequestError(f"installation request is {installation.status}, not awaiting payment")
        gateway_subscription_id = installation.razorpay_subscription_id
        if not gateway_subscription_id:
            raise BadRequestError("no payment link has been generated for this installation")

        try:
            gateway_subscription = gateway.fetch_subscription(gateway_subscription_id)
            invoices = gateway.list_invoices(gateway_subscription_id)
        except PaymentGatewayError as exc:
            observe_reconciliation("gateway_error")
            logger.exception(
                "payment.refresh_failed",
                extra={"service_request_id": str(request.id), "error": str(exc)},
            )
            raise BadRequestError("failed to refresh payment status") from exc

        invoice = find_paid_invoice(invoices)
        if invoice is None:
            observe_reconciliation("pending")
            logger.info(
                "payment.pending",
                extra={"service_request_id": str(request.id), "status": gateway_subscription.get("status")},
            )
            return RefreshPaymentStatusRead(status="PENDING", message="payment not received yet")

        gateway_payment_id = str(invoice["payment_id"])
        recorded = session.scalar(select(Payment).where(Payment.razorpay_payment_id == gateway_payment_id))
        if recorded is not None and recorded.status == PaymentStatus.COMPLETED:
            return self._repair(session, actor, installation, recorded, gateway_subscription)

        try:
            with transaction(session):
                payment, subscription, created = self._record_payment(
                    session,
                    actor,
                    request,
                    installation,
                    invoice,
                    gateway_subscription,
                    recorded,
                )
        except IntegrityError as exc:
            logger.warning(
                "payment.reconcile_conflict",
                extra={"service_request_id": str(request.id), "error": str(exc.orig)},
            )
            return self._resolve_conflict(session, installation, gateway_payment_id)
        except SQLAlchemyError as exc:
            observe_reconciliation("error")
            logger.exception("payment.reconcile_failed", extra={"service_request_id": str(request.id), "error": str(exc)})
            raise BadRequestError("failed to record payment") from exc

        session.refresh(payment)
        observe_reconciliation("completed")
        if created:
            observe_subscription_created()
        logger.info(
            "payment.reconciled",
            extra={
                "service_request_id": str(request.id),
                "installation_request_id": str(installation.id),
                "payment_id": str(payment.id),
                "subscription_id": str(subscription.id),
            },
        )
        events.publish(
            {
                "event_type": "payment.completed",
                "payment_id": str(payment.id),
                "service_request_id": str(request.id),
                "installation_request_id": str(installation.id),
                "subscription_id": str(subscription.id),
                "amount": str(payment.amount),
            }
        )
        self.notifier.notify(session, request, "completed", actor)
        return RefreshPaymentStatusRead(
            status="COMPLETED",
            message="payment completed",
            payment=PaymentRead.model_validate(payment),
            subscription_id=subscription.id,
        )

    def _record_payment(
        self,
        session: Session,
        actor: Actor,
        request: ServiceRequest,
        installation: InstallationRequest,
        invoice: dict[str, Any],
        gateway_subscription: dict[str, Any],
        payment: Payment | None,
    ) -> tuple[Payment, Subscription, bool]:
        if payment is None:
            payment = session.scalar(
                select(Payment)
                .where(
                    Payment.installation_request_id == installation.id,
                    Payment.status == PaymentStatus.PENDING,
                    Payment.razorpay_payment_id.is_(None),
                )
                .order_by(Payment.created_at.desc())
                .limit(1)
            )
        if payment is None:
            payment = Payment(
                installation_request_id=installation.id,
                service_request_id=request.id,
                customer_id=installation.customer_id,
                franchise_id=installation.franchise_id,
                amount=_invoice_amount(invoice) or Decimal("0"),
                type=PaymentType.DEPOSIT,
            )
            session.add(payment)

        previous_payment_status = payment.status or PaymentStatus.PENDING
        paid_date = _paid_at(invoice)
        payment.status = PaymentStatus.COMPLETED
        payment.razorpay_payment_id = str(invoice["payment_id"])
        payment.razorpay_order_id = invoice.get("order_id") or payment.razorpay_order_id
        payment.razorpay_subscription_id = installation.razorpay_subscription_id
        payment.payment_method = payment.payment_method or "razorpay"
        payment.paid_date = paid_date
        payment.amount = _invoice_amount(invoice) or payment.amount
        session.flush()

        subscription, created = self.subscriptions.ensure_subscription(
            session,
            actor,
            installation,
            payment=payment,
            gateway_subscription=gateway_subscription,
        )
        payment.subscription_id = subscription.id

        log_actor_action(
            session,
            actor,
            ActionType.PAYMENT_COMPLETED,
            entity_type=EntityType.PAYMENT,
            payment_id=payment.id,
            installation_request_id=installation.id,
            service_request_id=request.id,
            subscription_id=subscription.id,
            from_status=previous_payment_status,
            to_status=PaymentStatus.COMPLETED,
            comment="payment confirmed by gateway",
            metadata={"razorpayPaymentId": payment.razorpay_payment_id, "amount": str(payment.amount)},
        )

        if installation.status != InstallationRequestStatus.INSTALLATION_COMPLETED:
            previous_installation_status = installation.status
            installation.status = InstallationRequestStatus.INSTALLATION_COMPLETED
            installation.completed_date = paid_date
            log_actor_action(
                session,
                actor,
                ActionType.INSTALLATION_REQUEST_COMPLETED,
                entity_type=EntityType.INSTALLATION_REQUEST,
                installation_request_id=installation.id,
                service_request_id=request.id,
                from_status=previous_installation_status,
                to_status=InstallationRequestStatus.INSTALLATION_COMPLETED,
                comment="installation completed on payment",
            )

        request.subscription_id = request.subscription_id or subscription.id
        if request.status != ServiceRequestStatus.COMPLETED:
            previous_request_status = request.status
            request.status = ServiceRequestStatus.COMPLETED
            request.completed_date = datetime.now(timezone.utc)
            log_actor_action(
                session,
                actor,
                ActionType.SERVICE_REQUEST_COMPLETED,
                entity_type=EntityType.SERVICE_REQUEST,
                service_request_id=request.id,
                installation_request_id=installation.id,
                subscription_id=subscription.id,
                from_status=previous_request_status,
                to_status=ServiceRequestStatus.COMPLETED,
                comment="service request completed on payment",
                metadata={"paymentId": str(payment.id)},
            )
        session.flush()
        return payment, subscription, created

    def _repair(
        self,
        session: Session,
        actor: Actor,
        installation: InstallationRequest,
        payment: Payment,
        gateway_subscription: dict[str, Any],
    ) -> RefreshPaymentStatusRead:
        with transaction(session):
            subscription, created = self.subscriptions.ensure_subscription(
                session,
                actor,
                installation,
                payment=payment,
                gateway_subscription=gateway_subscription,
            )
        session.refresh(payment)
        observe_reconciliation("repaired" if created else "already_recorded")
        if created:
            observe_subscription_created()
            logger.warning(
                "payment.subscription_repaired",
                extra={"installation_request_id": str(installation.id), "subscription_id": str(subscription.id)},
            )
        return RefreshPaymentStatusRead(
            status="COMPLETED",
            message="payment already recorded",
            payment=PaymentRead.model_validate(payment),
            subscription_id=subscription.id,
        )

    @staticmethod
    def _resolve_conflict(session: Session, installation: InstallationRequest, gateway_payment_id: str) -> RefreshPaymentStatusRead:
        payment = session.scalar(
            select(Payment).where(
                Payment.razorpay_payment_id == gateway_payment_id,
                Payment.status == PaymentStatus.COMPLETED,
            )
        )
        subscription = session.scalar(select(Subscription).where(Subscription.request_id == installation.id))
        if payment is None or subscription is None:
            observe_reconciliation("conflict")
            raise ConflictError("payment is being recorded by another request, retry shortly")
        observe_reconciliation("already_recorded")
        return RefreshPaymentStatusRead(
            status="COMPLETED",
            message="payment already recorded",
            payment=PaymentRead.model_validate(payment),
            subscription_id=subscription.id,
        )

    def list_payments(self, session: Session, actor: Actor) -> list[PaymentRead]:
        stmt = self.payment_repository.apply_scope_query(select(Payment), actor)
        rows = session.scalars(stmt.order_by(Payment.created_at.desc())).all()
        return [PaymentRead.model_validate(row) for row in rows]

    def get_payment(
        self,
        session: Session,
        actor: Actor,
        payment_id: uuid.UUID,
        guard: AccessGuard | None = None,
    ) -> PaymentRead:
        guard = guard or get_access_guard()
        payment = session.get(Payment, payment_id)
        if payment is None:
            raise NotFoundError("payment")
        if not guard.can_view_record(
            actor,
            customer_id=payment.customer_id,
            franchise_owner_id=franchise_owner_id(session, payment.franchise_id),
        ):
            raise ForbiddenError("you do not have access to this payment")
        return PaymentRead.model_validate(payment)


payments_service = PaymentsService()
