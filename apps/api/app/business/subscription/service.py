from __future__ import annotations

import calendar
import logging
import secrets
import string
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.business.catalog.models import Product
from app.business.franchise.models import Franchise
from app.business.installation.models import InstallationRequest
from app.business.payments.models import Payment
from app.business.payments.schemas import PaymentRead
from app.business.subscription.models import Subscription, SubscriptionStatus
from app.business.subscription.repository import SubscriptionRepository
from app.business.subscription.schemas import SubscriptionRead
from app.core.errors import BadRequestError, ForbiddenError, NotFoundError, ServerError
from app.platform.action_history.models import ActionType, EntityType
from app.platform.action_history.service import log_actor_action
from app.platform.security.context import Actor
from app.platform.security.guard import AccessGuard, get_access_guard


logger = logging.getLogger("app.subscription")

CONNECT_ID_ALPHABET = string.ascii_uppercase + string.digits
CONNECT_ID_LENGTH = 8
_CONNECT_ID_ATTEMPTS = 10


def generate_connect_id() -> str:
    return "".join(secrets.choice(CONNECT_ID_ALPHABET) for _ in range(CONNECT_ID_LENGTH))


def add_months(base: datetime, months: int) -> datetime:
    month_index = base.month - 1 + months
    year = base.year + (month_index // 12)
    month = month_index % 12 + 1
    day = min(base.day, calendar.monthrange(year, month)[1])
    return base.replace(year=year, month=month, day=day)


def _from_epoch(value: Any) -> datetime | None:
    if isinstance(value, (int, float)) and value > 0:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


def billing_period(gateway_subscription: dict[str, Any] | None, now: datetime) -> tuple[datetime, datetime]:
    """Current period taken from the gateway subscription, else one month from ``now``."""
    gateway_subscription = gateway_subscription or {}
    start = _from_epoch(gateway_subscription.get("current_start")) or now
    end = _from_epoch(gateway_subscription.get("current_end")) or add_months(start, 1)
    return start, end


@dataclass(slots=True)
class SubscriptionService:
    subscription_repository: SubscriptionRepository = SubscriptionRepository()

    def ensure_subscription(
        self,
        session: Session,
        actor: Actor,
        installation: InstallationRequest,
        *,
        payment: Payment | None = None,
        gateway_subscription: dict[str, Any] | None = None,
    ) -> tuple[Subscription, bool]:
        """Return the installation's subscription, creating it on first completed payment.

        Runs inside the caller's transaction. The existence check on ``request_id`` is the
        de-duplication guard; the unique constraint on that column catches concurrent callers.
        """
        existing = session.scalar(select(Subscription).where(Subscription.request_id == installation.id))
        if existing is not None:
            if payment is not None and payment.subscription_id is None:
                payment.subscription_id = existing.id
            if installation.connect_id is None:
                installation.connect_id = existing.connect_id
            return existing, False

        product = session.get(Product, installation.product_id)
        if product is None:
            raise BadRequestError("installation product not found")

        now = datetime.now(timezone.utc)
        period_start, period_end = billing_period(gateway_subscription, now)
        connect_id = installation.connect_id or self._unused_connect_id(session)

        subscription = Subscription(
            connect_id=connect_id,
            request_id=installation.id,
            customer_id=installation.customer_id,
            product_id=installation.product_id,
            franchise_id=installation.franchise_id,
            plan_name=f"{product.name} Rental Plan",
            status=SubscriptionStatus.ACTIVE,
            start_date=now,
            current_period_start_date=period_start,
            current_period_end_date=period_end,
            next_payment_date=period_end,
            monthly_amount=product.rent_price,
            deposit_amount=product.deposit,
            razorpay_subscription_id=installation.razorpay_subscription_id,
        )
        session.add(subscription)
        session.flush()

        installation.connect_id = connect_id
        if payment is not None:
            payment.subscription_id = subscription.id

        log_actor_action(
            session,
            actor,
            ActionType.SUBSCRIPTION_CREATED,
            entity_type=EntityType.SUBSCRIPTION,
            subscription_id=subscription.id,
            installation_request_id=installation.id,
            payment_id=payment.id if payment is not None else None,
            to_status=SubscriptionStatus.ACTIVE,
            comment="subscription created from completed installation payment",
            metadata={"connectId": connect_id, "planName": subscription.plan_name},
        )
        logger.info(
            "subscription.created",
            extra={"subscription_id": str(subscription.id), "installation_request_id": str(installation.id)},
        )
        return subscription, True

    def list_subscriptions(self, session: Session, actor: Actor) -> list[SubscriptionRead]:
        stmt = self.subscription_repository.apply_scope_query(select(Subscription), actor)
        rows = session.scalars(stmt.order_by(Subscription.created_at.desc())).all()
        return [SubscriptionRead.model_validate(row) for row in rows]

    def get_subscription(
        self,
        session: Session,
        actor: Actor,
        subscription_id: uuid.UUID,
        guard: AccessGuard | None = None,
    ) -> SubscriptionRead:
        return SubscriptionRead.model_validate(self._get_visible(session, actor, subscription_id, guard))

    def list_subscription_payments(
        self,
        session: Session,
        actor: Actor,
        subscription_id: uuid.UUID,
        guard: AccessGuard | None = None,
    ) -> list[PaymentRead]:
        subscription = self._get_visible(session, actor, subscription_id, guard)
        rows = session.scalars(
            select(Payment)
            .where((Payment.subscription_id == subscription.id) | (Payment.installation_request_id == subscription.request_id))
            .order_by(Payment.created_at.desc())
        ).all()
        return [PaymentRead.model_validate(row) for row in rows]

    def _get_visible(
        self,
        session: Session,
        actor: Actor,
        subscription_id: uuid.UUID,
        guard: AccessGuard | None,
    ) -> Subscription:
        guard = guard or get_access_guard()
        subscription = session.get(Subscription, subscription_id)
        if subscription is None:
            raise NotFoundError("subscription")
        owner_id = session.scalar(select(Franchise.owner_id).where(Franchise.id == subscription.franchise_id))
        if not guard.can_view_record(actor, customer_id=subscription.customer_id, franchise_owner_id=owner_id):
            raise ForbiddenError("you do not have access to this subscription")
        return subscription

    @staticmethod
    def _unused_connect_id(session: Session) -> str:
        for _ in range(_CONNECT_ID_ATTEMPTS):
            candidate = generate_connect_id()
            taken = session.scalar(select(Subscription.id).where(Subscription.connect_id == candidate)) or session.scalar(
                select(InstallationRequest.id).where(InstallationRequest.connect_id == candidate)
            )
            if taken is None:
                return candidate
        raise ServerError("could not allocate a connect id")


subscription_service = SubscriptionService()
