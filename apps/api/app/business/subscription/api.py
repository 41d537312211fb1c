from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.business.payments.schemas import PaymentRead
from app.business.subscription.schemas import SubscriptionRead
from app.business.subscription.service import subscription_service
from app.core.auth import get_current_actor
from app.core.database import get_db
from app.platform.security.context import Actor
from app.platform.security.guard import AccessGuard, get_access_guard


router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.get("", response_model=list[SubscriptionRead])
def list_subscriptions(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[SubscriptionRead]:
    return subscription_service.list_subscriptions(db, actor)


@router.get("/{subscription_id}", response_model=SubscriptionRead)
def get_subscription(
    subscription_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> SubscriptionRead:
    return subscription_service.get_subscription(db, actor, subscription_id, guard)


@router.get("/{subscription_id}/payments", response_model=list[PaymentRead])
def list_subscription_payments(
    subscription_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> list[PaymentRead]:
    return subscription_service.list_subscription_payments(db, actor, subscription_id, guard)
