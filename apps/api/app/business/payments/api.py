from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.business.payments.schemas import PaymentRead
from app.business.payments.service import payments_service
from app.core.auth import get_current_actor
from app.core.database import get_db
from app.platform.security.context import Actor
from app.platform.security.guard import AccessGuard, get_access_guard


router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("", response_model=list[PaymentRead])
def list_payments(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
) -> list[PaymentRead]:
    return payments_service.list_payments(db, actor)


@router.get("/{payment_id}", response_model=PaymentRead)
def get_payment(
    payment_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    guard: AccessGuard = Depends(get_access_guard),
) -> PaymentRead:
    return payments_service.get_payment(db, actor, payment_id, guard)
