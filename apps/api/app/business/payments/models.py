from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentStatus(StrEnum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentType(StrEnum):
    DEPOSIT = "DEPOSIT"
    SUBSCRIPTION = "SUBSCRIPTION"
    PURCHASE = "PURCHASE"
    SERVICE = "SERVICE"


class Payment(Base):
    __tablename__ = "payments_payment"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    installation_request_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("installation_request.id"),
        nullable=True,
    )
    service_request_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("service_request.id"),
        nullable=True,
    )
    subscription_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("subscription.id"),
        nullable=True,
    )
    customer_id: Mapped[str | None] = mapped_column(String(128), ForeignKey("users_user.id"), nullable=True)
    franchise_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), ForeignKey("franchise_area.id"), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False, default=PaymentType.DEPOSIT)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=PaymentStatus.PENDING, server_default="PENDING")
    payment_method: Mapped[str | None] = mapped_column(String(32), nullable=True)
    razorpay_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    razorpay_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    razorpay_subscription_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    paid_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("razorpay_payment_id", name="uq_payments_payment_gateway_id"),
        Index("ix_payments_payment_installation_status", "installation_request_id", "status"),
        Index("ix_payments_payment_customer", "customer_id"),
    )
