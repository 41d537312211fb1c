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


class SubscriptionStatus(StrEnum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class Subscription(Base):
    __tablename__ = "subscription"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    connect_id: Mapped[str] = mapped_column(String(16), nullable=False)
    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("installation_request.id"),
        nullable=False,
    )
    customer_id: Mapped[str] = mapped_column(String(128), ForeignKey("users_user.id"), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("catalog_product.id"), nullable=False)
    franchise_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("franchise_area.id"), nullable=False)
    plan_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=SubscriptionStatus.ACTIVE, server_default="ACTIVE")
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    current_period_start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    current_period_end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    next_payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    monthly_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    deposit_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    razorpay_subscription_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("request_id", name="uq_subscription_request"),
        UniqueConstraint("connect_id", name="uq_subscription_connect_id"),
        Index("ix_subscription_customer", "customer_id"),
        Index("ix_subscription_franchise_status", "franchise_id", "status"),
    )
