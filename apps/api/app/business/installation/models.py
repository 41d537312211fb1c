from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InstallationRequestStatus(StrEnum):
    SUBMITTED = "SUBMITTED"
    FRANCHISE_CONTACTED = "FRANCHISE_CONTACTED"
    INSTALLATION_SCHEDULED = "INSTALLATION_SCHEDULED"
    INSTALLATION_IN_PROGRESS = "INSTALLATION_IN_PROGRESS"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    INSTALLATION_COMPLETED = "INSTALLATION_COMPLETED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"


class OrderType(StrEnum):
    RENTAL = "RENTAL"
    PURCHASE = "PURCHASE"


class InstallationRequest(Base):
    __tablename__ = "installation_request"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[str] = mapped_column(String(128), ForeignKey("users_user.id"), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("catalog_product.id"), nullable=False)
    franchise_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("franchise_area.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    installation_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_type: Mapped[str] = mapped_column(String(16), nullable=False, default=OrderType.RENTAL, server_default="RENTAL")
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=InstallationRequestStatus.SUBMITTED,
        server_default="SUBMITTED",
    )
    assigned_technician_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    connect_id: Mapped[str | None] = mapped_column(String(16), nullable=True)
    razorpay_subscription_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    razorpay_payment_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    scheduled_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("connect_id", name="uq_installation_request_connect_id"),
        Index("ix_installation_request_franchise_status", "franchise_id", "status"),
        Index("ix_installation_request_customer", "customer_id"),
    )
