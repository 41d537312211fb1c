from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceRequestStatus(StrEnum):
    CREATED = "CREATED"
    ASSIGNED = "ASSIGNED"
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ServiceRequestType(StrEnum):
    GENERAL = "GENERAL"
    INSTALLATION = "INSTALLATION"
    MAINTENANCE = "MAINTENANCE"
    REPAIR = "REPAIR"


class ServiceRequest(Base):
    __tablename__ = "service_request"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id: Mapped[str] = mapped_column(String(128), ForeignKey("users_user.id"), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("catalog_product.id"), nullable=False)
    subscription_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("subscription.id"),
        nullable=True,
    )
    installation_request_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("installation_request.id"),
        nullable=True,
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # JSON arrays of image URLs kept as text
    images: Mapped[str | None] = mapped_column(Text, nullable=True)
    before_images: Mapped[str | None] = mapped_column(Text, nullable=True)
    after_images: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ServiceRequestStatus.CREATED,
        server_default="CREATED",
    )
    assigned_to_id: Mapped[str | None] = mapped_column(String(128), ForeignKey("users_user.id"), nullable=True)
    franchise_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), ForeignKey("franchise_area.id"), nullable=False)
    scheduled_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    requires_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_service_request_franchise_status", "franchise_id", "status"),
        Index("ix_service_request_customer", "customer_id"),
        Index("ix_service_request_assignee", "assigned_to_id"),
        Index("ix_service_request_installation", "installation_request_id"),
    )

    @property
    def is_installation_linked(self) -> bool:
        return self.installation_request_id is not None
