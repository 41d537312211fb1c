from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, Text, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntityType(StrEnum):
    SERVICE_REQUEST = "service_request"
    INSTALLATION_REQUEST = "installation_request"
    SUBSCRIPTION = "subscription"
    PAYMENT = "payment"


class ActionType(StrEnum):
    SERVICE_REQUEST_CREATED = "SERVICE_REQUEST_CREATED"
    SERVICE_REQUEST_ASSIGNED = "SERVICE_REQUEST_ASSIGNED"
    SERVICE_REQUEST_SCHEDULED = "SERVICE_REQUEST_SCHEDULED"
    SERVICE_REQUEST_RESCHEDULED = "SERVICE_REQUEST_RESCHEDULED"
    SERVICE_REQUEST_IN_PROGRESS = "SERVICE_REQUEST_IN_PROGRESS"
    SERVICE_REQUEST_PAYMENT_PENDING = "SERVICE_REQUEST_PAYMENT_PENDING"
    SERVICE_REQUEST_COMPLETED = "SERVICE_REQUEST_COMPLETED"
    SERVICE_REQUEST_CANCELLED = "SERVICE_REQUEST_CANCELLED"
    INSTALLATION_REQUEST_CREATED = "INSTALLATION_REQUEST_CREATED"
    INSTALLATION_REQUEST_SCHEDULED = "INSTALLATION_REQUEST_SCHEDULED"
    INSTALLATION_REQUEST_IN_PROGRESS = "INSTALLATION_REQUEST_IN_PROGRESS"
    INSTALLATION_REQUEST_PAYMENT_PENDING = "INSTALLATION_REQUEST_PAYMENT_PENDING"
    INSTALLATION_REQUEST_COMPLETED = "INSTALLATION_REQUEST_COMPLETED"
    INSTALLATION_REQUEST_CANCELLED = "INSTALLATION_REQUEST_CANCELLED"
    SUBSCRIPTION_CREATED = "SUBSCRIPTION_CREATED"
    SUBSCRIPTION_SERVICE_REQUEST_UPDATED = "SUBSCRIPTION_SERVICE_REQUEST_UPDATED"
    PAYMENT_LINK_GENERATED = "PAYMENT_LINK_GENERATED"
    PAYMENT_COMPLETED = "PAYMENT_COMPLETED"


class ActionHistoryEntry(Base):
    __tablename__ = "action_history_entry"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    service_request_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    installation_request_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    subscription_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    payment_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)
    from_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    to_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    performed_by: Mapped[str] = mapped_column(String(128), nullable=False)
    performed_by_role: Mapped[str] = mapped_column(String(32), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_action_history_entity", "entity_type", "entity_id", "created_at"),
        Index("ix_action_history_service_request", "service_request_id"),
        Index("ix_action_history_installation_request", "installation_request_id"),
    )


class AppendOnlyViolation(RuntimeError):
    pass


@event.listens_for(ActionHistoryEntry, "before_update")
def _reject_update(mapper: Any, connection: Any, target: ActionHistoryEntry) -> None:
    raise AppendOnlyViolation(f"action history entry {target.id} is append-only")


@event.listens_for(ActionHistoryEntry, "before_delete")
def _reject_delete(mapper: Any, connection: Any, target: ActionHistoryEntry) -> None:
    raise AppendOnlyViolation(f"action history entry {target.id} is append-only")
