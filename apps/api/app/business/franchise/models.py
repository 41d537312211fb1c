from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Franchise(Base):
    __tablename__ = "franchise_area"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(128), nullable=False)
    # null owner means the area is company managed
    owner_id: Mapped[str | None] = mapped_column(String(128), ForeignKey("users_user.id"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    agents: Mapped[list[FranchiseAgent]] = relationship(
        "app.business.franchise.models.FranchiseAgent",
        back_populates="franchise",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_franchise_area_city", "city"),
        Index("ix_franchise_area_owner", "owner_id"),
    )

    @property
    def is_company_managed(self) -> bool:
        return self.owner_id is None


class FranchiseAgent(Base):
    __tablename__ = "franchise_agent"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    franchise_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("franchise_area.id", ondelete="CASCADE"),
        nullable=False,
    )
    agent_id: Mapped[str] = mapped_column(String(128), ForeignKey("users_user.id"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    assigned_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    franchise: Mapped[Franchise] = relationship("app.business.franchise.models.Franchise", back_populates="agents")

    __table_args__ = (
        UniqueConstraint("franchise_id", "agent_id", name="uq_franchise_agent_pair"),
        Index("ix_franchise_agent_agent", "agent_id"),
    )
