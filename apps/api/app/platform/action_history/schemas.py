from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.platform.action_history.models import ActionType, EntityType


class ActionHistoryEntryCreate(BaseModel):
    action_type: ActionType
    performed_by: str = Field(min_length=1)
    performed_by_role: str = Field(min_length=1)
    entity_type: EntityType | None = None
    service_request_id: UUID | None = None
    installation_request_id: UUID | None = None
    subscription_id: UUID | None = None
    payment_id: UUID | None = None
    from_status: str | None = None
    to_status: str | None = None
    comment: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None

    @model_validator(mode="after")
    def _require_owner(self) -> ActionHistoryEntryCreate:
        if self.entity_type is None:
            for entity_type, value in self.references():
                if value is not None:
                    self.entity_type = entity_type
                    break
        if self.entity_type is None:
            raise ValueError("action history entry needs at least one entity reference")
        if self.owner_id is None:
            raise ValueError(f"action history entry owned by {self.entity_type} has no {self.entity_type} id")
        return self

    def references(self) -> list[tuple[EntityType, UUID | None]]:
        return [
            (EntityType.SERVICE_REQUEST, self.service_request_id),
            (EntityType.INSTALLATION_REQUEST, self.installation_request_id),
            (EntityType.SUBSCRIPTION, self.subscription_id),
            (EntityType.PAYMENT, self.payment_id),
        ]

    @property
    def owner_id(self) -> UUID | None:
        return dict(self.references()).get(self.entity_type) if self.entity_type else None


class ActionHistoryEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    entity_type: str
    entity_id: UUID
    service_request_id: UUID | None
    installation_request_id: UUID | None
    subscription_id: UUID | None
    payment_id: UUID | None
    action_type: str
    from_status: str | None
    to_status: str | None
    performed_by: str
    performed_by_role: str
    comment: str | None
    metadata: dict[str, Any] = Field(validation_alias="event_metadata")
    created_at: datetime
