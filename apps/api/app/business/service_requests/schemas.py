from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.business.payments.schemas import PaymentStatusSummary
from app.business.service_requests.state_machine import parse_images


ServiceRequestStatusLiteral = Literal[
    "CREATED",
    "ASSIGNED",
    "SCHEDULED",
    "IN_PROGRESS",
    "PAYMENT_PENDING",
    "COMPLETED",
    "CANCELLED",
]
ServiceRequestTypeLiteral = Literal["GENERAL", "INSTALLATION", "MAINTENANCE", "REPAIR"]


class ServiceRequestCreate(BaseModel):
    product_id: UUID
    type: ServiceRequestTypeLiteral
    description: str = Field(min_length=1)
    images: list[str] = Field(default_factory=list)
    subscription_id: UUID | None = None
    installation_request_id: UUID | None = None
    requires_payment: bool = False


class InstallationServiceRequestCreate(BaseModel):
    installation_request_id: UUID
    description: str | None = None
    agent_id: str | None = None
    scheduled_date: datetime | None = None


class StatusUpdate(BaseModel):
    status: ServiceRequestStatusLiteral
    agent_id: str | None = None
    scheduled_date: datetime | None = None
    before_images: list[str] = Field(default_factory=list)
    after_images: list[str] = Field(default_factory=list)
    comment: str | None = None


class AssignAgent(BaseModel):
    agent_id: str = Field(min_length=1)


class ScheduleServiceRequest(BaseModel):
    scheduled_date: datetime


class ServiceRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: str
    product_id: UUID
    subscription_id: UUID | None
    installation_request_id: UUID | None
    type: ServiceRequestTypeLiteral | str
    description: str
    images: list[str]
    before_images: list[str]
    after_images: list[str]
    status: ServiceRequestStatusLiteral | str
    assigned_to_id: str | None
    franchise_id: UUID
    scheduled_date: datetime | None
    completed_date: datetime | None
    requires_payment: bool
    created_at: datetime
    updated_at: datetime
    payment_status: PaymentStatusSummary | None = None

    @field_validator("images", "before_images", "after_images", mode="before")
    @classmethod
    def _decode_images(cls, value: object) -> list[str]:
        if isinstance(value, list):
            return [str(item) for item in value]
        if value is None or isinstance(value, str):
            return parse_images(value)
        return []
