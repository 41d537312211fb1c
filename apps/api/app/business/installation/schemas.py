from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


InstallationRequestStatusLiteral = Literal[
    "SUBMITTED",
    "FRANCHISE_CONTACTED",
    "INSTALLATION_SCHEDULED",
    "INSTALLATION_IN_PROGRESS",
    "PAYMENT_PENDING",
    "INSTALLATION_COMPLETED",
    "CANCELLED",
    "REJECTED",
]
OrderTypeLiteral = Literal["RENTAL", "PURCHASE"]


class InstallationRequestCreate(BaseModel):
    product_id: UUID
    name: str = Field(min_length=1, max_length=255)
    phone: str = Field(min_length=1, max_length=32)
    installation_address: str | None = None
    order_type: OrderTypeLiteral = "RENTAL"


class InstallationRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    customer_id: str
    product_id: UUID
    franchise_id: UUID
    name: str
    phone: str
    installation_address: str | None
    order_type: OrderTypeLiteral | str
    status: InstallationRequestStatusLiteral | str
    assigned_technician_id: str | None
    connect_id: str | None
    razorpay_subscription_id: str | None
    razorpay_payment_link: str | None
    scheduled_date: datetime | None
    completed_date: datetime | None
    created_at: datetime
    updated_at: datetime
