from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


PaymentStatusLiteral = Literal["PENDING", "COMPLETED", "FAILED", "REFUNDED"]
PaymentTypeLiteral = Literal["DEPOSIT", "SUBSCRIPTION", "PURCHASE", "SERVICE"]
ReconciliationStatus = Literal["PENDING", "COMPLETED"]


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    installation_request_id: UUID | None
    service_request_id: UUID | None
    subscription_id: UUID | None
    customer_id: str | None
    franchise_id: UUID | None
    amount: Decimal | str
    type: PaymentTypeLiteral | str
    status: PaymentStatusLiteral | str
    payment_method: str | None
    razorpay_payment_id: str | None
    razorpay_order_id: str | None
    razorpay_subscription_id: str | None
    paid_date: datetime | None
    created_at: datetime


class PaymentStatusSummary(BaseModel):
    """Payment state shown next to an installation service request."""

    status: PaymentStatusLiteral | str
    amount: Decimal | str | None = None
    method: str | None = None
    paid_date: datetime | None = None
    razorpay_payment_link: str | None = None
    razorpay_subscription_id: str | None = None


class RefreshPaymentStatusRead(BaseModel):
    status: ReconciliationStatus
    message: str
    payment: PaymentRead | None = None
    subscription_id: UUID | None = None


class PaymentLinkRead(BaseModel):
    payment_link: str
    razorpay_subscription_id: str
    amount: Decimal | str
    reused: bool = False
