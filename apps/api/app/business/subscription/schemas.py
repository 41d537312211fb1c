from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


SubscriptionStatusLiteral = Literal["ACTIVE", "PAUSED", "CANCELLED", "EXPIRED"]


class SubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    connect_id: str
    request_id: UUID
    customer_id: str
    product_id: UUID
    franchise_id: UUID
    plan_name: str
    status: SubscriptionStatusLiteral | str
    start_date: datetime
    current_period_start_date: datetime
    current_period_end_date: datetime
    next_payment_date: datetime
    monthly_amount: Decimal | str
    deposit_amount: Decimal | str
    razorpay_subscription_id: str | None
    created_at: datetime
    updated_at: datetime
