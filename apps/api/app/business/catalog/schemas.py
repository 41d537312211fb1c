from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.business.service_requests.state_machine import parse_images


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    images: list[str] = Field(default_factory=list)
    rent_price: Decimal = Field(default=Decimal("0"), ge=0)
    buy_price: Decimal = Field(default=Decimal("0"), ge=0)
    deposit: Decimal = Field(default=Decimal("0"), ge=0)
    is_rentable: bool = True
    is_purchasable: bool = True
    razorpay_plan_id: str | None = None


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    images: list[str] | None = None
    rent_price: Decimal | None = Field(default=None, ge=0)
    buy_price: Decimal | None = Field(default=None, ge=0)
    deposit: Decimal | None = Field(default=None, ge=0)
    is_rentable: bool | None = None
    is_purchasable: bool | None = None
    razorpay_plan_id: str | None = None
    is_active: bool | None = None


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    images: list[str]
    rent_price: Decimal | str
    buy_price: Decimal | str
    deposit: Decimal | str
    is_rentable: bool
    is_purchasable: bool
    razorpay_plan_id: str | None
    is_active: bool
    created_at: datetime

    @field_validator("images", mode="before")
    @classmethod
    def _decode_images(cls, value: object) -> list[str]:
        if isinstance(value, list):
            return [str(item) for item in value]
        return parse_images(value if isinstance(value, str) else None)
