from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str | None
    phone: str | None
    email: str | None
    role: str
    city: str | None
    franchise_area_id: UUID | None
    is_active: bool


class MeRead(UserRead):
    view_as_by: str | None = None
    view_as_role: str | None = None


class PushTokenUpdate(BaseModel):
    push_token: str | None = Field(default=None, max_length=255)
