from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class FranchiseCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=128)
    owner_id: str | None = None


class FranchiseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    city: str
    owner_id: str | None
    is_active: bool
    is_company_managed: bool
    created_at: datetime


class FranchiseAgentAssign(BaseModel):
    agent_id: str = Field(min_length=1)


class FranchiseAgentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    franchise_id: UUID
    agent_id: str
    is_active: bool
    assigned_date: datetime
