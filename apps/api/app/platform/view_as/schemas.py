from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ViewAsFranchiseOwnerRequest(BaseModel):
    franchise_id: UUID


class ViewAsAgentRequest(BaseModel):
    franchise_id: UUID
    agent_id: str = Field(min_length=1)


class ViewAsTokenRead(BaseModel):
    access_token: str
    token_type: str = "bearer"
    target_user_id: str
    target_role: str
    franchise_id: UUID
    expires_at: datetime


class ViewAsExitRead(BaseModel):
    ended_sessions: int
