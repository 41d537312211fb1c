from __future__ import annotations

from typing import Any

from sqlalchemy import false, select
from sqlalchemy.sql import Select

from app.business.franchise.models import Franchise, FranchiseAgent
from app.platform.security.context import Actor, Role


class BaseRepository:
    """Role-scoped row filtering for list queries.

    Subclasses name the columns that tie a row to a customer, a franchise and, where the
    table has one, an assigned service agent.
    """

    model: Any = None
    customer_column = "customer_id"
    franchise_column = "franchise_id"
    assignee_column: str | None = None

    def apply_scope_query(self, query: Select[Any], actor: Actor) -> Select[Any]:
        if actor.role == Role.ADMIN:
            return query
        if actor.role == Role.CUSTOMER:
            return query.where(getattr(self.model, self.customer_column) == actor.user_id)
        if actor.role == Role.FRANCHISE_OWNER:
            return query.where(getattr(self.model, self.franchise_column).in_(owned_franchise_ids(actor.user_id)))
        if actor.role == Role.SERVICE_AGENT and self.assignee_column is not None:
            return query.where(getattr(self.model, self.assignee_column) == actor.user_id)
        return query.where(false())


def owned_franchise_ids(owner_id: str) -> Select[Any]:
    return select(Franchise.id).where(Franchise.owner_id == owner_id)


def agent_franchise_ids(agent_id: str) -> Select[Any]:
    return select(FranchiseAgent.franchise_id).where(
        FranchiseAgent.agent_id == agent_id,
        FranchiseAgent.is_active.is_(True),
    )
