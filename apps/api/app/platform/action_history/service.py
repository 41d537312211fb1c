from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.platform.action_history.models import ActionHistoryEntry, ActionType, EntityType
from app.platform.action_history.schemas import ActionHistoryEntryCreate, ActionHistoryEntryRead
from app.platform.security.context import Actor


logger = logging.getLogger("app.action_history")


def log_action(session: Session, entry: ActionHistoryEntryCreate) -> ActionHistoryEntry:
    """Append one history row to the caller's unit of work.

    The row is flushed but never committed here; it lands or disappears together with the
    state change it describes.
    """
    row = ActionHistoryEntry(
        entity_type=str(entry.entity_type),
        entity_id=entry.owner_id,
        service_request_id=entry.service_request_id,
        installation_request_id=entry.installation_request_id,
        subscription_id=entry.subscription_id,
        payment_id=entry.payment_id,
        action_type=str(entry.action_type),
        from_status=entry.from_status,
        to_status=entry.to_status,
        performed_by=entry.performed_by,
        performed_by_role=entry.performed_by_role,
        comment=entry.comment,
        event_metadata=entry.metadata,
        created_at=entry.created_at or datetime.now(timezone.utc),
    )
    session.add(row)
    session.flush()
    return row


def log_actor_action(
    session: Session,
    actor: Actor,
    action_type: ActionType,
    *,
    entity_type: EntityType | None = None,
    service_request_id: uuid.UUID | None = None,
    installation_request_id: uuid.UUID | None = None,
    subscription_id: uuid.UUID | None = None,
    payment_id: uuid.UUID | None = None,
    from_status: str | None = None,
    to_status: str | None = None,
    comment: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> ActionHistoryEntry:
    data = dict(metadata or {})
    if actor.is_viewing_as:
        data["viewAsBy"] = actor.original_user_id
    return log_action(
        session,
        ActionHistoryEntryCreate(
            action_type=action_type,
            performed_by=actor.user_id,
            performed_by_role=str(actor.role),
            entity_type=entity_type,
            service_request_id=service_request_id,
            installation_request_id=installation_request_id,
            subscription_id=subscription_id,
            payment_id=payment_id,
            from_status=from_status,
            to_status=to_status,
            comment=comment,
            metadata=data,
        ),
    )


def list_history(
    session: Session,
    *,
    service_request_id: uuid.UUID | None = None,
    installation_request_id: uuid.UUID | None = None,
) -> list[ActionHistoryEntryRead]:
    clauses = []
    if service_request_id is not None:
        clauses.append(ActionHistoryEntry.service_request_id == service_request_id)
    if installation_request_id is not None:
        clauses.append(ActionHistoryEntry.installation_request_id == installation_request_id)
    if not clauses:
        return []
    rows = session.scalars(
        select(ActionHistoryEntry).where(or_(*clauses)).order_by(ActionHistoryEntry.created_at.asc())
    ).all()
    return [ActionHistoryEntryRead.model_validate(row) for row in rows]
