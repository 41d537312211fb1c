from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.database import Base
from app.platform.action_history.models import ActionHistoryEntry, ActionType, AppendOnlyViolation, EntityType
from app.platform.action_history.schemas import ActionHistoryEntryCreate
from app.platform.action_history.service import list_history, log_action, log_actor_action
from app.platform.security.context import Actor, Role


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def test_entity_type_is_derived_from_first_reference() -> None:
    installation_id = uuid.uuid4()

    entry = ActionHistoryEntryCreate(
        action_type=ActionType.INSTALLATION_REQUEST_SCHEDULED,
        performed_by="admin-1",
        performed_by_role="admin",
        installation_request_id=installation_id,
        payment_id=uuid.uuid4(),
    )

    assert entry.entity_type == EntityType.INSTALLATION_REQUEST
    assert entry.owner_id == installation_id


def test_entry_without_reference_is_invalid() -> None:
    with pytest.raises(ValidationError):
        ActionHistoryEntryCreate(
            action_type=ActionType.SERVICE_REQUEST_CREATED,
            performed_by="admin-1",
            performed_by_role="admin",
        )


def test_explicit_entity_type_needs_matching_id() -> None:
    with pytest.raises(ValidationError):
        ActionHistoryEntryCreate(
            action_type=ActionType.SUBSCRIPTION_CREATED,
            performed_by="admin-1",
            performed_by_role="admin",
            entity_type=EntityType.SUBSCRIPTION,
            service_request_id=uuid.uuid4(),
        )


def test_entries_cannot_be_updated_or_deleted(db_session: Session) -> None:
    row = log_action(
        db_session,
        ActionHistoryEntryCreate(
            action_type=ActionType.SERVICE_REQUEST_CREATED,
            performed_by="customer-1",
            performed_by_role="customer",
            service_request_id=uuid.uuid4(),
            to_status="CREATED",
        ),
    )
    db_session.commit()

    row.comment = "rewritten"
    with pytest.raises(AppendOnlyViolation):
        db_session.flush()
    db_session.rollback()

    db_session.delete(row)
    with pytest.raises(AppendOnlyViolation):
        db_session.flush()
    db_session.rollback()

    assert db_session.scalar(select(ActionHistoryEntry.comment)) is None


def test_actor_entries_record_view_as_origin(db_session: Session) -> None:
    request_id = uuid.uuid4()
    actor = Actor(
        user_id="agent-1",
        role=Role.SERVICE_AGENT,
        original_user_id="owner-1",
        original_role=Role.FRANCHISE_OWNER,
    )

    log_actor_action(
        db_session,
        actor,
        ActionType.SERVICE_REQUEST_IN_PROGRESS,
        service_request_id=request_id,
        from_status="SCHEDULED",
        to_status="IN_PROGRESS",
        metadata={"agentId": "agent-1"},
    )
    db_session.commit()

    history = list_history(db_session, service_request_id=request_id)
    assert len(history) == 1
    assert history[0].performed_by == "agent-1"
    assert history[0].performed_by_role == "service_agent"
    assert history[0].entity_type == "service_request"
    assert history[0].metadata == {"agentId": "agent-1", "viewAsBy": "owner-1"}


def test_list_history_without_filters_is_empty(db_session: Session) -> None:
    assert list_history(db_session) == []
