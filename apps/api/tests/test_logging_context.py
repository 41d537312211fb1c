from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.catalog.models import Product
from app.business.franchise.models import Franchise, FranchiseAgent
from app.business.service_requests.models import ServiceRequest, ServiceRequestStatus, ServiceRequestType
from app.business.users.models import User
from app.context import reset_correlation_id, set_correlation_id
from app.core.auth import get_current_actor
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.logging import JsonLogFormatter
from app.main import app
from app.platform.notifications.dispatcher import NullPushDispatcher, set_push_dispatcher
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


@pytest.fixture(autouse=True)
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    set_push_dispatcher(NullPushDispatcher())
    yield
    get_settings.cache_clear()
    set_push_dispatcher(None)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_actor(request: Request) -> Actor:
        context = getattr(request.state, "context", None)
        if context is not None:
            context.user_id = "agent-1"
        return Actor(user_id="agent-1", role=Role.SERVICE_AGENT)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_actor] = override_get_current_actor
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _seed_request(session: Session) -> ServiceRequest:
    session.add_all(
        [
            User(id="owner-1", role="franchise_owner"),
            User(id="agent-1", role="service_agent"),
            User(id="customer-1", role="customer"),
        ]
    )
    session.flush()
    franchise = Franchise(name="Pune Central", city="Pune", owner_id="owner-1")
    product = Product(name="AquaPure RO", rent_price=Decimal("499.00"))
    session.add_all([franchise, product])
    session.flush()
    session.add(FranchiseAgent(franchise_id=franchise.id, agent_id="agent-1"))
    request = ServiceRequest(
        customer_id="customer-1",
        product_id=product.id,
        franchise_id=franchise.id,
        type=ServiceRequestType.REPAIR,
        description="pump noise",
        status=ServiceRequestStatus.ASSIGNED,
        assigned_to_id="agent-1",
    )
    session.add(request)
    session.commit()
    return request


def test_logs_include_correlation_id_for_http(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    response = client.get(f"/service-requests/{uuid.uuid4()}", headers={"X-Correlation-Id": "abc-123"})
    assert response.status_code == 404

    records = [record for record in caplog.records if record.name == "app.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/service-requests/{id}"
        and getattr(record, "status_code", None) == 404
        and getattr(record, "user_id", None) == "agent-1"
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_transition_logs_carry_request_and_correlation(
    client: TestClient,
    db_session: Session,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO)
    request = _seed_request(db_session)

    response = client.post(
        f"/service-requests/{request.id}/schedule",
        json={"scheduled_date": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()},
        headers={"X-Correlation-Id": "abc-456"},
    )
    assert response.status_code == 200

    records = [record for record in caplog.records if record.name == "app.service_requests"]
    assert any(
        record.getMessage() == "service_request.status_changed"
        and getattr(record, "service_request_id", None) == str(request.id)
        and getattr(record, "from_status", None) == "ASSIGNED"
        and getattr(record, "to_status", None) == "SCHEDULED"
        and getattr(record, "correlation_id", None) == "abc-456"
        for record in records
    )


def test_json_formatter_keeps_known_fields_only() -> None:
    formatter = JsonLogFormatter("aqua-api")
    record = logging.makeLogRecord(
        {
            "name": "app.payments",
            "levelname": "WARNING",
            "msg": "payment.refresh_failed",
            "service_request_id": "sr-1",
            "error": "x" * 900,
            "secret_token": "do-not-log",
        }
    )

    token = set_correlation_id("corr-fmt-1")
    try:
        line = json.loads(formatter.format(record))
    finally:
        reset_correlation_id(token)

    assert line["service"] == "aqua-api"
    assert line["msg"] == "payment.refresh_failed"
    assert line["correlation_id"] == "corr-fmt-1"
    assert line["fields"]["service_request_id"] == "sr-1"
    assert len(line["fields"]["error"]) == 500
    assert "secret_token" not in line["fields"]
