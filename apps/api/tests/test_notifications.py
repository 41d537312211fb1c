from __future__ import annotations

import logging
from collections.abc import Generator
from decimal import Decimal
from typing import Any

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.business.catalog.models import Product
from app.business.franchise.models import Franchise, FranchiseAgent
from app.business.service_requests.models import ServiceRequest, ServiceRequestStatus, ServiceRequestType
from app.business.users.models import User
from app.core.config import get_settings
from app.core.database import Base
from app.platform.notifications.dispatcher import ExpoPushDispatcher
from app.platform.notifications.service import ServiceRequestNotifier
from app.platform.security.context import Actor, Role


class RecordingDispatcher:
    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.fail_for = fail_for or set()
        self.sent: list[tuple[str, str, str, dict[str, Any]]] = []

    def send(self, push_token: str, title: str, body: str, data: dict[str, Any]) -> None:
        if push_token in self.fail_for:
            raise httpx.ConnectError("push endpoint unreachable")
        self.sent.append((push_token, title, body, data))


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
    yield
    get_settings.cache_clear()


@pytest.fixture()
def request_row(db_session: Session) -> ServiceRequest:
    db_session.add_all(
        [
            User(id="admin-1", role="admin", push_notification_token="tok-admin"),
            User(id="owner-1", role="franchise_owner", push_notification_token="tok-owner"),
            User(id="agent-1", role="service_agent", push_notification_token="tok-agent"),
            User(id="agent-2", role="service_agent"),
            User(id="customer-1", name="Asha", role="customer", push_notification_token="tok-customer"),
        ]
    )
    db_session.flush()
    franchise = Franchise(name="Pune Central", city="Pune", owner_id="owner-1")
    product = Product(name="AquaPure RO", rent_price=Decimal("499.00"))
    db_session.add_all([franchise, product])
    db_session.flush()
    db_session.add_all(
        [
            FranchiseAgent(franchise_id=franchise.id, agent_id="agent-1"),
            FranchiseAgent(franchise_id=franchise.id, agent_id="agent-2"),
        ]
    )
    request = ServiceRequest(
        customer_id="customer-1",
        product_id=product.id,
        franchise_id=franchise.id,
        type=ServiceRequestType.REPAIR,
        description="pump noise",
        status=ServiceRequestStatus.COMPLETED,
        assigned_to_id="agent-1",
    )
    db_session.add(request)
    db_session.commit()
    return request


def test_created_notifies_staff_but_not_the_customer(db_session: Session, request_row: ServiceRequest) -> None:
    dispatcher = RecordingDispatcher()
    notifier = ServiceRequestNotifier(dispatcher=dispatcher)

    delivered = notifier.notify(db_session, request_row, "created", Actor(user_id="customer-1", role=Role.CUSTOMER))

    assert delivered == 3
    assert {item[0] for item in dispatcher.sent} == {"tok-owner", "tok-admin", "tok-agent"}
    owner_message = next(item for item in dispatcher.sent if item[0] == "tok-owner")
    assert owner_message[2] == "New repair request from Asha"
    assert owner_message[3]["referenceId"] == str(request_row.id)


def test_completion_skips_the_acting_user(db_session: Session, request_row: ServiceRequest) -> None:
    dispatcher = RecordingDispatcher()
    notifier = ServiceRequestNotifier(dispatcher=dispatcher)

    notifier.notify(db_session, request_row, "completed", Actor(user_id="agent-1", role=Role.SERVICE_AGENT))

    tokens = [item[0] for item in dispatcher.sent]
    assert "tok-agent" not in tokens
    assert set(tokens) == {"tok-customer", "tok-owner", "tok-admin"}
    customer_message = next(item for item in dispatcher.sent if item[0] == "tok-customer")
    assert customer_message[1] == "Service Request Completed"
    assert customer_message[2] == "Your repair request is now completed"


def test_failed_delivery_is_logged_and_others_still_sent(
    db_session: Session,
    request_row: ServiceRequest,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.ERROR)
    dispatcher = RecordingDispatcher(fail_for={"tok-customer"})
    notifier = ServiceRequestNotifier(dispatcher=dispatcher)

    delivered = notifier.notify(db_session, request_row, "assigned", Actor(user_id="owner-1", role=Role.FRANCHISE_OWNER))

    assert delivered == 1
    assert [item[0] for item in dispatcher.sent] == ["tok-agent"]
    assert any(
        record.getMessage() == "notification.failed" and getattr(record, "user_id", None) == "customer-1"
        for record in caplog.records
    )


def test_lookup_failure_returns_zero(
    db_session: Session,
    request_row: ServiceRequest,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    notifier = ServiceRequestNotifier(dispatcher=RecordingDispatcher())

    def _broken(*args: Any, **kwargs: Any) -> list[Any]:
        raise RuntimeError("database went away")

    monkeypatch.setattr(notifier, "_recipients", _broken)

    assert notifier.notify(db_session, request_row, "completed", Actor(user_id="admin-1", role=Role.ADMIN)) == 0


def test_celery_queue_used_when_enabled(
    db_session: Session,
    request_row: ServiceRequest,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    from app.core import celery_app

    queued: list[tuple[Any, ...]] = []
    monkeypatch.setenv("NOTIFICATIONS_VIA_CELERY", "true")
    get_settings.cache_clear()
    monkeypatch.setattr(celery_app.send_push_notification_task, "delay", lambda *args: queued.append(args))
    dispatcher = RecordingDispatcher()

    ServiceRequestNotifier(dispatcher=dispatcher).notify(
        db_session, request_row, "assigned", Actor(user_id="owner-1", role=Role.FRANCHISE_OWNER)
    )

    assert dispatcher.sent == []
    assert {args[0] for args in queued} == {"tok-agent", "tok-customer"}


def test_expo_dispatcher_posts_message_and_raises_on_error_ticket() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if b"tok-bad" in request.content:
            return httpx.Response(200, json={"data": {"status": "error", "message": "DeviceNotRegistered"}})
        return httpx.Response(200, json={"data": {"status": "ok", "id": "ticket-1"}})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    dispatcher = ExpoPushDispatcher("https://exp.host/--/api/v2/push/send", client=client)

    dispatcher.send("tok-good", "Title", "Body", {"action": "completed"})
    with pytest.raises(RuntimeError, match="DeviceNotRegistered"):
        dispatcher.send("tok-bad", "Title", "Body", {"action": "completed"})

    assert len(seen) == 2
    assert seen[0].url == "https://exp.host/--/api/v2/push/send"
