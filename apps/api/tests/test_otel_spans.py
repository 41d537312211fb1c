from __future__ import annotations

import os
from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("OTEL_ENABLED", "true")

from app.business.payments.gateway import PaymentGatewayError, RazorpayGateway
from app.context import reset_correlation_id, set_correlation_id
from app.core.auth import get_current_actor
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app
from app.otel import setup_inmemory_otel
from app.platform.security.context import Actor, Role


class _SubscriptionApi:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail

    def fetch(self, subscription_id: str) -> dict[str, Any]:
        if self.fail:
            raise ConnectionError("connection reset")
        return {"id": subscription_id, "status": "active"}

    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        return {"id": "sub_9", "short_url": "https://rzp.io/i/9", "plan_id": data["plan_id"]}


class _InvoiceApi:
    def all(self, params: dict[str, Any]) -> dict[str, Any]:
        return {"items": [{"id": "inv_1", "status": "paid", "payment_id": "pay_1"}]}


class FakeRazorpayClient:
    def __init__(self, fail: bool = False) -> None:
        self.subscription = _SubscriptionApi(fail)
        self.invoice = _InvoiceApi()


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
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("aqua-api")
    exporter.clear()
    return exporter


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_actor] = lambda: Actor(user_id="customer-1", role=Role.CUSTOMER)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_request_span_contains_correlation_id_and_client(client: TestClient, span_exporter: InMemorySpanExporter) -> None:
    response = client.get("/service-requests", headers={"X-Correlation-Id": "otel-corr-1", "X-Client": "mobile"})
    assert response.status_code == 200

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)
    assert any(span.attributes.get("aqua.client") == "mobile" for span in spans)


def test_gateway_calls_are_traced(span_exporter: InMemorySpanExporter) -> None:
    gateway = RazorpayGateway("key", "secret", client=FakeRazorpayClient())

    token = set_correlation_id("otel-gw-1")
    try:
        gateway.fetch_subscription("sub_1")
        invoices = gateway.list_invoices("sub_1")
        created = gateway.create_subscription("plan_1", 120, {"serviceRequestId": "sr-1"})
    finally:
        reset_correlation_id(token)

    assert invoices[0]["payment_id"] == "pay_1"
    assert created["short_url"] == "https://rzp.io/i/9"
    spans = {span.name: span for span in span_exporter.get_finished_spans()}
    assert spans["razorpay.fetch_subscription"].attributes.get("subscription_id") == "sub_1"
    assert spans["razorpay.fetch_subscription"].attributes.get("correlation_id") == "otel-gw-1"
    assert spans["razorpay.list_invoices"].attributes.get("invoice_count") == 1
    assert spans["razorpay.create_subscription"].attributes.get("plan_id") == "plan_1"


def test_gateway_errors_are_wrapped(span_exporter: InMemorySpanExporter) -> None:
    gateway = RazorpayGateway("key", "secret", client=FakeRazorpayClient(fail=True))

    with pytest.raises(PaymentGatewayError):
        gateway.fetch_subscription("sub_1")

    spans = [span for span in span_exporter.get_finished_spans() if span.name == "razorpay.fetch_subscription"]
    assert spans
