from __future__ import annotations

from collections.abc import Generator
from decimal import Decimal
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.franchise.models import Franchise
from app.business.payments.models import Payment, PaymentStatus
from app.business.users.models import User
from app.core.auth import get_current_actor
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app
from app.platform.notifications.dispatcher import NullPushDispatcher, set_push_dispatcher
from app.platform.security.context import Actor, Role


CURRENT_ACTOR: dict[str, Actor] = {}


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
    CURRENT_ACTOR["actor"] = Actor(user_id="admin-1", role=Role.ADMIN)
    yield
    set_push_dispatcher(None)
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_actor] = lambda: CURRENT_ACTOR["actor"]
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def people(db_session: Session) -> dict[str, Any]:
    db_session.add_all(
        [
            User(id="admin-1", role="admin"),
            User(id="owner-1", role="franchise_owner"),
            User(id="customer-1", name="Asha", role="customer", city="Pune"),
            User(id="customer-2", role="customer", city="Pune"),
        ]
    )
    db_session.flush()
    franchise = Franchise(name="Pune Central", city="Pune", owner_id="owner-1")
    db_session.add(franchise)
    db_session.commit()
    return {"franchise": franchise}


def _act_as(user_id: str, role: Role, **kwargs: Any) -> None:
    CURRENT_ACTOR["actor"] = Actor(user_id=user_id, role=role, **kwargs)


def test_admin_manages_products_and_customers_see_active_only(client: TestClient, people: dict[str, Any]) -> None:
    created = client.post(
        "/products",
        json={"name": "AquaPure RO", "rent_price": "499", "deposit": "1000", "images": ["ro.png"]},
    )
    assert created.status_code == 201
    product = created.json()
    assert product["images"] == ["ro.png"]
    assert Decimal(product["rent_price"]) == Decimal("499")

    retired = client.post("/products", json={"name": "Legacy UV"}).json()
    updated = client.put(f"/products/{retired['id']}", json={"is_active": False})
    assert updated.status_code == 200
    assert updated.json()["is_active"] is False

    assert {row["name"] for row in client.get("/products", params={"include_inactive": True}).json()} == {
        "AquaPure RO",
        "Legacy UV",
    }

    _act_as("customer-1", Role.CUSTOMER)
    assert [row["name"] for row in client.get("/products", params={"include_inactive": True}).json()] == ["AquaPure RO"]
    assert client.get(f"/products/{retired['id']}").status_code == 404
    assert client.post("/products", json={"name": "Sneaky"}).status_code == 403


def test_push_token_belongs_to_real_user_during_view_as(
    client: TestClient,
    people: dict[str, Any],
    db_session: Session,
) -> None:
    _act_as("owner-1", Role.FRANCHISE_OWNER, original_user_id="admin-1", original_role=Role.ADMIN)

    me = client.get("/users/me")
    assert me.status_code == 200
    assert me.json()["id"] == "owner-1"
    assert me.json()["view_as_role"] == "admin"

    response = client.put("/users/me/push-token", json={"push_token": "ExponentPushToken[abc]"})
    assert response.status_code == 200
    assert response.json()["id"] == "admin-1"
    assert db_session.get(User, "admin-1").push_notification_token == "ExponentPushToken[abc]"
    assert db_session.get(User, "owner-1").push_notification_token is None

    cleared = client.put("/users/me/push-token", json={"push_token": ""})
    assert cleared.status_code == 200
    assert db_session.get(User, "admin-1").push_notification_token is None


def test_payments_are_scoped_to_their_customer(
    client: TestClient,
    people: dict[str, Any],
    db_session: Session,
) -> None:
    payment = Payment(
        customer_id="customer-1",
        franchise_id=people["franchise"].id,
        amount=Decimal("1499.00"),
        status=PaymentStatus.COMPLETED,
    )
    db_session.add(payment)
    db_session.commit()

    _act_as("customer-1", Role.CUSTOMER)
    assert [row["id"] for row in client.get("/payments").json()] == [str(payment.id)]
    assert client.get(f"/payments/{payment.id}").json()["status"] == "COMPLETED"

    _act_as("customer-2", Role.CUSTOMER)
    assert client.get("/payments").json() == []
    assert client.get(f"/payments/{payment.id}").status_code == 403

    _act_as("owner-1", Role.FRANCHISE_OWNER)
    assert len(client.get("/payments").json()) == 1
