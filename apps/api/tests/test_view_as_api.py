from __future__ import annotations

from collections.abc import Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.franchise.models import Franchise, FranchiseAgent
from app.business.users.models import User
from app.core.auth import issue_token
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app
from app.platform.security.guard import AccessGuard, get_access_guard
from app.platform.security.view_as import InMemoryViewAsSessionStore


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
def store() -> InMemoryViewAsSessionStore:
    return InMemoryViewAsSessionStore()


@pytest.fixture()
def client(db_session: Session, store: InMemoryViewAsSessionStore) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_access_guard] = lambda: AccessGuard(view_as_store=store)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def franchises(db_session: Session) -> dict[str, Any]:
    db_session.add_all(
        [
            User(id="admin-1", role="admin"),
            User(id="owner-1", name="Owner", role="franchise_owner"),
            User(id="agent-1", name="Agent", role="service_agent"),
            User(id="customer-1", role="customer"),
        ]
    )
    db_session.flush()
    owned = Franchise(name="Pune Central", city="Pune", owner_id="owner-1")
    company = Franchise(name="Company Mumbai", city="Mumbai")
    db_session.add_all([owned, company])
    db_session.flush()
    db_session.add(FranchiseAgent(franchise_id=owned.id, agent_id="agent-1"))
    db_session.commit()
    return {"owned": owned, "company": company}


def _auth(user_id: str, role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token({'sub': user_id, 'role': role})}"}


def test_admin_views_as_owner_until_exit(client: TestClient, franchises: dict[str, Any]) -> None:
    started = client.post(
        "/view-as/franchise-owner",
        json={"franchise_id": str(franchises["owned"].id)},
        headers=_auth("admin-1", "admin"),
    )
    assert started.status_code == 200
    body = started.json()
    assert body["target_user_id"] == "owner-1"
    assert body["target_role"] == "franchise_owner"
    view_headers = {"Authorization": f"Bearer {body['access_token']}"}

    me = client.get("/me", headers=view_headers)
    assert me.status_code == 200
    assert me.json() == {"sub": "owner-1", "role": "franchise_owner", "view_as_by": "admin-1"}

    profile = client.get("/users/me", headers=view_headers)
    assert profile.status_code == 200
    assert profile.json()["id"] == "owner-1"
    assert profile.json()["view_as_by"] == "admin-1"

    ended = client.post("/view-as/exit", headers=view_headers)
    assert ended.status_code == 200
    assert ended.json() == {"ended_sessions": 1}

    expired = client.get("/me", headers=view_headers)
    assert expired.status_code == 401
    assert expired.json()["detail"] == "view-as session expired or invalid"


def test_owner_views_as_own_agent(client: TestClient, franchises: dict[str, Any]) -> None:
    started = client.post(
        "/view-as/agent",
        json={"franchise_id": str(franchises["owned"].id), "agent_id": "agent-1"},
        headers=_auth("owner-1", "franchise_owner"),
    )
    assert started.status_code == 200

    me = client.get("/me", headers={"Authorization": f"Bearer {started.json()['access_token']}"})
    assert me.json()["sub"] == "agent-1"
    assert me.json()["view_as_by"] == "owner-1"


def test_view_as_cannot_be_nested(client: TestClient, franchises: dict[str, Any]) -> None:
    started = client.post(
        "/view-as/franchise-owner",
        json={"franchise_id": str(franchises["owned"].id)},
        headers=_auth("admin-1", "admin"),
    )
    view_headers = {"Authorization": f"Bearer {started.json()['access_token']}"}

    nested = client.post(
        "/view-as/agent",
        json={"franchise_id": str(franchises["owned"].id), "agent_id": "agent-1"},
        headers=view_headers,
    )
    assert nested.status_code == 403


def test_company_managed_franchise_has_no_owner_to_view(client: TestClient, franchises: dict[str, Any]) -> None:
    response = client.post(
        "/view-as/franchise-owner",
        json={"franchise_id": str(franchises["company"].id)},
        headers=_auth("admin-1", "admin"),
    )
    assert response.status_code == 400


def test_non_staff_cannot_view_as(client: TestClient, franchises: dict[str, Any]) -> None:
    as_owner = client.post(
        "/view-as/franchise-owner",
        json={"franchise_id": str(franchises["owned"].id)},
        headers=_auth("customer-1", "customer"),
    )
    as_agent = client.post(
        "/view-as/agent",
        json={"franchise_id": str(franchises["company"].id), "agent_id": "agent-1"},
        headers=_auth("owner-1", "franchise_owner"),
    )

    assert as_owner.status_code == 403
    assert as_agent.status_code == 403


def test_agent_outside_franchise_is_rejected(client: TestClient, franchises: dict[str, Any]) -> None:
    response = client.post(
        "/view-as/agent",
        json={"franchise_id": str(franchises["company"].id), "agent_id": "agent-1"},
        headers=_auth("admin-1", "admin"),
    )
    assert response.status_code == 400


def test_missing_token_is_unauthorized(client: TestClient) -> None:
    response = client.get("/me")
    assert response.status_code == 401
    assert response.headers.get("www-authenticate") == "Bearer"
