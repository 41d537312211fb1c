from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from app.business.service_requests.models import ServiceRequest, ServiceRequestStatus, ServiceRequestType
from app.business.service_requests.state_machine import (
    ACTION_TYPE_FOR_STATUS,
    VALID_TRANSITIONS,
    TransitionFacts,
    dump_images,
    parse_images,
    plan_transition,
)


INVALID_PAIRS = [
    (current, target)
    for current in ServiceRequestStatus
    for target in ServiceRequestStatus
    if target not in VALID_TRANSITIONS[current]
]


def _request(status: ServiceRequestStatus, **overrides) -> ServiceRequest:
    values = {
        "id": uuid.uuid4(),
        "customer_id": "customer-1",
        "product_id": uuid.uuid4(),
        "franchise_id": uuid.uuid4(),
        "type": ServiceRequestType.GENERAL,
        "description": "water tastes odd",
        "status": status,
        "assigned_to_id": "agent-1",
        "requires_payment": False,
    }
    values.update(overrides)
    return ServiceRequest(**values)


def _plan(request: ServiceRequest, target: ServiceRequestStatus, **kwargs):
    params = {
        "agent_id": None,
        "scheduled_date": None,
        "before_images": [],
        "after_images": [],
        "facts": TransitionFacts(),
    }
    params.update(kwargs)
    return plan_transition(request, target, **params)


def test_tables_cover_every_status() -> None:
    assert set(VALID_TRANSITIONS) == set(ServiceRequestStatus)
    assert set(ACTION_TYPE_FOR_STATUS) == set(ServiceRequestStatus)
    assert VALID_TRANSITIONS[ServiceRequestStatus.COMPLETED] == frozenset()


@pytest.mark.parametrize(("current", "target"), INVALID_PAIRS)
def test_transitions_outside_table_are_rejected(current: ServiceRequestStatus, target: ServiceRequestStatus) -> None:
    request = _request(current)

    with pytest.raises(HTTPException) as exc_info:
        _plan(
            request,
            target,
            agent_id="agent-1",
            scheduled_date=datetime.now(timezone.utc) + timedelta(days=1),
            before_images=["b1"],
            after_images=["a1"],
            facts=TransitionFacts(agent_is_valid=True, installation_payment_completed=True),
        )

    assert exc_info.value.status_code == 400
    assert "invalid status transition" in exc_info.value.detail
    assert request.status == current


def test_rejection_lists_valid_targets() -> None:
    with pytest.raises(HTTPException) as exc_info:
        _plan(_request(ServiceRequestStatus.CREATED), ServiceRequestStatus.COMPLETED)

    assert "ASSIGNED" in exc_info.value.detail
    assert "CANCELLED" in exc_info.value.detail


def test_assign_requires_valid_agent() -> None:
    request = _request(ServiceRequestStatus.CREATED, assigned_to_id=None)

    with pytest.raises(HTTPException) as missing:
        _plan(request, ServiceRequestStatus.ASSIGNED)
    assert missing.value.detail == "agent id is required to assign a service request"

    with pytest.raises(HTTPException) as inactive:
        _plan(request, ServiceRequestStatus.ASSIGNED, agent_id="agent-9")
    assert inactive.value.detail == "assigned user is not an active service agent"

    plan = _plan(request, ServiceRequestStatus.ASSIGNED, agent_id="agent-9", facts=TransitionFacts(agent_is_valid=True))
    assert plan.changes["assigned_to_id"] == "agent-9"
    assert plan.changes["status"] == ServiceRequestStatus.ASSIGNED


def test_schedule_requires_date() -> None:
    with pytest.raises(HTTPException) as exc_info:
        _plan(_request(ServiceRequestStatus.ASSIGNED), ServiceRequestStatus.SCHEDULED)

    assert exc_info.value.detail == "scheduled date is required"


def test_installation_start_requires_before_images() -> None:
    request = _request(ServiceRequestStatus.SCHEDULED, type=ServiceRequestType.INSTALLATION)

    with pytest.raises(HTTPException):
        _plan(request, ServiceRequestStatus.IN_PROGRESS)
    assert request.status == ServiceRequestStatus.SCHEDULED

    plan = _plan(request, ServiceRequestStatus.IN_PROGRESS, before_images=["before.jpg"])
    assert parse_images(plan.changes["before_images"]) == ["before.jpg"]


def test_installation_start_ignores_after_images() -> None:
    request = _request(ServiceRequestStatus.SCHEDULED, type=ServiceRequestType.INSTALLATION)

    with pytest.raises(HTTPException) as exc_info:
        _plan(request, ServiceRequestStatus.IN_PROGRESS, before_images=[], after_images=["after.jpg"])

    assert exc_info.value.detail == "before images are required to start an installation service request"


def test_schedule_requires_existing_assignee() -> None:
    tomorrow = datetime.now(timezone.utc) + timedelta(days=1)
    never_assigned = _request(ServiceRequestStatus.CANCELLED, assigned_to_id=None)

    with pytest.raises(HTTPException) as exc_info:
        _plan(
            never_assigned,
            ServiceRequestStatus.SCHEDULED,
            agent_id="agent-9",
            scheduled_date=tomorrow,
            facts=TransitionFacts(agent_is_valid=True),
        )
    assert exc_info.value.detail == "cannot schedule without an assigned agent"

    plan = _plan(_request(ServiceRequestStatus.CANCELLED), ServiceRequestStatus.SCHEDULED, scheduled_date=tomorrow)
    assert plan.changes["scheduled_date"] == tomorrow


def test_payment_pending_needs_after_images_in_the_update() -> None:
    request = _request(
        ServiceRequestStatus.IN_PROGRESS,
        requires_payment=True,
        after_images=dump_images(["stored.jpg"]),
    )

    with pytest.raises(HTTPException) as exc_info:
        _plan(request, ServiceRequestStatus.PAYMENT_PENDING, before_images=["before.jpg"])
    assert exc_info.value.detail == "completion images are required before requesting payment"

    plan = _plan(request, ServiceRequestStatus.PAYMENT_PENDING, after_images=["after.jpg"])
    assert parse_images(plan.changes["after_images"]) == ["after.jpg"]


def test_payment_pending_requires_payment_flag_and_images() -> None:
    with pytest.raises(HTTPException) as not_required:
        _plan(_request(ServiceRequestStatus.IN_PROGRESS), ServiceRequestStatus.PAYMENT_PENDING, after_images=["a"])
    assert not_required.value.detail == "this service request does not require payment"

    with pytest.raises(HTTPException) as no_images:
        _plan(_request(ServiceRequestStatus.IN_PROGRESS, requires_payment=True), ServiceRequestStatus.PAYMENT_PENDING)
    assert no_images.value.detail == "completion images are required before requesting payment"


def test_paid_request_cannot_skip_payment_pending() -> None:
    request = _request(ServiceRequestStatus.IN_PROGRESS, requires_payment=True)

    with pytest.raises(HTTPException) as exc_info:
        _plan(request, ServiceRequestStatus.COMPLETED, after_images=["u1"])

    assert "must go through PAYMENT_PENDING" in exc_info.value.detail


def test_completion_falls_back_to_stored_after_images() -> None:
    request = _request(ServiceRequestStatus.IN_PROGRESS, after_images=dump_images(["stored.jpg"]))

    plan = _plan(request, ServiceRequestStatus.COMPLETED)

    assert plan.changes["status"] == ServiceRequestStatus.COMPLETED


def test_linked_installation_completion_needs_completed_payment() -> None:
    request = _request(
        ServiceRequestStatus.PAYMENT_PENDING,
        type=ServiceRequestType.INSTALLATION,
        requires_payment=True,
        installation_request_id=uuid.uuid4(),
    )

    with pytest.raises(HTTPException) as exc_info:
        _plan(request, ServiceRequestStatus.COMPLETED)
    assert exc_info.value.detail == "payment for this installation has not been completed"

    plan = _plan(request, ServiceRequestStatus.COMPLETED, facts=TransitionFacts(installation_payment_completed=True))
    assert plan.target == ServiceRequestStatus.COMPLETED


def test_cancel_clears_images() -> None:
    request = _request(
        ServiceRequestStatus.IN_PROGRESS,
        before_images=dump_images(["b"]),
        after_images=dump_images(["a"]),
    )

    plan = _plan(request, ServiceRequestStatus.CANCELLED)

    assert plan.changes["before_images"] is None
    assert plan.changes["after_images"] is None


@pytest.mark.parametrize("installation_status", ["INSTALLATION_COMPLETED", "REJECTED"])
def test_reactivation_refused_for_closed_installation(installation_status: str) -> None:
    request = _request(ServiceRequestStatus.CANCELLED, installation_request_id=uuid.uuid4())

    with pytest.raises(HTTPException) as exc_info:
        _plan(
            request,
            ServiceRequestStatus.ASSIGNED,
            agent_id="agent-1",
            facts=TransitionFacts(agent_is_valid=True, installation_status=installation_status),
        )

    assert installation_status in exc_info.value.detail


@pytest.mark.parametrize("raw", [None, "", "not json", "{\"a\": 1}", "[1, \"\", \"ok\"]"])
def test_parse_images_is_defensive(raw: str | None) -> None:
    parsed = parse_images(raw)

    assert parsed == (["ok"] if raw and raw.startswith("[") else [])
