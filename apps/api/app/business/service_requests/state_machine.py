"""Service request status machine.

The transition table and the per-target preconditions live here as plain functions over
already-loaded data; the service layer gathers whatever database facts a check needs and
passes them in.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from app.business.service_requests.models import ServiceRequest, ServiceRequestStatus, ServiceRequestType
from app.core.errors import BadRequestError
from app.platform.action_history.models import ActionType


VALID_TRANSITIONS: dict[ServiceRequestStatus, frozenset[ServiceRequestStatus]] = {
    ServiceRequestStatus.CREATED: frozenset({ServiceRequestStatus.ASSIGNED, ServiceRequestStatus.CANCELLED}),
    ServiceRequestStatus.ASSIGNED: frozenset(
        {ServiceRequestStatus.SCHEDULED, ServiceRequestStatus.CANCELLED, ServiceRequestStatus.ASSIGNED}
    ),
    ServiceRequestStatus.SCHEDULED: frozenset({ServiceRequestStatus.IN_PROGRESS, ServiceRequestStatus.CANCELLED}),
    ServiceRequestStatus.IN_PROGRESS: frozenset(
        {ServiceRequestStatus.PAYMENT_PENDING, ServiceRequestStatus.COMPLETED, ServiceRequestStatus.CANCELLED}
    ),
    ServiceRequestStatus.PAYMENT_PENDING: frozenset({ServiceRequestStatus.COMPLETED, ServiceRequestStatus.CANCELLED}),
    ServiceRequestStatus.COMPLETED: frozenset(),
    ServiceRequestStatus.CANCELLED: frozenset({ServiceRequestStatus.ASSIGNED, ServiceRequestStatus.SCHEDULED}),
}

ACTION_TYPE_FOR_STATUS: dict[ServiceRequestStatus, ActionType] = {
    ServiceRequestStatus.CREATED: ActionType.SERVICE_REQUEST_CREATED,
    ServiceRequestStatus.ASSIGNED: ActionType.SERVICE_REQUEST_ASSIGNED,
    ServiceRequestStatus.SCHEDULED: ActionType.SERVICE_REQUEST_SCHEDULED,
    ServiceRequestStatus.IN_PROGRESS: ActionType.SERVICE_REQUEST_IN_PROGRESS,
    ServiceRequestStatus.PAYMENT_PENDING: ActionType.SERVICE_REQUEST_PAYMENT_PENDING,
    ServiceRequestStatus.COMPLETED: ActionType.SERVICE_REQUEST_COMPLETED,
    ServiceRequestStatus.CANCELLED: ActionType.SERVICE_REQUEST_CANCELLED,
}

for _table_name, _table in (("VALID_TRANSITIONS", VALID_TRANSITIONS), ("ACTION_TYPE_FOR_STATUS", ACTION_TYPE_FOR_STATUS)):
    _missing = set(ServiceRequestStatus) - set(_table)
    if _missing:
        raise RuntimeError(f"{_table_name} does not handle {sorted(_missing)}")


def parse_images(raw: str | None) -> list[str]:
    """Decode a stored JSON image list; anything unreadable is an empty list."""
    if not raw:
        return []
    try:
        value: Any = json.loads(raw)
    except (TypeError, ValueError):
        return []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if isinstance(item, str) and item]


def dump_images(images: list[str] | None) -> str | None:
    if not images:
        return None
    return json.dumps(list(images))


def valid_targets(current: ServiceRequestStatus) -> list[str]:
    return sorted(str(item) for item in VALID_TRANSITIONS[current])


def assert_transition(current: str, target: ServiceRequestStatus) -> ServiceRequestStatus:
    try:
        current_status = ServiceRequestStatus(current)
    except ValueError as exc:
        raise BadRequestError(f"unknown current status {current}") from exc
    if target not in VALID_TRANSITIONS[current_status]:
        targets = ", ".join(valid_targets(current_status)) or "none"
        raise BadRequestError(
            f"invalid status transition from {current_status} to {target}; valid transitions: {targets}"
        )
    return current_status


@dataclass(slots=True)
class TransitionFacts:
    """Database facts a precondition check may need, loaded by the caller."""

    agent_is_valid: bool = False
    installation_payment_completed: bool = False
    installation_status: str | None = None


@dataclass(slots=True)
class TransitionPlan:
    current: ServiceRequestStatus
    target: ServiceRequestStatus
    changes: dict[str, Any] = field(default_factory=dict)


def resolve_images(target: ServiceRequestStatus, before_images: list[str], after_images: list[str]) -> list[str]:
    """Images sent with a transition: before images when starting work, after images otherwise."""
    if target == ServiceRequestStatus.IN_PROGRESS:
        return before_images or after_images
    return after_images or before_images


def plan_transition(
    request: ServiceRequest,
    target: ServiceRequestStatus,
    *,
    agent_id: str | None,
    scheduled_date: Any,
    before_images: list[str],
    after_images: list[str],
    facts: TransitionFacts,
) -> TransitionPlan:
    """Validate a move to ``target`` and return the column changes to apply.

    Raises ``BadRequestError`` before anything has been written.
    """
    current = assert_transition(request.status, target)
    images = resolve_images(target, before_images, after_images)
    completion_images = after_images or parse_images(request.after_images)
    changes: dict[str, Any] = {"status": target}

    if target == ServiceRequestStatus.ASSIGNED:
        if not agent_id:
            raise BadRequestError("agent id is required to assign a service request")
        if not facts.agent_is_valid:
            raise BadRequestError("assigned user is not an active service agent")
    elif target == ServiceRequestStatus.SCHEDULED:
        if not request.assigned_to_id:
            raise BadRequestError("cannot schedule without an assigned agent")
        if agent_id and not facts.agent_is_valid:
            raise BadRequestError("assigned user is not an active service agent")
        if scheduled_date is None:
            raise BadRequestError("scheduled date is required")
    elif target == ServiceRequestStatus.IN_PROGRESS:
        if request.type == ServiceRequestType.INSTALLATION and not before_images:
            raise BadRequestError("before images are required to start an installation service request")
    elif target == ServiceRequestStatus.PAYMENT_PENDING:
        if not request.requires_payment:
            raise BadRequestError("this service request does not require payment")
        if not after_images:
            raise BadRequestError("completion images are required before requesting payment")
    elif target == ServiceRequestStatus.COMPLETED:
        if not request.is_installation_linked and not completion_images:
            raise BadRequestError("completion images are required to mark a service request completed")
        if request.requires_payment and current == ServiceRequestStatus.IN_PROGRESS:
            raise BadRequestError("service requests requiring payment must go through PAYMENT_PENDING first")
        if request.requires_payment and request.is_installation_linked and not facts.installation_payment_completed:
            raise BadRequestError("payment for this installation has not been completed")

    if current == ServiceRequestStatus.CANCELLED and request.is_installation_linked:
        if facts.installation_status in {"INSTALLATION_COMPLETED", "REJECTED"}:
            raise BadRequestError(f"cannot reactivate: installation request is {facts.installation_status}")

    if target == ServiceRequestStatus.CANCELLED:
        changes["before_images"] = None
        changes["after_images"] = None
    elif images:
        field_name = "before_images" if target == ServiceRequestStatus.IN_PROGRESS else "after_images"
        changes[field_name] = dump_images(images)

    if agent_id:
        changes["assigned_to_id"] = agent_id
    if scheduled_date is not None:
        changes["scheduled_date"] = scheduled_date

    return TransitionPlan(current=current, target=target, changes=changes)
