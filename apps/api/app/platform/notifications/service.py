from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.business.franchise.models import Franchise, FranchiseAgent
from app.business.service_requests.models import ServiceRequest
from app.business.users.models import User
from app.core.config import get_settings
from app.metrics import observe_notification
from app.platform.notifications.dispatcher import PushDispatcher, get_push_dispatcher
from app.platform.security.context import Actor, Role


logger = logging.getLogger("app.notifications")


@dataclass(slots=True)
class Recipient:
    user_id: str
    push_token: str
    title: str
    body: str


_STATUS_TITLES = {
    "scheduled": "Service Request Scheduled",
    "completed": "Service Request Completed",
    "status_changed": "Service Request Updated",
}


class ServiceRequestNotifier:
    """Post-commit push notifications for service request activity.

    ``notify`` never raises: lookups and deliveries that fail are logged and counted, and
    the committed change stands.
    """

    def __init__(self, dispatcher: PushDispatcher | None = None) -> None:
        self._dispatcher = dispatcher

    @property
    def dispatcher(self) -> PushDispatcher:
        return self._dispatcher or get_push_dispatcher()

    def notify(self, session: Session, request: ServiceRequest, action: str, actor: Actor) -> int:
        try:
            recipients = self._recipients(session, request, action)
        except Exception as exc:
            observe_notification(action, failed=True)
            logger.exception(
                "notification.lookup_failed",
                extra={"service_request_id": str(request.id), "action": action, "error": str(exc)},
            )
            return 0

        data = {
            "referenceId": str(request.id),
            "referenceType": "service_request",
            "action": action,
            "status": request.status,
        }
        delivered = 0
        for recipient in recipients:
            if recipient.user_id == actor.user_id:
                continue
            if self._deliver(recipient, data, request, action):
                delivered += 1
        return delivered

    def _deliver(self, recipient: Recipient, data: dict[str, Any], request: ServiceRequest, action: str) -> bool:
        try:
            if get_settings().notifications_via_celery:
                from app.core.celery_app import send_push_notification_task

                send_push_notification_task.delay(recipient.push_token, recipient.title, recipient.body, data)
            else:
                self.dispatcher.send(recipient.push_token, recipient.title, recipient.body, data)
        except Exception as exc:
            observe_notification(action, failed=True)
            logger.exception(
                "notification.failed",
                extra={
                    "service_request_id": str(request.id),
                    "user_id": recipient.user_id,
                    "action": action,
                    "error": str(exc),
                },
            )
            return False
        observe_notification(action)
        return True

    def _recipients(self, session: Session, request: ServiceRequest, action: str) -> list[Recipient]:
        franchise = session.get(Franchise, request.franchise_id)
        owner = session.get(User, franchise.owner_id) if franchise is not None and franchise.owner_id else None
        customer = session.get(User, request.customer_id)
        agent = session.get(User, request.assigned_to_id) if request.assigned_to_id else None
        admins = session.scalars(
            select(User).where(User.role == Role.ADMIN, User.is_active.is_(True))
        ).all()
        kind = request.type.lower()
        franchise_name = franchise.name if franchise is not None else "franchise"

        planned: list[tuple[User | None, str, str]] = []
        if action == "created":
            customer_name = customer.name if customer is not None and customer.name else "customer"
            planned.append((owner, "New Service Request", f"New {kind} request from {customer_name}"))
            planned.extend((admin, "New Service Request", f"New {kind} request in {franchise_name}") for admin in admins)
            agents = session.scalars(
                select(User)
                .join(FranchiseAgent, FranchiseAgent.agent_id == User.id)
                .where(FranchiseAgent.franchise_id == request.franchise_id, FranchiseAgent.is_active.is_(True))
            ).all()
            planned.extend(
                (item, "New Service Request Available", f"New {kind} request available for assignment") for item in agents
            )
        elif action == "assigned":
            planned.append((agent, "Service Request Assigned", f"A {kind} request has been assigned to you"))
            planned.append((customer, "Service Request Assigned", f"An agent has been assigned to your {kind} request"))
        else:
            title = _STATUS_TITLES.get(action, "Service Request Updated")
            state = request.status.lower().replace("_", " ")
            planned.append((customer, title, f"Your {kind} request is now {state}"))
            planned.append((agent, title, f"The {kind} request assigned to you is now {state}"))
            planned.append((owner, title, f"A {kind} request in {franchise_name} is now {state}"))
            planned.extend((admin, title, f"A {kind} request in {franchise_name} is now {state}") for admin in admins)

        recipients: list[Recipient] = []
        seen: set[str] = set()
        for user, title, body in planned:
            if user is None or not user.push_notification_token or user.id in seen:
                continue
            seen.add(user.id)
            recipients.append(Recipient(user_id=user.id, push_token=user.push_notification_token, title=title, body=body))
        return recipients


service_request_notifier = ServiceRequestNotifier()
