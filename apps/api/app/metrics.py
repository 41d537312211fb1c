from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

service_request_transitions_total = Counter(
    "service_request_transitions_total",
    "Committed service request status transitions",
    ["from_status", "to_status"],
)

service_request_transition_rejections_total = Counter(
    "service_request_transition_rejections_total",
    "Rejected service request status transitions by reason",
    ["reason"],
)

installation_syncs_total = Counter(
    "installation_syncs_total",
    "Installation request status changes cascaded from service requests",
    ["to_status"],
)

payment_reconciliations_total = Counter(
    "payment_reconciliations_total",
    "Payment reconciliation attempts by outcome",
    ["outcome"],
)

subscriptions_created_total = Counter(
    "subscriptions_created_total",
    "Subscriptions created from completed installation payments",
)

notifications_sent_total = Counter(
    "notifications_sent_total",
    "Push notifications handed to the dispatcher",
    ["action"],
)

notification_failures_total = Counter(
    "notification_failures_total",
    "Push notifications that failed and were dropped",
    ["action"],
)

view_as_sessions_purged_total = Counter(
    "view_as_sessions_purged_total",
    "Expired view-as sessions removed by the sweeper",
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    return _UUID_RE.sub("{id}", path)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        route_path = getattr(route, "path_format", None) or getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _PATH_PARAM_RE.sub("{id}", route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_transition(from_status: str, to_status: str) -> None:
    service_request_transitions_total.labels(from_status=from_status, to_status=to_status).inc()


def observe_transition_rejected(reason: str) -> None:
    service_request_transition_rejections_total.labels(reason=reason).inc()


def observe_installation_sync(to_status: str) -> None:
    installation_syncs_total.labels(to_status=to_status).inc()


def observe_reconciliation(outcome: str) -> None:
    payment_reconciliations_total.labels(outcome=outcome).inc()


def observe_subscription_created() -> None:
    subscriptions_created_total.inc()


def observe_notification(action: str, *, failed: bool = False) -> None:
    if failed:
        notification_failures_total.labels(action=action).inc()
    else:
        notifications_sent_total.labels(action=action).inc()


def observe_view_as_purged(count: int) -> None:
    if count > 0:
        view_as_sessions_purged_total.inc(count)


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
