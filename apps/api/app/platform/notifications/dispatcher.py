from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Protocol

import httpx

from app.core.config import get_settings


logger = logging.getLogger("app.notifications")


class PushDispatcher(Protocol):
    """Delivers one push notification. May raise; callers catch."""

    def send(self, push_token: str, title: str, body: str, data: dict[str, Any]) -> None: ...


class ExpoPushDispatcher:
    def __init__(self, url: str, timeout: float = 10.0, client: httpx.Client | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._client = client

    def send(self, push_token: str, title: str, body: str, data: dict[str, Any]) -> None:
        message = {
            "to": push_token,
            "sound": "default",
            "title": title,
            "body": body,
            "data": data,
        }
        if self._client is not None:
            response = self._client.post(self.url, json=message, timeout=self.timeout)
        else:
            response = httpx.post(self.url, json=message, timeout=self.timeout)
        response.raise_for_status()

        payload = response.json()
        ticket = payload.get("data") if isinstance(payload, dict) else None
        if isinstance(ticket, dict) and ticket.get("status") == "error":
            raise RuntimeError(f"push rejected: {ticket.get('message', 'unknown error')}")


class NullPushDispatcher:
    def send(self, push_token: str, title: str, body: str, data: dict[str, Any]) -> None:
        logger.debug("notification.skipped", extra={"action": data.get("action")})


_DISPATCHER: PushDispatcher | None = None
_DISPATCHER_LOCK = Lock()


def build_push_dispatcher() -> PushDispatcher:
    settings = get_settings()
    if not settings.notifications_enabled:
        return NullPushDispatcher()
    return ExpoPushDispatcher(settings.expo_push_url, timeout=settings.expo_push_timeout_seconds)


def get_push_dispatcher() -> PushDispatcher:
    global _DISPATCHER
    with _DISPATCHER_LOCK:
        if _DISPATCHER is None:
            _DISPATCHER = build_push_dispatcher()
        return _DISPATCHER


def set_push_dispatcher(dispatcher: PushDispatcher | None) -> None:
    global _DISPATCHER
    with _DISPATCHER_LOCK:
        _DISPATCHER = dispatcher
