from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Protocol

from app.core.config import get_settings


logger = logging.getLogger("app.view_as")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ViewAsSession:
    original_user_id: str
    original_role: str
    target_user_id: str
    target_role: str
    franchise_area_id: str | None
    created_at: datetime
    expires_at: datetime

    @property
    def key(self) -> str:
        return session_key(self.original_user_id, self.target_user_id)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_json(self) -> str:
        payload = asdict(self)
        payload["created_at"] = self.created_at.isoformat()
        payload["expires_at"] = self.expires_at.isoformat()
        return json.dumps(payload)

    @classmethod
    def from_json(cls, raw: str) -> ViewAsSession:
        payload: dict[str, Any] = json.loads(raw)
        payload["created_at"] = datetime.fromisoformat(payload["created_at"])
        payload["expires_at"] = datetime.fromisoformat(payload["expires_at"])
        return cls(**payload)


def session_key(original_user_id: str, target_user_id: str) -> str:
    return f"{original_user_id}:{target_user_id}"


class ViewAsSessionStore(Protocol):
    """TTL-keyed storage for view-as sessions."""

    def put(self, session: ViewAsSession) -> None:
        ...

    def get(self, original_user_id: str, target_user_id: str) -> ViewAsSession | None:
        ...

    def delete_for_user(self, original_user_id: str) -> int:
        ...

    def purge_expired(self) -> int:
        ...


class InMemoryViewAsSessionStore:
    """Process-local store. Sessions vanish on restart; callers re-authenticate."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._lock = Lock()
        self._sessions: dict[str, ViewAsSession] = {}

    def put(self, session: ViewAsSession) -> None:
        with self._lock:
            self._sessions[session.key] = session

    def get(self, original_user_id: str, target_user_id: str) -> ViewAsSession | None:
        key = session_key(original_user_id, target_user_id)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                return None
            if session.is_expired(self._clock()):
                del self._sessions[key]
                return None
            return session

    def delete_for_user(self, original_user_id: str) -> int:
        prefix = f"{original_user_id}:"
        with self._lock:
            keys = [key for key in self._sessions if key.startswith(prefix)]
            for key in keys:
                del self._sessions[key]
        return len(keys)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, session in self._sessions.items() if session.is_expired(now)]
            for key in expired:
                del self._sessions[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


class RedisViewAsSessionStore:
    """Redis-backed store; expiry is delegated to key TTLs."""

    key_prefix = "view_as:"

    def __init__(self, client: Any, clock: Callable[[], datetime] = utcnow) -> None:
        self._client = client
        self._clock = clock

    @classmethod
    def from_url(cls, url: str) -> RedisViewAsSessionStore:
        import redis

        return cls(redis.from_url(url, decode_responses=True))

    def put(self, session: ViewAsSession) -> None:
        ttl = max(1, int((session.expires_at - self._clock()).total_seconds()))
        self._client.setex(self.key_prefix + session.key, ttl, session.to_json())

    def get(self, original_user_id: str, target_user_id: str) -> ViewAsSession | None:
        raw = self._client.get(self.key_prefix + session_key(original_user_id, target_user_id))
        if not raw:
            return None
        try:
            session = ViewAsSession.from_json(raw)
        except (ValueError, TypeError, KeyError):
            logger.warning("view_as.session_corrupt", extra={"user_id": original_user_id})
            return None
        if session.is_expired(self._clock()):
            return None
        return session

    def delete_for_user(self, original_user_id: str) -> int:
        keys = list(self._client.scan_iter(match=f"{self.key_prefix}{original_user_id}:*"))
        if not keys:
            return 0
        return int(self._client.delete(*keys))

    def purge_expired(self) -> int:
        return 0


_VIEW_AS_STORE: ViewAsSessionStore | None = None
_VIEW_AS_LOCK = Lock()


def build_view_as_store() -> ViewAsSessionStore:
    settings = get_settings()
    if settings.view_as_backend.lower() == "redis":
        return RedisViewAsSessionStore.from_url(settings.redis_url)
    return InMemoryViewAsSessionStore()


def get_view_as_store() -> ViewAsSessionStore:
    global _VIEW_AS_STORE
    with _VIEW_AS_LOCK:
        if _VIEW_AS_STORE is None:
            _VIEW_AS_STORE = build_view_as_store()
        return _VIEW_AS_STORE


def set_view_as_store(store: ViewAsSessionStore | None) -> None:
    global _VIEW_AS_STORE
    with _VIEW_AS_LOCK:
        _VIEW_AS_STORE = store
