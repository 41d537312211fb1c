from app.platform.security.context import Actor, Role
from app.platform.security.errors import AuthorizationError, ViewAsSessionExpiredError
from app.platform.security.guard import AccessGuard, get_access_guard
from app.platform.security.view_as import (
    InMemoryViewAsSessionStore,
    RedisViewAsSessionStore,
    ViewAsSession,
    ViewAsSessionStore,
    get_view_as_store,
    set_view_as_store,
)

__all__ = [
    "Actor",
    "Role",
    "AuthorizationError",
    "ViewAsSessionExpiredError",
    "AccessGuard",
    "get_access_guard",
    "ViewAsSession",
    "ViewAsSessionStore",
    "InMemoryViewAsSessionStore",
    "RedisViewAsSessionStore",
    "get_view_as_store",
    "set_view_as_store",
]
