import logging
from datetime import datetime
from typing import Any

from fastapi import Depends
from jose import JWTError, jwt
from starlette.requests import Request

from app.context import get_correlation_id
from app.core.config import get_settings
from app.core.errors import UnauthorizedError
from app.platform.security.context import Actor
from app.platform.security.errors import AuthorizationError
from app.platform.security.guard import AccessGuard, get_access_guard


logger = logging.getLogger("app.auth")


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    return auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def issue_token(claims: dict[str, Any], expires_at: datetime | None = None) -> str:
    settings = get_settings()
    payload = dict(claims)
    if expires_at is not None:
        payload["exp"] = int(expires_at.timestamp())
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


async def get_current_actor(request: Request, guard: AccessGuard = Depends(get_access_guard)) -> Actor:
    token = _bearer_token(request)
    if not token:
        raise UnauthorizedError()

    try:
        claims = decode_token(token)
    except JWTError as exc:
        raise UnauthorizedError("invalid token") from exc

    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    try:
        actor = guard.resolve_actor(claims, correlation_id=correlation_id)
    except AuthorizationError as exc:
        logger.info("auth.rejected", extra={"error": str(exc)})
        raise UnauthorizedError(str(exc)) from exc

    context = getattr(request.state, "context", None)
    if context is not None:
        context.bind_actor(actor)
    return actor
