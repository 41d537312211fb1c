from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.platform.security.context import Actor


@dataclass
class RequestContext:
    correlation_id: str
    client: str
    user_id: str | None = None
    role: str | None = None
    view_as_by: str | None = None

    def bind_actor(self, actor: Actor) -> None:
        self.user_id = actor.user_id
        self.role = str(actor.role)
        self.view_as_by = actor.original_user_id


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Expose per-request caller details on ``request.state.context``.

    The actor fields are filled in by ``get_current_actor`` once the token is resolved.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = getattr(request.state, "correlation_id", None) or ""
        request.state.context = RequestContext(
            correlation_id=correlation_id,
            client=request.headers.get("x-client", "unknown"),
        )
        response = await call_next(request)
        response.headers["x-request-id"] = correlation_id
        return response
