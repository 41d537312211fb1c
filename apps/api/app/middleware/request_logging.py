from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("app.request")


def _request_user_id(request: Request) -> str | None:
    context = getattr(request.state, "context", None)
    return getattr(context, "user_id", None)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed = time.perf_counter() - started
            path = resolve_http_path_label(request)
            observe_http_request(method=request.method, path=path, status=500, duration=elapsed)
            logger.exception(
                "http.error",
                extra={
                    "method": request.method,
                    "path": path,
                    "status_code": 500,
                    "duration_ms": round(elapsed * 1000, 2),
                    "user_id": _request_user_id(request),
                },
            )
            raise

        elapsed = time.perf_counter() - started
        # resolved after routing so the label is the route template, not the raw path
        path = resolve_http_path_label(request)
        observe_http_request(method=request.method, path=path, status=response.status_code, duration=elapsed)
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round(elapsed * 1000, 2),
                "user_id": _request_user_id(request),
            },
        )
        return response
