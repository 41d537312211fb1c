import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.context import RequestContextMiddleware
from app.core.errors import error_response
from app.core.events import InternalEvent, event_bus
from app.logging import configure_logging
from app.metrics import observe_view_as_purged
from app.middleware.correlation_id import CorrelationIdMiddleware
from app.middleware.request_logging import RequestLoggingMiddleware
from app.otel import get_fastapi_server_request_hook, setup_otel
from app.platform.security.view_as import ViewAsSessionStore, get_view_as_store


configure_logging()
logger = logging.getLogger("app.lifecycle")
_subscriptions_registered = False


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"event_name": event.name})


def purge_view_as_sessions(store: ViewAsSessionStore) -> int:
    purged = store.purge_expired()
    if purged:
        observe_view_as_purged(purged)
        logger.info("view_as.purged", extra={"purged": purged})
    return purged


async def _purge_view_as_sessions_forever(interval_seconds: float) -> None:
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            purge_view_as_sessions(get_view_as_store())
        except Exception as exc:
            logger.exception("view_as.purge_failed", extra={"error": str(exc)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _subscriptions_registered
    if not _subscriptions_registered:
        event_bus.subscribe("system.started", _on_system_started)
        _subscriptions_registered = True
    event_bus.publish("system.started", {"service": "api"})

    settings = get_settings()
    sweeper = asyncio.create_task(_purge_view_as_sessions_forever(settings.view_as_purge_interval_seconds))
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


settings = get_settings()

app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(request, exc)


setup_otel("aqua-api")

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
