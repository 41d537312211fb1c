from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from app.business.catalog.api import router as products_router
from app.business.franchise.api import router as franchises_router
from app.business.installation.api import router as installation_requests_router
from app.business.payments.api import router as payments_router
from app.business.service_requests.api import router as service_requests_router
from app.business.subscription.api import router as subscriptions_router
from app.business.users.api import router as users_router
from app.core.auth import get_current_actor
from app.core.config import get_settings
from app.metrics import generate_metrics_payload, metrics_content_type
from app.platform.security.context import Actor, Role
from app.platform.view_as.api import router as view_as_router

router = APIRouter()
router.include_router(products_router)
router.include_router(franchises_router)
router.include_router(users_router)
router.include_router(installation_requests_router)
router.include_router(service_requests_router)
router.include_router(subscriptions_router)
router.include_router(payments_router)
router.include_router(view_as_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(actor: Actor = Depends(get_current_actor)) -> dict[str, str | None]:
    return {
        "sub": actor.user_id,
        "role": str(actor.role),
        "view_as_by": actor.original_user_id,
    }


@router.get("/metrics", tags=["system"])
def metrics(actor: Actor = Depends(get_current_actor)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if actor.real_role != Role.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="metrics are restricted to admins")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
