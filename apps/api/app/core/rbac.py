from collections.abc import Callable

from fastapi import Depends

from app.core.auth import get_current_actor
from app.core.errors import ForbiddenError
from app.platform.security.context import Actor, Role


def require_roles(*roles: Role) -> Callable[[Actor], Actor]:
    async def checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise ForbiddenError(f"role {actor.role} may not perform this action")
        return actor

    return checker
