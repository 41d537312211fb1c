from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Role(StrEnum):
    ADMIN = "admin"
    FRANCHISE_OWNER = "franchise_owner"
    SERVICE_AGENT = "service_agent"
    CUSTOMER = "customer"


@dataclass(slots=True)
class Actor:
    """The caller every core operation runs on behalf of.

    While an admin or franchise owner is viewing as another user, ``user_id`` and ``role`` are
    the target's and ``original_user_id``/``original_role`` carry the real caller.
    """

    user_id: str
    role: Role
    franchise_area_id: str | None = None
    original_user_id: str | None = None
    original_role: Role | None = None
    correlation_id: str | None = None

    @property
    def is_viewing_as(self) -> bool:
        return self.original_user_id is not None

    @property
    def real_user_id(self) -> str:
        return self.original_user_id or self.user_id

    @property
    def real_role(self) -> Role:
        return self.original_role or self.role
