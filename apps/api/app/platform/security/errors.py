from __future__ import annotations


class AuthorizationError(Exception):
    """Base authorization error raised while resolving an actor."""


class ViewAsSessionExpiredError(AuthorizationError):
    """Raised when a view-as token no longer has a live session behind it."""

    def __init__(self, original_user_id: str, target_user_id: str) -> None:
        self.original_user_id = original_user_id
        self.target_user_id = target_user_id
        super().__init__("view-as session expired or invalid")
