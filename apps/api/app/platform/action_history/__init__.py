from app.platform.action_history.models import ActionHistoryEntry, ActionType, AppendOnlyViolation, EntityType
from app.platform.action_history.schemas import ActionHistoryEntryCreate, ActionHistoryEntryRead
from app.platform.action_history.service import list_history, log_action, log_actor_action

__all__ = [
    "ActionHistoryEntry",
    "ActionType",
    "AppendOnlyViolation",
    "EntityType",
    "ActionHistoryEntryCreate",
    "ActionHistoryEntryRead",
    "list_history",
    "log_action",
    "log_actor_action",
]
