from app.platform.notifications.dispatcher import (
    ExpoPushDispatcher,
    NullPushDispatcher,
    PushDispatcher,
    get_push_dispatcher,
    set_push_dispatcher,
)
from app.platform.notifications.service import ServiceRequestNotifier, service_request_notifier

__all__ = [
    "ExpoPushDispatcher",
    "NullPushDispatcher",
    "PushDispatcher",
    "get_push_dispatcher",
    "set_push_dispatcher",
    "ServiceRequestNotifier",
    "service_request_notifier",
]
