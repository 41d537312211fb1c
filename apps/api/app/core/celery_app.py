from typing import Any

from celery import Celery

from app.core.config import get_settings
from app.platform.notifications.dispatcher import get_push_dispatcher

settings = get_settings()

celery_app = Celery("aqua_api", broker=settings.redis_url, backend=settings.redis_url)
celery_app.conf.task_ignore_result = True


@celery_app.task(name="app.tasks.send_push_notification")
def send_push_notification_task(push_token: str, title: str, body: str, data: dict[str, Any]) -> None:
    get_push_dispatcher().send(push_token, title, body, data)
