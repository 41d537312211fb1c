from __future__ import annotations

from app.business.subscription.models import Subscription
from app.platform.security.repository import BaseRepository


class SubscriptionRepository(BaseRepository):
    model = Subscription
