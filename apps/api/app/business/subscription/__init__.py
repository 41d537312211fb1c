from app.business.subscription.models import Subscription, SubscriptionStatus

__all__ = ["Subscription", "SubscriptionStatus"]
