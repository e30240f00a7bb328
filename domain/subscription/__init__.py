from .entity import Subscription, SubscriptionStatus

__all__ = ["Subscription", "SubscriptionStatus"]
