"""Infrastructure models package exports."""
from .base import Base, metadata
from .order import OrderModel
from .subscription import SubscriptionModel

__all__ = [
    "Base",
    "metadata",
    "OrderModel",
    "SubscriptionModel",
]
