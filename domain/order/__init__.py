from .entity import Order, OrderStatus, LineItem, BillingContact, TERMINAL_STATUSES
from .transactions import record_transaction_id

__all__ = [
    "Order",
    "OrderStatus",
    "LineItem",
    "BillingContact",
    "TERMINAL_STATUSES",
    "record_transaction_id",
]
