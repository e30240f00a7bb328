"""
Transaction id recording shared by every flow that learns a processor
transaction id (webhook renewals, captures, ...).
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from .entity import Order


def record_transaction_id(order: Order, transaction_id: Optional[str]) -> bool:
    """Attach ``transaction_id`` to ``order``.

    Idempotent per order: recording the id the order already carries is a
    no-op. Returns True only when the order was changed.
    """
    transaction_id = (transaction_id or "").strip()
    if not transaction_id:
        return False
    if order.transaction_id == transaction_id:
        return False
    order.transaction_id = transaction_id
    order.add_note(f"PayPal transaction ID: {transaction_id}")
    order.updated_at = datetime.now(timezone.utc)
    return True
