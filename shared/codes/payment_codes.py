"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    PROVIDER_API_ERROR = 60002
    TIMEOUT = 60003
    RATE_LIMITED = 60004
    AUTHENTICATION_FAILED = 60005


# PayPal order status → internal order status
PROVIDER_STATUS_TO_INTERNAL = {
    "paypal": {
        "CREATED": "pending-payment",
        "SAVED": "pending-payment",
        "APPROVED": "on-hold",
        "PAYER_ACTION_REQUIRED": "on-hold",
        "VOIDED": "cancelled",
        "COMPLETED": "completed",
    },
}
