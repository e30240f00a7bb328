"""
Factory for payment processor clients.
"""
from __future__ import annotations

from application.ports.payment_processor import PaymentProcessor
from core.settings import payment_settings


def get_payment_processor() -> PaymentProcessor:
    from .paypal_client import PayPalClient
    return PayPalClient.from_settings(payment_settings)
