"""
Payment-related settings using pydantic-settings v2 with nested env keys.

This module is isolated so core.config.Settings stays focused on the app.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 5.0
    write: float = 5.0
    total: float = 10.0


class PaymentRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class WebhookSettings(BaseModel):
    ip_allowlist: list[str] | None = None  # Optional IPs/CIDRs allowed to post webhooks


class PayPalSettings(BaseModel):
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    sandbox: bool = True
    api_base: Optional[str] = None  # overrides the sandbox/live default
    partner_attribution_id: Optional[str] = None
    invoice_prefix: str = "WC-"

    @property
    def base_url(self) -> str:
        if self.api_base:
            return self.api_base.rstrip("/")
        return "https://api-m.sandbox.paypal.com" if self.sandbox else "https://api-m.paypal.com"


class OxxoSettings(BaseModel):
    enabled: bool = False
    title: str = "OXXO"
    description: str = "OXXO allows you to pay bills and online purchases in-store with cash."
    checkout_url: str = "/checkout"
    return_url: str = "/checkout/order-received/{order_id}"


class VaultSettings(BaseModel):
    return_url: str = "/my-account/payment-methods"
    cancel_url: str = "/my-account/add-payment-method"


class PaymentSettings(BaseSettings):
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    retry: PaymentRetry = Field(default_factory=PaymentRetry)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)

    paypal: PayPalSettings = Field(default_factory=PayPalSettings)
    oxxo: OxxoSettings = Field(default_factory=OxxoSettings)
    vault: VaultSettings = Field(default_factory=VaultSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
