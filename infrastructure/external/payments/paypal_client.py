"""
PayPal REST adapter (Orders v2, Vault v3) on top of httpx.

Notes on API usage:
- OAuth2 client-credentials tokens are cached until shortly before expiry.
- Order creation carries a ``PayPal-Request-Id`` so PayPal de-duplicates
  retried POSTs.
- Error bodies look like ``{name, message, debug_id, details: [{issue,
  field, description}]}``; 4xx become ``ProcessorApiError``, 429/5xx and
  transport failures become ``PaymentRecoverableError``.
"""
from __future__ import annotations

import time
import uuid
from typing import Any, Optional, Sequence

import httpx

from application.dtos.payments import (
    ApiErrorDetail,
    PaymentSource,
    ProcessorOrder,
    PurchaseUnit,
    WalletSource,
)
from application.ports.payment_processor import (
    PaymentProviderError,
    PaymentRecoverableError,
    ProcessorApiError,
)
from core.settings import PaymentSettings, payment_settings
from infrastructure.external.payments.base import BasePaymentClient
from shared.codes.payment_codes import PaymentCode


# refresh the token this many seconds before PayPal says it expires
TOKEN_EXPIRY_MARGIN = 60


class PayPalClient(BasePaymentClient):
    provider = "paypal"

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        base_url: str,
        timeouts: Optional[dict[str, float]] = None,
        retry: Optional[dict[str, Any]] = None,
        partner_attribution_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(base_url=base_url, timeouts=timeouts, retry=retry, transport=transport)
        self._client_id = client_id
        self._client_secret = client_secret
        self._partner_attribution_id = partner_attribution_id
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    @classmethod
    def from_settings(cls, cfg: PaymentSettings = payment_settings) -> "PayPalClient":
        if not cfg.paypal.client_id or not cfg.paypal.client_secret:
            raise RuntimeError("PAYPAL__CLIENT_ID / PAYPAL__CLIENT_SECRET not configured")
        return cls(
            client_id=cfg.paypal.client_id,
            client_secret=cfg.paypal.client_secret,
            base_url=cfg.paypal.base_url,
            timeouts=cfg.timeouts.model_dump(),
            retry={"max": cfg.retry.max, "base": cfg.retry.base_backoff},
            partner_attribution_id=cfg.paypal.partner_attribution_id,
        )

    # ------------------------------------------------------------------
    # transport helpers
    # ------------------------------------------------------------------
    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        async def _do() -> httpx.Response:
            async with self.client() as c:
                return await c.request(method, path, **kwargs)

        try:
            return await self._retry(_do)
        except httpx.TimeoutException as exc:
            raise PaymentRecoverableError(
                f"PayPal request timed out: {method} {path}",
                provider=self.provider,
                provider_code="TIMEOUT",
            ) from exc
        except httpx.TransportError as exc:
            raise PaymentRecoverableError(
                f"PayPal transport error: {exc}",
                provider=self.provider,
                provider_code="TRANSPORT_ERROR",
            ) from exc

    async def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        resp = await self._send(
            "POST",
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self._client_id, self._client_secret),
            headers={"Accept": "application/json"},
        )
        if resp.status_code != 200:
            body = self._safe_json(resp)
            raise PaymentProviderError(
                str(body.get("error_description") or "PayPal authentication failed"),
                provider=self.provider,
                provider_code=str(body.get("error") or resp.status_code),
                code=PaymentCode.AUTHENTICATION_FAILED,
            )
        body = self._safe_json(resp)
        if not body.get("access_token"):
            raise PaymentProviderError(
                "PayPal authentication returned no access token",
                provider=self.provider,
                provider_code=str(resp.status_code),
                code=PaymentCode.AUTHENTICATION_FAILED,
            )
        self._token = body["access_token"]
        self._token_expires_at = time.monotonic() + max(0, int(body.get("expires_in", 0)) - TOKEN_EXPIRY_MARGIN)
        return self._token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {await self._access_token()}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        if request_id:
            headers["PayPal-Request-Id"] = request_id
        if self._partner_attribution_id:
            headers["PayPal-Partner-Attribution-Id"] = self._partner_attribution_id

        resp = await self._send(method, path, json=json, headers=headers)
        if resp.status_code >= 400:
            raise self._error_from_response(resp)
        return self._safe_json(resp)

    @staticmethod
    def _safe_json(resp: httpx.Response) -> dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def _error_from_response(self, resp: httpx.Response) -> PaymentProviderError:
        body = self._safe_json(resp)
        message = str(body.get("message") or resp.reason_phrase or f"HTTP {resp.status_code}")
        name = body.get("name")
        if resp.status_code == 429 or resp.status_code >= 500:
            return PaymentRecoverableError(message, provider=self.provider, provider_code=name or str(resp.status_code))
        raw_details = body.get("details")
        issues = [
            ApiErrorDetail.model_validate(d)
            for d in (raw_details if isinstance(raw_details, list) else [])
            if isinstance(d, dict)
        ]
        return ProcessorApiError(
            message,
            provider=self.provider,
            issues=issues,
            provider_code=name,
            debug_id=body.get("debug_id"),
        )

    # ------------------------------------------------------------------
    # PaymentProcessor
    # ------------------------------------------------------------------
    async def create_order(self, purchase_units: Sequence[PurchaseUnit]) -> ProcessorOrder:
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [unit.model_dump(exclude_none=True) for unit in purchase_units],
        }
        body = await self._request("POST", "/v2/checkout/orders", json=payload, request_id=str(uuid.uuid4()))
        order = ProcessorOrder.model_validate(body)
        self._log("paypal_order_created", paypal_order_id=order.id, status=self._map_status(order.status))
        return order

    async def confirm_payment_source(self, order_id: str, source: PaymentSource) -> ProcessorOrder:
        body = await self._request(
            "POST",
            f"/v2/checkout/orders/{order_id}/confirm-payment-source",
            json={"payment_source": source.to_payload()},
        )
        order = ProcessorOrder.model_validate(body)
        self._log(
            "paypal_payment_source_confirmed",
            paypal_order_id=order.id,
            source=source.kind,
            status=self._map_status(order.status),
        )
        return order

    async def setup_tokens(self, source: WalletSource) -> dict[str, Any]:
        body = await self._request(
            "POST",
            "/v3/vault/setup-tokens",
            json={"payment_source": source.to_payload()},
            request_id=str(uuid.uuid4()),
        )
        self._log("paypal_setup_token_created", setup_token_id=body.get("id"))
        return body
