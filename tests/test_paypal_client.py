import json
from decimal import Decimal

import httpx
import pytest

from application.dtos.payments import ExperienceContext, OxxoSource, WalletSource
from application.ports.payment_processor import (
    PaymentProviderError,
    PaymentRecoverableError,
    ProcessorApiError,
)
from application.services.purchase_units import purchase_unit_from_order
from infrastructure.external.payments.paypal_client import PayPalClient
from shared.codes.payment_codes import PaymentCode

from conftest import make_order


BASE_URL = "https://api-m.sandbox.paypal.com"
PAYER_ACTION = "https://www.sandbox.paypal.com/payment/oxxo?token=5O190127TN364715T"


class PayPalSandbox:
    """Records requests and answers like the PayPal REST API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_calls = 0
        self.overrides: dict[str, httpx.Response] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.overrides:
            return self.overrides[path]
        if path == "/v1/oauth2/token":
            self.token_calls += 1
            return httpx.Response(200, json={"access_token": "A21AA-token", "token_type": "Bearer", "expires_in": 32400})
        if path == "/v2/checkout/orders":
            return httpx.Response(201, json={
                "id": "5O190127TN364715T",
                "status": "CREATED",
                "links": [{"rel": "self", "href": f"{BASE_URL}/v2/checkout/orders/5O190127TN364715T", "method": "GET"}],
            })
        if path.endswith("/confirm-payment-source"):
            return httpx.Response(200, json={
                "id": "5O190127TN364715T",
                "status": "PAYER_ACTION_REQUIRED",
                "links": [
                    {"rel": "self", "href": f"{BASE_URL}/v2/checkout/orders/5O190127TN364715T", "method": "GET"},
                    {"rel": "payer-action", "href": PAYER_ACTION, "method": "GET"},
                ],
            })
        if path == "/v3/vault/setup-tokens":
            return httpx.Response(201, json={"id": "5C991763VB2781612", "status": "PAYER_ACTION_REQUIRED"})
        return httpx.Response(404, json={"name": "RESOURCE_NOT_FOUND", "message": "not found"})

    def last(self, path: str) -> httpx.Request:
        return [r for r in self.requests if r.url.path == path][-1]


def _client(sandbox, **kwargs) -> PayPalClient:
    return PayPalClient(
        client_id="client",
        client_secret="secret",
        base_url=BASE_URL,
        retry={"max": 1, "base": 0.0},
        transport=httpx.MockTransport(sandbox),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_create_and_confirm_oxxo_order():
    sandbox = PayPalSandbox()
    client = _client(sandbox)
    order = make_order(total="300.00", order_id=42)

    created = await client.create_order([purchase_unit_from_order(order)])
    confirmed = await client.confirm_payment_source(
        created.id,
        OxxoSource(name="Ana Lopez", email="ana@example.com", country_code="MX"),
    )
    await client.aclose()

    assert created.id == "5O190127TN364715T"
    assert confirmed.payer_action_url() == PAYER_ACTION

    create_req = sandbox.last("/v2/checkout/orders")
    assert create_req.headers["Authorization"] == "Bearer A21AA-token"
    assert create_req.headers["PayPal-Request-Id"]
    body = json.loads(create_req.content)
    assert body["intent"] == "CAPTURE"
    unit = body["purchase_units"][0]
    assert unit["amount"] == {
        "currency_code": "MXN",
        "value": "300.00",
        "breakdown": {"item_total": {"currency_code": "MXN", "value": "300.00"}},
    }
    assert unit["custom_id"] == "42"
    assert unit["invoice_id"] == "WC-42"
    assert unit["items"][0]["quantity"] == "2"

    confirm_req = sandbox.last("/v2/checkout/orders/5O190127TN364715T/confirm-payment-source")
    assert json.loads(confirm_req.content) == {
        "payment_source": {"oxxo": {"name": "Ana Lopez", "email": "ana@example.com", "country_code": "MX"}}
    }
    # token fetched once and reused
    assert sandbox.token_calls == 1


@pytest.mark.asyncio
async def test_setup_token_payload_and_partner_header():
    sandbox = PayPalSandbox()
    client = _client(sandbox, partner_attribution_id="Woo_PPCP")
    source = WalletSource(
        usage_type="MERCHANT",
        experience_context=ExperienceContext(return_url="https://shop/return", cancel_url="https://shop/cancel"),
    )
    result = await client.setup_tokens(source)

    assert result["id"] == "5C991763VB2781612"
    req = sandbox.last("/v3/vault/setup-tokens")
    assert req.headers["PayPal-Partner-Attribution-Id"] == "Woo_PPCP"
    assert json.loads(req.content) == {
        "payment_source": {
            "paypal": {
                "usage_type": "MERCHANT",
                "experience_context": {"return_url": "https://shop/return", "cancel_url": "https://shop/cancel"},
            }
        }
    }


@pytest.mark.asyncio
async def test_structured_error_becomes_processor_api_error():
    sandbox = PayPalSandbox()
    sandbox.overrides["/v2/checkout/orders"] = httpx.Response(422, json={
        "name": "UNPROCESSABLE_ENTITY",
        "message": "The requested action could not be performed.",
        "debug_id": "b2aaac7fc8f2b",
        "details": [
            {"issue": "DECIMAL_PRECISION", "field": "/purchase_units/@reference_id=='default'/amount/value",
             "description": "If the currency supports decimals, only two decimal place precision is supported."},
            {"issue": "ITEM_TOTAL_MISMATCH", "description": "Should equal sum of items."},
        ],
    })
    client = _client(sandbox)
    with pytest.raises(ProcessorApiError) as ei:
        await client.create_order([purchase_unit_from_order(make_order(order_id=1))])

    err = ei.value
    assert err.provider_code == "UNPROCESSABLE_ENTITY"
    assert err.debug_id == "b2aaac7fc8f2b"
    assert err.diagnostic() == (
        "DECIMAL_PRECISION /purchase_units/@reference_id=='default'/amount/value "
        "If the currency supports decimals, only two decimal place precision is supported.; "
        "ITEM_TOTAL_MISMATCH Should equal sum of items."
    )


@pytest.mark.asyncio
async def test_error_without_details_falls_back_to_message():
    sandbox = PayPalSandbox()
    sandbox.overrides["/v2/checkout/orders"] = httpx.Response(400, json={"name": "INVALID_REQUEST", "message": "Request is not well-formed."})
    with pytest.raises(ProcessorApiError) as ei:
        await _client(sandbox).create_order([purchase_unit_from_order(make_order(order_id=1))])
    assert ei.value.diagnostic() == "Request is not well-formed."


@pytest.mark.asyncio
async def test_server_error_is_recoverable():
    sandbox = PayPalSandbox()
    sandbox.overrides["/v2/checkout/orders"] = httpx.Response(503, json={"name": "SERVICE_UNAVAILABLE", "message": "try later"})
    with pytest.raises(PaymentRecoverableError) as ei:
        await _client(sandbox).create_order([purchase_unit_from_order(make_order(order_id=1))])
    assert ei.value.code == PaymentCode.PROVIDER_RECOVERABLE


@pytest.mark.asyncio
async def test_transport_failure_is_retried_then_recoverable():
    attempts = []

    def handler(request):
        attempts.append(request.url.path)
        raise httpx.ConnectError("connection refused", request=request)

    client = PayPalClient(
        client_id="client",
        client_secret="secret",
        base_url=BASE_URL,
        retry={"max": 1, "base": 0.0},
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(PaymentRecoverableError):
        await client.setup_tokens(WalletSource())
    assert attempts == ["/v1/oauth2/token", "/v1/oauth2/token"]


@pytest.mark.asyncio
async def test_authentication_failure():
    sandbox = PayPalSandbox()
    sandbox.overrides["/v1/oauth2/token"] = httpx.Response(
        401, json={"error": "invalid_client", "error_description": "Client Authentication failed"}
    )
    with pytest.raises(PaymentProviderError) as ei:
        await _client(sandbox).setup_tokens(WalletSource())
    assert ei.value.code == PaymentCode.AUTHENTICATION_FAILED
    assert ei.value.message == "Client Authentication failed"


@pytest.mark.asyncio
async def test_token_reply_without_access_token():
    sandbox = PayPalSandbox()
    sandbox.overrides["/v1/oauth2/token"] = httpx.Response(200, json={"token_type": "Bearer"})
    with pytest.raises(PaymentProviderError) as ei:
        await _client(sandbox).create_order([purchase_unit_from_order(make_order(order_id=7))])
    assert ei.value.code == PaymentCode.AUTHENTICATION_FAILED
    assert ei.value.message == "PayPal authentication returned no access token"
    assert [r.url.path for r in sandbox.requests] == ["/v1/oauth2/token"]


def test_purchase_unit_drops_items_that_do_not_reconcile():
    order = make_order(total="300.00", order_id=9)
    order.total = Decimal("310.00")
    # shipping is not itemised, so line items no longer sum to the total
    unit = purchase_unit_from_order(order, invoice_prefix="MX-")
    assert unit.items == []
    assert unit.amount.breakdown is None
    assert unit.amount.value == "310.00"
    assert unit.invoice_id == "MX-9"


def test_purchase_unit_zero_decimal_currency():
    order = make_order(total="1500", order_id=3)
    order.currency = "JPY"
    unit = purchase_unit_from_order(order)
    assert unit.amount.value == "1500"
    assert unit.items[0].unit_amount.value == "750"
    assert unit.amount.breakdown["item_total"].value == "1500"
    assert Decimal(unit.amount.value) == order.total
