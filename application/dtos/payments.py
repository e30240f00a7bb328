"""
Payment DTOs (Pydantic v2) used at application boundaries.

Processor-facing models mirror the PayPal Orders v2 / Vault v3 wire shapes;
everything else is the contract between API routes and application services.
"""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


PAYER_ACTION_REL = "payer-action"


# ---------------------------------------------------------------------------
# Processor entities
# ---------------------------------------------------------------------------
class Amount(BaseModel):
    currency_code: str
    value: str
    breakdown: Optional[dict[str, "Amount"]] = None

    @field_validator("currency_code")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        u = (v or "").upper()
        if len(u) != 3 or not u.isalpha():
            raise ValueError("currency must be ISO-4217 alpha-3")
        return u


class Item(BaseModel):
    name: str
    quantity: str
    unit_amount: Amount
    sku: Optional[str] = None
    category: Literal["PHYSICAL_GOODS", "DIGITAL_GOODS"] = "PHYSICAL_GOODS"


class PurchaseUnit(BaseModel):
    reference_id: str = "default"
    custom_id: Optional[str] = None
    invoice_id: Optional[str] = None
    amount: Amount
    items: list[Item] = Field(default_factory=list)


class Link(BaseModel):
    rel: str
    href: str
    method: Optional[str] = None


class ProcessorOrder(BaseModel):
    id: str
    status: Optional[str] = None
    links: list[Link] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow")

    def payer_action_url(self) -> Optional[str]:
        for link in self.links:
            if link.rel == PAYER_ACTION_REL:
                return link.href
        return None


class ApiErrorDetail(BaseModel):
    issue: str = ""
    field: str = ""
    description: str = ""

    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# Payment sources (closed tagged union)
# ---------------------------------------------------------------------------
class ExperienceContext(BaseModel):
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None


class WalletSource(BaseModel):
    kind: Literal["paypal"] = "paypal"
    usage_type: Optional[Literal["MERCHANT", "PLATFORM"]] = None
    experience_context: Optional[ExperienceContext] = None

    def to_payload(self) -> dict[str, Any]:
        return {"paypal": self.model_dump(exclude={"kind"}, exclude_none=True)}


class OxxoSource(BaseModel):
    kind: Literal["oxxo"] = "oxxo"
    name: str
    email: str
    country_code: str

    def to_payload(self) -> dict[str, Any]:
        return {"oxxo": self.model_dump(exclude={"kind"})}


PaymentSource = Annotated[Union[WalletSource, OxxoSource], Field(discriminator="kind")]


class PaymentSourceKind(str, Enum):
    PAYPAL = "paypal"
    OXXO = "oxxo"


class ContactFields(BaseModel):
    name: str
    email: str
    country_code: str


def build_payment_source(kind: PaymentSourceKind | str, contact: Optional[ContactFields] = None) -> WalletSource | OxxoSource:
    kind = PaymentSourceKind(kind)
    if kind is PaymentSourceKind.OXXO:
        if contact is None:
            raise ValueError("oxxo payment source requires buyer contact fields")
        return OxxoSource(name=contact.name, email=contact.email, country_code=contact.country_code)
    if kind is PaymentSourceKind.PAYPAL:
        return WalletSource()
    raise ValueError(f"unsupported payment source kind: {kind}")


# ---------------------------------------------------------------------------
# Payment session
# ---------------------------------------------------------------------------
class BeginPayment(BaseModel):
    source_kind: PaymentSourceKind = PaymentSourceKind.OXXO
    contact: Optional[ContactFields] = None


class PaymentSessionResult(BaseModel):
    ok: bool
    order_id: Optional[int] = None
    payer_action_url: Optional[str] = None
    error: Optional[str] = None
    redirect_url: Optional[str] = None
    clear_cart: bool = False


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------
class WebhookNotification(BaseModel):
    id: Optional[str] = None
    event_type: str
    resource: Optional[dict[str, Any]] = None

    model_config = ConfigDict(extra="allow")


class ReconciliationOutcome(str, Enum):
    NOT_RESPONSIBLE = "not_responsible"
    MISSING_RESOURCE = "missing_resource"
    MISSING_CORRELATION_KEY = "missing_correlation_key"
    NO_MATCHING_SUBSCRIPTION = "no_matching_subscription"
    RECONCILED = "reconciled"
    PARTIAL_FAILURE = "partial_failure"
    RENEWAL_FAILED = "renewal_failed"


class RenewalFailure(BaseModel):
    subscription_id: Optional[int] = None
    error: str


class ReconciliationResult(BaseModel):
    success: bool
    outcome: ReconciliationOutcome
    message: Optional[str] = None
    renewal_order_ids: list[int] = Field(default_factory=list)
    duplicates: list[int] = Field(default_factory=list)
    failures: list[RenewalFailure] = Field(default_factory=list)

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success}
        if self.message:
            body["message"] = self.message
        return body


# ---------------------------------------------------------------------------
# Vault setup tokens
# ---------------------------------------------------------------------------
class SetupTokenResult(BaseModel):
    success: bool
    data: Optional[dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------
class ProductSnapshot(BaseModel):
    id: int
    type: Literal["simple", "variable", "variation"] = "simple"
    is_downloadable: bool = False
    is_virtual: bool = False
    variations: list["ProductSnapshot"] = Field(default_factory=list)


class CartLine(BaseModel):
    product: ProductSnapshot
    quantity: int = 1


class CartSnapshot(BaseModel):
    total: Decimal
    items: list[CartLine] = Field(default_factory=list)


class EligibilityQuery(BaseModel):
    minimum: Decimal
    maximum: Decimal
    cart: Optional[CartSnapshot] = None
    is_order_pay_page: bool = False
    order_pay_id: Optional[int] = None


Amount.model_rebuild()
ProductSnapshot.model_rebuild()
