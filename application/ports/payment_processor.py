"""
Payment processor port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol and its error types; infrastructure
implements adapters and raises these errors.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from application.dtos.payments import (
    ApiErrorDetail,
    PaymentSource,
    ProcessorOrder,
    PurchaseUnit,
    WalletSource,
)
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class PaymentProviderError(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: str | None = None,
        details: Optional[dict] = None,
        code: int = PaymentCode.PROVIDER_ERROR,
        error_type: str = "PaymentProviderError",
    ):
        full_details = {"provider": provider, "provider_code": provider_code}
        if details:
            full_details.update(details)
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=full_details,
        )
        self.provider = provider
        self.provider_code = provider_code


class PaymentRecoverableError(PaymentProviderError):
    """Timeouts, transport failures, 429/5xx: safe to retry later."""

    def __init__(self, message: str, *, provider: str, provider_code: str | None = None, details: Optional[dict] = None):
        super().__init__(
            message,
            provider=provider,
            provider_code=provider_code,
            details=details,
            code=PaymentCode.PROVIDER_RECOVERABLE,
            error_type="PaymentRecoverableError",
        )


class ProcessorApiError(PaymentProviderError):
    """Structured API failure carrying PayPal's ``details`` list."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        issues: Sequence[ApiErrorDetail] = (),
        provider_code: str | None = None,
        debug_id: str | None = None,
    ):
        super().__init__(
            message,
            provider=provider,
            provider_code=provider_code,
            details={
                "debug_id": debug_id,
                "issues": [issue.model_dump() for issue in issues],
            },
            code=PaymentCode.PROVIDER_API_ERROR,
            error_type="ProcessorApiError",
        )
        self.issues = list(issues)
        self.debug_id = debug_id

    def diagnostic(self) -> str:
        """Issues rendered as ``issue field description`` and joined with ``; ``."""
        if not self.issues:
            return self.message
        return "; ".join(
            " ".join(part for part in (d.issue, d.field, d.description) if part)
            for d in self.issues
        )


@runtime_checkable
class PaymentProcessor(Protocol):
    """Protocol for the PayPal order/vault endpoints the core needs.

    Implementations should be async, bound every call with a timeout and
    raise the errors above instead of transport exceptions.
    """

    provider: str

    async def create_order(self, purchase_units: Sequence[PurchaseUnit]) -> ProcessorOrder: ...

    async def confirm_payment_source(self, order_id: str, source: PaymentSource) -> ProcessorOrder: ...

    async def setup_tokens(self, source: WalletSource) -> dict[str, Any]: ...

    async def aclose(self) -> None: ...
