"""
Vault setup-token creation for saving a PayPal wallet as a payment method.
"""
from __future__ import annotations

from application.dtos.payments import ExperienceContext, SetupTokenResult, WalletSource
from application.ports.payment_processor import PaymentProcessor, PaymentProviderError
from core.logging_config import get_logger


logger = get_logger(__name__)


class SetupTokenService:
    def __init__(self, processor: PaymentProcessor, *, return_url: str, cancel_url: str) -> None:
        self.processor = processor
        self.return_url = return_url
        self.cancel_url = cancel_url

    async def create_setup_token(self) -> SetupTokenResult:
        source = WalletSource(
            usage_type="MERCHANT",
            experience_context=ExperienceContext(
                return_url=self.return_url,
                cancel_url=self.cancel_url,
            ),
        )
        try:
            result = await self.processor.setup_tokens(source)
        except PaymentProviderError as exc:
            logger.error("setup_token_failed", provider=exc.provider, error=exc.message)
            return SetupTokenResult(success=False)
        logger.info("setup_token_created", setup_token_id=result.get("id"))
        return SetupTokenResult(success=True, data=result)
