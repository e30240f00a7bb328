"""
API依赖项 - 应用服务装配
"""
from typing import AsyncIterator

from fastapi import Depends

from application.ports.payment_processor import PaymentProcessor
from application.services.eligibility_service import EligibilityService
from application.services.payment_session import PaymentSessionOrchestrator
from application.services.setup_token_service import SetupTokenService
from application.services.webhook_handlers import PaymentSaleCompletedHandler, WebhookRegistry
from core.settings import payment_settings
from infrastructure.external.payments import get_payment_processor
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


def get_uow_factory():
    return SQLAlchemyUnitOfWork


async def get_processor() -> AsyncIterator[PaymentProcessor]:
    """按请求创建 PayPal 客户端，请求结束后关闭连接"""
    processor = get_payment_processor()
    try:
        yield processor
    finally:
        await processor.aclose()


async def get_webhook_registry(uow_factory=Depends(get_uow_factory)) -> WebhookRegistry:
    return WebhookRegistry([PaymentSaleCompletedHandler(uow_factory)])


async def get_payment_session(
    processor: PaymentProcessor = Depends(get_processor),
    uow_factory=Depends(get_uow_factory),
) -> PaymentSessionOrchestrator:
    return PaymentSessionOrchestrator(
        processor,
        uow_factory,
        checkout_url=payment_settings.oxxo.checkout_url,
        return_url=payment_settings.oxxo.return_url,
        invoice_prefix=payment_settings.paypal.invoice_prefix,
    )


async def get_setup_token_service(
    processor: PaymentProcessor = Depends(get_processor),
) -> SetupTokenService:
    return SetupTokenService(
        processor,
        return_url=payment_settings.vault.return_url,
        cancel_url=payment_settings.vault.cancel_url,
    )


async def get_eligibility_service(uow_factory=Depends(get_uow_factory)) -> EligibilityService:
    return EligibilityService(uow_factory)
