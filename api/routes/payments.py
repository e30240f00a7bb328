"""
Payments API routes.

Thin HTTP layer over the application services: webhook intake, OXXO session
start, vault setup tokens and gateway eligibility. No PayPal details here.
"""
from __future__ import annotations

import ipaddress
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request
from pydantic import ValidationError

from application.dtos.payments import BeginPayment, EligibilityQuery, WebhookNotification
from application.services.eligibility_service import EligibilityService
from application.services.payment_session import PaymentSessionOrchestrator
from application.services.setup_token_service import SetupTokenService
from application.services.webhook_handlers import WebhookRegistry
from api.dependencies import (
    get_eligibility_service,
    get_payment_session,
    get_setup_token_service,
    get_webhook_registry,
)
from core.logging_config import get_logger
from core.response import success_response
from core.settings import payment_settings
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


def _ip_allowed(remote_ip: str, allowlist: list[str]) -> bool:
    try:
        rip = ipaddress.ip_address(remote_ip)
    except ValueError:
        return False
    for entry in allowlist:
        try:
            if "/" in entry:
                if rip in ipaddress.ip_network(entry, strict=False):
                    return True
            elif rip == ipaddress.ip_address(entry):
                return True
        except ValueError:
            continue
    return False


@router.post("/webhooks", summary="PayPal webhook intake")
async def payments_webhook(
    request: Request,
    registry: WebhookRegistry = Depends(get_webhook_registry),
) -> dict[str, Any]:
    # PayPal retries anything but 200, so every outcome is acknowledged
    ct = (request.headers.get("content-type") or "").lower()
    if "application/json" not in ct:
        return {"success": False, "message": "Unsupported content type, expected application/json"}

    allowlist = payment_settings.webhook.ip_allowlist or []
    if allowlist:
        remote_ip = request.client.host if request.client else ""
        if not _ip_allowed(remote_ip, allowlist):
            logger.warning("webhook_ip_not_allowed", remote_ip=remote_ip)
            return {"success": False, "message": "Remote address not allowed"}

    try:
        notification = WebhookNotification.model_validate(await request.json())
    except (ValueError, ValidationError) as exc:
        logger.warning("webhook_invalid_payload", error=str(exc))
        return {"success": False, "message": "Invalid webhook payload"}

    try:
        result = await registry.dispatch(notification)
    except Exception as exc:
        logger.error(
            "webhook_dispatch_failed",
            event_type=notification.event_type,
            event_id=notification.id,
            error=str(exc),
            exc_info=True,
        )
        return {"success": False, "message": "Webhook processing failed"}

    logger.info(
        "webhook_processed",
        event_type=notification.event_type,
        event_id=notification.id,
        outcome=result.outcome.value,
        success=result.success,
    )
    return result.to_response()


@router.post("/orders/{order_id}/oxxo", summary="Begin OXXO voucher payment")
async def begin_oxxo_payment(
    order_id: int,
    payload: Optional[BeginPayment] = Body(default=None),
    session: PaymentSessionOrchestrator = Depends(get_payment_session),
):
    if not payment_settings.oxxo.enabled:
        raise BusinessException(
            code=BusinessCode.FORBIDDEN,
            message="OXXO gateway is disabled",
            error_type="GatewayDisabled",
        )
    payload = payload or BeginPayment()
    order = await session.get_order(order_id)
    result = await session.begin_payment(order, payload.source_kind, payload.contact)
    return success_response(
        data=result.model_dump(mode="json"),
        message="Payment session started" if result.ok else "Payment session failed",
    )


@router.post("/setup-tokens", summary="Create vault setup token")
async def create_setup_token(
    service: SetupTokenService = Depends(get_setup_token_service),
) -> dict[str, Any]:
    result = await service.create_setup_token()
    return result.model_dump(mode="json", exclude_none=True)


@router.post("/eligibility", summary="Gateway amount eligibility")
async def check_eligibility(
    query: EligibilityQuery,
    service: EligibilityService = Depends(get_eligibility_service),
):
    result = await service.check(query)
    return success_response(data=result.model_dump(mode="json"))
