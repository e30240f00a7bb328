"""
Webhook reconciliation handlers.

Notifications arrive at-least-once and unordered, without a guaranteed
idempotency key, so each handler derives de-duplication from domain state.
Handlers never raise: every outcome is a ``ReconciliationResult``.
"""
from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence, runtime_checkable

from application.dtos.payments import (
    ReconciliationOutcome,
    ReconciliationResult,
    RenewalFailure,
    WebhookNotification,
)
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException, DuplicateRenewalOrderException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.correlation.store import CorrelationStore
from domain.order.transactions import record_transaction_id
from domain.subscription.entity import Subscription


logger = get_logger(__name__)


@runtime_checkable
class RequestHandler(Protocol):
    def event_types(self) -> Sequence[str]: ...

    def responsible_for(self, notification: WebhookNotification) -> bool: ...

    async def handle(self, notification: WebhookNotification) -> ReconciliationResult: ...


def _clean(value) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()


class PaymentSaleCompletedHandler:
    """PAYMENT.SALE.COMPLETED: mint a paid renewal order per matching subscription."""

    EVENT_TYPES = ("PAYMENT.SALE.COMPLETED",)

    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    def event_types(self) -> Sequence[str]:
        return self.EVENT_TYPES

    def responsible_for(self, notification: WebhookNotification) -> bool:
        return notification.event_type in self.EVENT_TYPES

    async def handle(self, notification: WebhookNotification) -> ReconciliationResult:
        if not self.responsible_for(notification):
            return ReconciliationResult(
                success=False,
                outcome=ReconciliationOutcome.NOT_RESPONSIBLE,
                message=f"Handler not responsible for event type {notification.event_type}",
            )

        resource = notification.resource
        if resource is None:
            logger.warning(
                "webhook_missing_resource",
                event_type=notification.event_type,
                event_id=notification.id,
            )
            return ReconciliationResult(
                success=False,
                outcome=ReconciliationOutcome.MISSING_RESOURCE,
                message="Webhook notification carries no resource.",
            )

        billing_agreement_id = _clean(resource.get("billing_agreement_id"))
        if not billing_agreement_id:
            message = "Could not retrieve billing agreement id for subscription."
            logger.warning(
                "webhook_missing_billing_agreement",
                event_type=notification.event_type,
                event_id=notification.id,
            )
            return ReconciliationResult(
                success=False,
                outcome=ReconciliationOutcome.MISSING_CORRELATION_KEY,
                message=message,
            )

        async with self._uow_factory(readonly=True) as uow:
            store = CorrelationStore(uow.order_repository, uow.subscription_repository)
            subscriptions = await store.subscriptions_for(billing_agreement_id)

        if not subscriptions:
            message = f"Could not retrieve subscriptions for billing agreement: {billing_agreement_id}"
            logger.warning(
                "webhook_subscription_not_found",
                billing_agreement_id=billing_agreement_id,
                event_id=notification.id,
            )
            return ReconciliationResult(
                success=False,
                outcome=ReconciliationOutcome.NO_MATCHING_SUBSCRIPTION,
                message=message,
            )
        if len(subscriptions) > 1:
            logger.warning(
                "webhook_billing_agreement_shared",
                billing_agreement_id=billing_agreement_id,
                subscription_ids=[s.id for s in subscriptions],
            )

        transaction_id = _clean(resource.get("id")) or None
        if transaction_id is None:
            logger.warning(
                "webhook_missing_transaction_id",
                billing_agreement_id=billing_agreement_id,
                event_id=notification.id,
            )
        result = ReconciliationResult(success=True, outcome=ReconciliationOutcome.RECONCILED)
        for subscription in subscriptions:
            try:
                renewal_id = await self._renew(subscription, transaction_id)
            except DuplicateRenewalOrderException:
                renewal_id = None
            except Exception as exc:
                # one subscription failing must not block renewals of the others
                error = exc.message if isinstance(exc, BusinessException) else str(exc)
                logger.error(
                    "webhook_renewal_failed",
                    subscription_id=subscription.id,
                    transaction_id=transaction_id,
                    error=error,
                    exc_info=not isinstance(exc, BusinessException),
                )
                result.failures.append(RenewalFailure(subscription_id=subscription.id, error=error))
                continue

            if renewal_id is None:
                logger.info(
                    "webhook_renewal_duplicate_ignored",
                    subscription_id=subscription.id,
                    transaction_id=transaction_id,
                )
                result.duplicates.append(subscription.id)
            else:
                result.renewal_order_ids.append(renewal_id)

        if result.failures:
            if not result.renewal_order_ids and not result.duplicates:
                result.success = False
                result.outcome = ReconciliationOutcome.RENEWAL_FAILED
            else:
                result.outcome = ReconciliationOutcome.PARTIAL_FAILURE
            result.message = (
                f"Renewal failed for {len(result.failures)} of {len(subscriptions)} "
                f"subscriptions on billing agreement {billing_agreement_id}"
            )
        logger.info(
            "webhook_renewals_processed",
            billing_agreement_id=billing_agreement_id,
            transaction_id=transaction_id,
            created=result.renewal_order_ids,
            duplicates=result.duplicates,
            failed=len(result.failures),
        )
        return result

    async def _renew(self, subscription: Subscription, transaction_id: Optional[str]) -> Optional[int]:
        """Create one paid renewal order; None when this transaction was already renewed."""
        async with self._uow_factory() as uow:
            if transaction_id and subscription.id is not None:
                existing = await uow.order_repository.find_renewal(subscription.id, transaction_id)
                if existing is not None:
                    return None

            renewal = subscription.create_renewal_order()
            renewal.payment_complete()
            record_transaction_id(renewal, transaction_id)
            renewal = await uow.order_repository.create(renewal)
            return renewal.id


class WebhookRegistry:
    """Minimal lookup of the handler responsible for a notification."""

    def __init__(self, handlers: Sequence[RequestHandler]) -> None:
        self.handlers = list(handlers)

    def handler_for(self, notification: WebhookNotification) -> Optional[RequestHandler]:
        for handler in self.handlers:
            if handler.responsible_for(notification):
                return handler
        return None

    async def dispatch(self, notification: WebhookNotification) -> ReconciliationResult:
        handler = self.handler_for(notification)
        if handler is None:
            logger.info("webhook_unhandled_event", event_type=notification.event_type, event_id=notification.id)
            return ReconciliationResult(
                success=False,
                outcome=ReconciliationOutcome.NOT_RESPONSIBLE,
                message=f"No handler for event type {notification.event_type}",
            )
        return await handler.handle(notification)
