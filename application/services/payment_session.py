"""
Payment session orchestrator for redirect/voucher gateways (OXXO).

Drives create-order -> confirm-payment-source against the processor, stores
the out-of-band ``payer-action`` link on the host order and moves the order
through its state machine. Every failure is returned as a
``PaymentSessionResult`` error; nothing raises past ``begin_payment``.
"""
from __future__ import annotations

from typing import Callable, Optional

from application.dtos.payments import (
    ContactFields,
    PaymentSessionResult,
    PaymentSourceKind,
    build_payment_source,
)
from application.ports.payment_processor import (
    PaymentProcessor,
    PaymentProviderError,
    ProcessorApiError,
)
from application.services.purchase_units import purchase_unit_from_order
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException, OrderNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.correlation.store import CorrelationStore
from domain.order.entity import Order


logger = get_logger(__name__)

PAYPAL_ORDER_META_KEY = "ppcp_paypal_order_id"
AWAITING_PAYMENT_NOTE = "Awaiting OXXO payment."


def contact_from_order(order: Order) -> ContactFields:
    return ContactFields(
        name=order.billing.full_name,
        email=order.billing.email,
        country_code=order.billing.country_code,
    )


class PaymentSessionOrchestrator:
    def __init__(
        self,
        processor: PaymentProcessor,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        checkout_url: str = "/checkout",
        return_url: str = "/checkout/order-received/{order_id}",
        invoice_prefix: str = "WC-",
    ) -> None:
        self.processor = processor
        self._uow_factory = uow_factory
        self.checkout_url = checkout_url
        self.return_url = return_url
        self.invoice_prefix = invoice_prefix

    async def get_order(self, order_id: int) -> Order:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            return order

    async def _save(self, order: Order) -> Order:
        async with self._uow_factory() as uow:
            return await uow.order_repository.update(order)

    async def begin_payment(
        self,
        order: Order,
        source_kind: PaymentSourceKind | str = PaymentSourceKind.OXXO,
        contact: Optional[ContactFields] = None,
    ) -> PaymentSessionResult:
        try:
            order.mark_on_hold(AWAITING_PAYMENT_NOTE)
            order = await self._save(order)
        except BusinessException as exc:
            logger.warning(
                "payment_session_rejected",
                order_id=order.id,
                status=order.status.value,
                error=exc.message,
            )
            return self._failure(order, exc.message)
        except Exception as exc:
            error = str(exc) or type(exc).__name__
            logger.error("payment_session_rejected", order_id=order.id, error=error, exc_info=True)
            return self._failure(order, error)

        contact = contact or contact_from_order(order)
        try:
            source = build_payment_source(source_kind, contact)
            unit = purchase_unit_from_order(order, self.invoice_prefix)
            created = await self.processor.create_order([unit])
            confirmed = await self.processor.confirm_payment_source(created.id, source)
        except ProcessorApiError as exc:
            return await self._fail_order(order, exc.diagnostic(), debug_id=exc.debug_id)
        except PaymentProviderError as exc:
            return await self._fail_order(order, exc.message)
        except ValueError as exc:
            return await self._fail_order(order, str(exc))
        except Exception as exc:
            return await self._fail_order(order, str(exc) or type(exc).__name__, exc_info=True)

        order.update_metadata(PAYPAL_ORDER_META_KEY, created.id)
        payer_action = confirmed.payer_action_url()
        try:
            if payer_action:
                async with self._uow_factory() as uow:
                    store = CorrelationStore(uow.order_repository, uow.subscription_repository)
                    order = await store.set_payer_action(order, payer_action)
            else:
                order = await self._save(order)
        except Exception as exc:
            error = exc.message if isinstance(exc, BusinessException) else (str(exc) or type(exc).__name__)
            logger.error(
                "payment_session_persist_failed",
                order_id=order.id,
                paypal_order_id=created.id,
                error=error,
                exc_info=not isinstance(exc, BusinessException),
            )
            return await self._fail_order(order, error, paypal_order_id=created.id)

        logger.info(
            "payment_session_confirmed",
            order_id=order.id,
            paypal_order_id=created.id,
            source=str(source.kind),
            payer_action=bool(payer_action),
        )
        return PaymentSessionResult(
            ok=True,
            order_id=order.id,
            payer_action_url=payer_action,
            redirect_url=self.return_url.format(order_id=order.id),
            # voucher payments complete out-of-band; keep the cart until then
            clear_cart=payer_action is None,
        )

    async def _fail_order(self, order: Order, error: str, **log_fields) -> PaymentSessionResult:
        logger.error("payment_session_failed", order_id=order.id, error=error, **log_fields)
        try:
            order.mark_failed(error)
            await self._save(order)
        except BusinessException as exc:
            logger.warning(
                "payment_session_fail_transition_rejected",
                order_id=order.id,
                status=order.status.value,
                error=exc.message,
            )
        except Exception as exc:
            logger.error(
                "payment_session_fail_persist_failed",
                order_id=order.id,
                error=str(exc) or type(exc).__name__,
                exc_info=True,
            )
        return self._failure(order, error)

    def _failure(self, order: Order, error: str) -> PaymentSessionResult:
        return PaymentSessionResult(
            ok=False,
            order_id=order.id,
            error=error,
            redirect_url=self.checkout_url,
        )
