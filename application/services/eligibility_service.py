"""
Checkout eligibility for the restricted gateways, over a posted cart snapshot.

The domain validator takes synchronous lookups; the order-pay order is
loaded up front so the predicates stay pure.
"""
from __future__ import annotations

from typing import Callable, Optional

from pydantic import BaseModel

from application.dtos.payments import EligibilityQuery, ProductSnapshot
from core.logging_config import get_logger
from domain.checkout.eligibility import (
    Cart,
    CartItem,
    CheckoutContext,
    EligibilityValidator,
    Product,
    ProductType,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order


logger = get_logger(__name__)


class EligibilityResult(BaseModel):
    eligible: bool


def product_from_snapshot(snapshot: ProductSnapshot) -> Product:
    return Product(
        id=snapshot.id,
        type=ProductType(snapshot.type),
        is_downloadable=snapshot.is_downloadable,
        is_virtual=snapshot.is_virtual,
        variations=[product_from_snapshot(v) for v in snapshot.variations],
    )


class EligibilityService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def _load_order(self, order_id: Optional[int]) -> Optional[Order]:
        if not order_id or order_id <= 0:
            return None
        async with self._uow_factory(readonly=True) as uow:
            return await uow.order_repository.get_by_id(order_id)

    async def check(self, query: EligibilityQuery) -> EligibilityResult:
        products: dict[int, Product] = {}
        cart: Optional[Cart] = None
        if query.cart is not None:
            for line in query.cart.items:
                products[line.product.id] = product_from_snapshot(line.product)
            cart = Cart(
                total=query.cart.total,
                items=[CartItem(product_id=line.product.id, quantity=line.quantity) for line in query.cart.items],
            )

        order = await self._load_order(query.order_pay_id) if query.is_order_pay_page else None
        if order is not None:
            for item in order.line_items:
                products.setdefault(
                    item.product_id,
                    Product(id=item.product_id, is_virtual=not item.is_physical),
                )

        validator = EligibilityValidator(
            product_lookup=products.get,
            order_lookup=lambda order_id: order if order is not None and order.id == order_id else None,
        )
        context = CheckoutContext(
            cart=cart,
            is_order_pay_page=query.is_order_pay_page,
            order_pay_id=query.order_pay_id,
        )
        eligible = validator.is_amount_eligible(query.minimum, query.maximum, context)
        logger.debug(
            "eligibility_checked",
            eligible=eligible,
            order_pay_id=query.order_pay_id,
            is_order_pay_page=query.is_order_pay_page,
        )
        return EligibilityResult(eligible=eligible)
