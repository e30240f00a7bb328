"""
Checkout eligibility predicates for restricted gateways (OXXO, Pay upon Invoice).

Everything here is pure: the cart, the order-pay order and the product
catalog are passed in explicitly through ``CheckoutContext`` and the lookup
callables, never read from request globals.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable, Optional

from domain.order.entity import Order


class ProductType(str, Enum):
    SIMPLE = "simple"
    VARIABLE = "variable"
    VARIATION = "variation"


@dataclass
class Product:
    id: int
    type: ProductType = ProductType.SIMPLE
    is_downloadable: bool = False
    is_virtual: bool = False
    variations: list["Product"] = field(default_factory=list)


@dataclass
class CartItem:
    product_id: int
    quantity: int = 1


@dataclass
class Cart:
    total: Decimal
    items: list[CartItem] = field(default_factory=list)


@dataclass
class CheckoutContext:
    """What the current request knows: the live cart and/or the order-pay target."""

    cart: Optional[Cart] = None
    is_order_pay_page: bool = False
    order_pay_id: Optional[int] = None


ProductLookup = Callable[[int], Optional[Product]]
OrderLookup = Callable[[int], Optional[Order]]


def is_physical_good(product: Product) -> bool:
    """False for downloadable/virtual products.

    Variable products are judged conservatively: one downloadable or virtual
    variation disqualifies the product, whichever variation the buyer picked.
    """
    if product.is_downloadable or product.is_virtual:
        return False
    if product.type == ProductType.VARIABLE:
        for variation in product.variations:
            if variation.is_downloadable or variation.is_virtual:
                return False
    return True


# PHP date() tokens accepted in birth date formats
_PHP_TO_STRFTIME = {
    "Y": "%Y",
    "y": "%y",
    "m": "%m",
    "d": "%d",
    "M": "%b",
    "F": "%B",
    "D": "%a",
    "l": "%A",
    "H": "%H",
    "i": "%M",
    "s": "%S",
}


def _to_strftime(fmt: str) -> str:
    if "%" in fmt:
        return fmt
    out = []
    escaped = False
    for ch in fmt:
        if escaped:
            out.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch in _PHP_TO_STRFTIME:
            out.append(_PHP_TO_STRFTIME[ch])
        elif ch.isalpha():
            raise ValueError(f"unsupported date format token: {ch}")
        else:
            out.append(ch)
    return "".join(out)


def _add_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # 29 Feb rolls over to 1 Mar in non-leap target years
        return date(d.year + years, 3, 1)


def is_valid_birth_date(
    date_string: str,
    fmt: str = "Y-m-d",
    now: Optional[datetime] = None,
) -> bool:
    """Strictly parse ``date_string`` and require the holder to be 18 or older."""
    try:
        pattern = _to_strftime(fmt)
        parsed = datetime.strptime(date_string, pattern)
    except (TypeError, ValueError):
        return False

    # reject anything the parser accepted but would not print back identically
    if parsed.strftime(pattern) != date_string:
        return False

    today = (now or datetime.now()).date()
    return today >= _add_years(parsed.date(), 18)


class EligibilityValidator:
    """Amount and physical-goods gate for restricted gateways."""

    def __init__(self, product_lookup: ProductLookup, order_lookup: OrderLookup) -> None:
        self._product_lookup = product_lookup
        self._order_lookup = order_lookup

    def _effective_basis(self, context: CheckoutContext) -> Optional[tuple[Decimal, list[int]]]:
        if context.is_order_pay_page:
            if context.order_pay_id and context.order_pay_id > 0:
                order = self._order_lookup(context.order_pay_id)
                if order is not None:
                    return order.total, [item.product_id for item in order.line_items]
            return None
        if context.cart is not None:
            return Decimal(str(context.cart.total)), [item.product_id for item in context.cart.items]
        return None

    def _all_physical(self, product_ids: Iterable[int]) -> bool:
        for product_id in product_ids:
            product = self._product_lookup(product_id)
            if product is not None and not is_physical_good(product):
                return False
        return True

    def is_amount_eligible(
        self,
        minimum: Decimal | float,
        maximum: Decimal | float,
        context: CheckoutContext,
    ) -> bool:
        basis = self._effective_basis(context)
        if basis is None:
            return True
        total, product_ids = basis
        if total < Decimal(str(minimum)) or total > Decimal(str(maximum)):
            return False
        return self._all_physical(product_ids)

    @staticmethod
    def is_physical_good(product: Product) -> bool:
        return is_physical_good(product)

    @staticmethod
    def is_valid_birth_date(date_string: str, fmt: str = "Y-m-d", now: Optional[datetime] = None) -> bool:
        return is_valid_birth_date(date_string, fmt, now)
