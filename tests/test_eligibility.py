from datetime import datetime
from decimal import Decimal

import pytest

from application.dtos.payments import CartLine, CartSnapshot, EligibilityQuery, ProductSnapshot
from application.services.eligibility_service import EligibilityService
from domain.checkout import (
    Cart,
    CartItem,
    CheckoutContext,
    EligibilityValidator,
    Product,
    ProductType,
    is_physical_good,
    is_valid_birth_date,
)

from conftest import make_order


MUG = Product(id=1)
EBOOK = Product(id=2, is_downloadable=True)
GIFT_CARD = Product(id=3, is_virtual=True)
SHIRT = Product(
    id=4,
    type=ProductType.VARIABLE,
    variations=[Product(id=41, type=ProductType.VARIATION), Product(id=42, type=ProductType.VARIATION)],
)
MIXED = Product(
    id=5,
    type=ProductType.VARIABLE,
    variations=[Product(id=51, type=ProductType.VARIATION), Product(id=52, type=ProductType.VARIATION, is_virtual=True)],
)
CATALOG = {p.id: p for p in (MUG, EBOOK, GIFT_CARD, SHIRT, MIXED)}


def _validator(orders=None):
    orders = orders or {}
    return EligibilityValidator(product_lookup=CATALOG.get, order_lookup=orders.get)


def _cart(total, *product_ids):
    return CheckoutContext(cart=Cart(total=Decimal(total), items=[CartItem(product_id=p) for p in product_ids]))


@pytest.mark.parametrize("total,expected", [("50", False), ("300", True), ("600", False), ("100", True), ("500", True)])
def test_amount_bounds_on_cart_total(total, expected):
    assert _validator().is_amount_eligible(100, 500, _cart(total, MUG.id)) is expected


def test_non_physical_item_disqualifies_cart():
    assert _validator().is_amount_eligible(100, 500, _cart("300", MUG.id, EBOOK.id)) is False
    assert _validator().is_amount_eligible(100, 500, _cart("300", GIFT_CARD.id)) is False


def test_order_pay_page_uses_order_total_not_cart():
    order = make_order(total="600.00", order_id=77)
    context = CheckoutContext(
        cart=Cart(total=Decimal("300"), items=[CartItem(product_id=MUG.id)]),
        is_order_pay_page=True,
        order_pay_id=77,
    )
    assert _validator({77: order}).is_amount_eligible(100, 500, context) is False

    order.total = Decimal("300.00")
    context.cart = Cart(total=Decimal("600"))
    assert _validator({77: order}).is_amount_eligible(100, 500, context) is True


def test_no_basis_is_eligible():
    validator = _validator()
    assert validator.is_amount_eligible(100, 500, CheckoutContext()) is True
    assert validator.is_amount_eligible(
        100, 500, CheckoutContext(is_order_pay_page=True, order_pay_id=0)
    ) is True


def test_physical_good_predicate():
    assert is_physical_good(MUG) is True
    assert is_physical_good(EBOOK) is False
    assert is_physical_good(GIFT_CARD) is False
    assert is_physical_good(SHIRT) is True
    # one virtual variation disqualifies the whole product
    assert is_physical_good(MIXED) is False
    assert EligibilityValidator.is_physical_good(MIXED) is False


NOW = datetime(2026, 10, 18, 12, 0, 0)


@pytest.mark.parametrize(
    "value,fmt,expected",
    [
        ("2010-01-01", "Y-m-d", False),
        ("2000-01-01", "Y-m-d", True),
        ("2020-02-30", "Y-m-d", False),
        ("2008-10-18", "Y-m-d", True),
        ("2008-10-19", "Y-m-d", False),
        ("2000-1-01", "Y-m-d", False),
        ("01.01.2000", "d.m.Y", True),
        ("not a date", "Y-m-d", False),
        ("2000-01-01", "Q-m-d", False),
    ],
)
def test_birth_date(value, fmt, expected):
    assert is_valid_birth_date(value, fmt, now=NOW) is expected


def test_leap_day_birthday_turns_eighteen_on_march_first():
    assert is_valid_birth_date("2008-02-29", now=datetime(2026, 2, 28)) is False
    assert is_valid_birth_date("2008-02-29", now=datetime(2026, 3, 1)) is True


def test_birth_date_relative_to_today():
    assert EligibilityValidator.is_valid_birth_date("2000-01-01", "Y-m-d") is True
    assert EligibilityValidator.is_valid_birth_date("2020-02-30", "Y-m-d") is False


@pytest.mark.asyncio
async def test_service_checks_posted_cart(uow_factory):
    service = EligibilityService(uow_factory)
    query = EligibilityQuery(
        minimum=Decimal("100"),
        maximum=Decimal("500"),
        cart=CartSnapshot(
            total=Decimal("300"),
            items=[CartLine(product=ProductSnapshot(id=1)), CartLine(product=ProductSnapshot(id=2, is_virtual=True))],
        ),
    )
    assert (await service.check(query)).eligible is False

    query.cart.items = query.cart.items[:1]
    assert (await service.check(query)).eligible is True


@pytest.mark.asyncio
async def test_service_loads_order_pay_order(uow_factory):
    async with uow_factory() as uow:
        order = await uow.order_repository.create(make_order(total="300.00", physical=False))

    service = EligibilityService(uow_factory)
    query = EligibilityQuery(minimum=Decimal("100"), maximum=Decimal("500"), is_order_pay_page=True, order_pay_id=order.id)
    # the order's only line item is not physical
    assert (await service.check(query)).eligible is False
