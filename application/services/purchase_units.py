"""
Build PayPal purchase units from a host order.

Always called at payment time so last-moment cart changes are reflected.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from application.dtos.payments import Amount, Item, PurchaseUnit
from domain.order.entity import Order

# currencies PayPal accepts without a decimal part
ZERO_DECIMAL_CURRENCIES = {"HUF", "JPY", "TWD"}


def format_money(amount: Decimal, currency: str) -> str:
    exponent = Decimal("1") if currency.upper() in ZERO_DECIMAL_CURRENCIES else Decimal("0.01")
    return str(Decimal(amount).quantize(exponent, rounding=ROUND_HALF_UP))


def purchase_unit_from_order(order: Order, invoice_prefix: str = "WC-") -> PurchaseUnit:
    currency = order.currency

    def money(value: Decimal) -> Amount:
        return Amount(currency_code=currency, value=format_money(value, currency))

    items = [
        Item(
            name=(line.name or f"Product {line.product_id}")[:127],
            quantity=str(line.quantity),
            unit_amount=money(line.unit_price),
            sku=str(line.product_id),
            category="PHYSICAL_GOODS" if line.is_physical else "DIGITAL_GOODS",
        )
        for line in order.line_items
    ]
    item_total = sum((line.subtotal for line in order.line_items), Decimal("0"))

    amount = money(order.total)
    # Items only travel when they reconcile with the total; otherwise PayPal
    # rejects the breakdown (shipping, fees and coupons are not itemised here).
    if items and format_money(item_total, currency) == amount.value:
        amount.breakdown = {"item_total": money(item_total)}
    else:
        items = []

    return PurchaseUnit(
        reference_id="default",
        custom_id=str(order.id) if order.id is not None else None,
        invoice_id=f"{invoice_prefix}{order.id}" if order.id is not None else None,
        amount=amount,
        items=items,
    )
