"""Pytest bootstrap configuration.

Environment variables are set before any module that reads application
settings is imported; in-memory repositories and a stub PayPal processor
back the service-level tests.
"""
import os

os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PAYPAL__CLIENT_ID", "test-client-id")
os.environ.setdefault("PAYPAL__CLIENT_SECRET", "test-client-secret")

import copy
from decimal import Decimal
from typing import Any, Optional, Sequence

import pytest

from application.dtos.payments import Link, ProcessorOrder, PurchaseUnit, WalletSource
from domain.common.exceptions import (
    ConcurrentModificationException,
    DuplicateRenewalOrderException,
    OrderNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import BillingContact, LineItem, Order, OrderStatus
from domain.order.repository import OrderRepository
from domain.subscription.entity import Subscription, SubscriptionStatus
from domain.subscription.repository import SubscriptionRepository


class InMemoryStore:
    def __init__(self) -> None:
        self.orders: dict[int, Order] = {}
        self.subscriptions: dict[int, Subscription] = {}
        self.next_order_id = 1000
        self.next_subscription_id = 1

    def snapshot(self):
        return copy.deepcopy((self.orders, self.subscriptions))

    def restore(self, snap) -> None:
        self.orders, self.subscriptions = snap


class InMemoryOrderRepository(OrderRepository):
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def create(self, order: Order) -> Order:
        if order.parent_subscription_id is not None and order.transaction_id:
            if await self.find_renewal(order.parent_subscription_id, order.transaction_id):
                raise DuplicateRenewalOrderException(order.parent_subscription_id, order.transaction_id)
        stored = copy.deepcopy(order)
        if stored.id is None:
            stored.id = self.store.next_order_id
            self.store.next_order_id += 1
        self.store.orders[stored.id] = stored
        return copy.deepcopy(stored)

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        order = self.store.orders.get(order_id)
        return copy.deepcopy(order) if order else None

    async def update(self, order: Order) -> Order:
        stored = self.store.orders.get(order.id)
        if stored is None:
            raise OrderNotFoundException(order.id)
        if stored.version != order.version:
            raise ConcurrentModificationException(order.id, order.version)
        order.version += 1
        self.store.orders[order.id] = copy.deepcopy(order)
        return order

    async def find_renewal(self, subscription_id: int, transaction_id: str) -> Optional[Order]:
        for order in self.store.orders.values():
            if order.parent_subscription_id == subscription_id and order.transaction_id == transaction_id:
                return copy.deepcopy(order)
        return None

    async def list_by_subscription(self, subscription_id: int) -> list[Order]:
        return [copy.deepcopy(o) for o in self.store.orders.values() if o.parent_subscription_id == subscription_id]


class InMemorySubscriptionRepository(SubscriptionRepository):
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def create(self, subscription: Subscription) -> Subscription:
        stored = copy.deepcopy(subscription)
        if stored.id is None:
            stored.id = self.store.next_subscription_id
            self.store.next_subscription_id += 1
        self.store.subscriptions[stored.id] = stored
        return copy.deepcopy(stored)

    async def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        sub = self.store.subscriptions.get(subscription_id)
        return copy.deepcopy(sub) if sub else None

    async def list_by_billing_agreement_id(self, billing_agreement_id: str) -> list[Subscription]:
        return [
            copy.deepcopy(s)
            for s in self.store.subscriptions.values()
            if s.billing_agreement_id == billing_agreement_id
        ]


class InMemoryUnitOfWork(AbstractUnitOfWork):
    def __init__(self, store: InMemoryStore, *, readonly: bool = False) -> None:
        super().__init__(readonly=readonly)
        self.store = store
        self._snapshot = None

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        self._snapshot = self.store.snapshot()
        self.order_repository = InMemoryOrderRepository(self.store)
        self.subscription_repository = InMemorySubscriptionRepository(self.store)
        return self

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        if self._snapshot is not None:
            self.store.restore(self._snapshot)
        self._committed = False


class StubProcessor:
    """Scriptable stand-in for the PayPal client."""

    provider = "stub"

    def __init__(self) -> None:
        self.created = ProcessorOrder(id="PAYPAL-ORDER-1", status="CREATED")
        self.confirmed = ProcessorOrder(
            id="PAYPAL-ORDER-1",
            status="PAYER_ACTION_REQUIRED",
            links=[
                Link(rel="self", href="https://api.sandbox.paypal.com/v2/checkout/orders/PAYPAL-ORDER-1"),
                Link(rel="payer-action", href="https://sandbox.paypal.com/payment/oxxo?token=PAYPAL-ORDER-1"),
            ],
        )
        self.setup_token: dict[str, Any] = {"id": "SETUP-TOKEN-1", "status": "PAYER_ACTION_REQUIRED"}
        self.create_error: Optional[Exception] = None
        self.confirm_error: Optional[Exception] = None
        self.setup_error: Optional[Exception] = None
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    async def create_order(self, purchase_units: Sequence[PurchaseUnit]) -> ProcessorOrder:
        self.calls.append(("create_order", list(purchase_units)))
        if self.create_error:
            raise self.create_error
        return self.created

    async def confirm_payment_source(self, order_id: str, source) -> ProcessorOrder:
        self.calls.append(("confirm_payment_source", (order_id, source)))
        if self.confirm_error:
            raise self.confirm_error
        return self.confirmed

    async def setup_tokens(self, source: WalletSource) -> dict[str, Any]:
        self.calls.append(("setup_tokens", source))
        if self.setup_error:
            raise self.setup_error
        return self.setup_token

    async def aclose(self) -> None:
        self.closed = True


def make_order(
    *,
    status: OrderStatus = OrderStatus.PENDING_PAYMENT,
    total: str = "300.00",
    physical: bool = True,
    order_id: Optional[int] = None,
) -> Order:
    return Order(
        id=order_id,
        status=status,
        total=Decimal(total),
        currency="MXN",
        line_items=[
            LineItem(product_id=11, quantity=2, unit_price=Decimal(total) / 2, is_physical=physical, name="Mug"),
        ],
        billing=BillingContact(first_name="Ana", last_name="Lopez", email="ana@example.com", country_code="MX"),
    )


def make_subscription(
    billing_agreement_id: Optional[str] = "B-123",
    *,
    physical: bool = False,
) -> Subscription:
    return Subscription(
        id=None,
        billing_agreement_id=billing_agreement_id,
        status=SubscriptionStatus.ACTIVE,
        total=Decimal("15.00"),
        currency="USD",
        line_items=[LineItem(product_id=7, quantity=1, unit_price=Decimal("15.00"), is_physical=physical, name="Plan")],
        billing=BillingContact(first_name="Sam", last_name="Diaz", email="sam@example.com", country_code="US"),
        schedule={"period": "month", "interval": 1},
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def uow_factory(store):
    def _factory(*, readonly: bool = False) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(store, readonly=readonly)
    return _factory


@pytest.fixture
def processor() -> StubProcessor:
    return StubProcessor()
