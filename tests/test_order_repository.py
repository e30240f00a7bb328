from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from application.services.webhook_handlers import PaymentSaleCompletedHandler
from application.dtos.payments import WebhookNotification
from domain.common.exceptions import (
    ConcurrentModificationException,
    DuplicateRenewalOrderException,
    OrderNotFoundException,
)
from domain.order import OrderStatus
from infrastructure.models import Base
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

from conftest import make_order, make_subscription


@pytest_asyncio.fixture
async def sql_uow_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(bind=engine, expire_on_commit=False)

    def _factory(*, readonly: bool = False) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory, readonly=readonly)

    yield _factory
    await engine.dispose()


@pytest.mark.asyncio
async def test_create_and_load_order(sql_uow_factory):
    order = make_order(total="300.00")
    order.update_metadata("ppcp_oxxo_payer_action", "https://paypal.test/voucher")
    async with sql_uow_factory() as uow:
        created = await uow.order_repository.create(order)

    async with sql_uow_factory(readonly=True) as uow:
        loaded = await uow.order_repository.get_by_id(created.id)

    assert loaded.status == OrderStatus.PENDING_PAYMENT
    assert loaded.total == Decimal("300.00")
    assert loaded.currency == "MXN"
    assert loaded.line_items[0].unit_price == Decimal("150.00")
    assert loaded.billing.full_name == "Ana Lopez"
    assert loaded.metadata == {"ppcp_oxxo_payer_action": "https://paypal.test/voucher"}
    assert loaded.version == 0


@pytest.mark.asyncio
async def test_update_is_compare_and_set(sql_uow_factory):
    async with sql_uow_factory() as uow:
        created = await uow.order_repository.create(make_order())

    async with sql_uow_factory(readonly=True) as uow:
        first = await uow.order_repository.get_by_id(created.id)
        second = await uow.order_repository.get_by_id(created.id)

    first.mark_on_hold("Awaiting OXXO payment.")
    async with sql_uow_factory() as uow:
        saved = await uow.order_repository.update(first)
    assert saved.version == 1

    second.cancel()
    with pytest.raises(ConcurrentModificationException):
        async with sql_uow_factory() as uow:
            await uow.order_repository.update(second)

    async with sql_uow_factory(readonly=True) as uow:
        current = await uow.order_repository.get_by_id(created.id)
    assert current.status == OrderStatus.ON_HOLD
    assert current.version == 1
    assert current.notes[-1] == "Awaiting OXXO payment."


@pytest.mark.asyncio
async def test_update_missing_order(sql_uow_factory):
    ghost = make_order(order_id=4242)
    with pytest.raises(OrderNotFoundException):
        async with sql_uow_factory() as uow:
            await uow.order_repository.update(ghost)


@pytest.mark.asyncio
async def test_renewal_unique_per_subscription_and_transaction(sql_uow_factory):
    async with sql_uow_factory() as uow:
        sub = await uow.subscription_repository.create(make_subscription("B-123"))
        renewal = sub.create_renewal_order()
        renewal.transaction_id = "TX-1"
        await uow.order_repository.create(renewal)

    duplicate = sub.create_renewal_order()
    duplicate.transaction_id = "TX-1"
    with pytest.raises(DuplicateRenewalOrderException):
        async with sql_uow_factory() as uow:
            await uow.order_repository.create(duplicate)

    async with sql_uow_factory(readonly=True) as uow:
        found = await uow.order_repository.find_renewal(sub.id, "TX-1")
        renewals = await uow.order_repository.list_by_subscription(sub.id)
    assert found is not None
    assert len(renewals) == 1


@pytest.mark.asyncio
async def test_subscriptions_by_billing_agreement(sql_uow_factory):
    async with sql_uow_factory() as uow:
        a = await uow.subscription_repository.create(make_subscription("B-1"))
        b = await uow.subscription_repository.create(make_subscription("B-1"))
        await uow.subscription_repository.create(make_subscription("B-2"))

    async with sql_uow_factory(readonly=True) as uow:
        matches = await uow.subscription_repository.list_by_billing_agreement_id("B-1")
    assert [s.id for s in matches] == [a.id, b.id]
    assert matches[0].schedule == {"period": "month", "interval": 1}


@pytest.mark.asyncio
async def test_webhook_redelivery_against_database(sql_uow_factory):
    async with sql_uow_factory() as uow:
        sub = await uow.subscription_repository.create(make_subscription("B-123"))

    handler = PaymentSaleCompletedHandler(sql_uow_factory)
    notification = WebhookNotification(
        event_type="PAYMENT.SALE.COMPLETED",
        resource={"id": "TX-1", "billing_agreement_id": "B-123"},
    )
    first = await handler.handle(notification)
    second = await handler.handle(notification)

    assert len(first.renewal_order_ids) == 1
    assert second.duplicates == [sub.id]
    async with sql_uow_factory(readonly=True) as uow:
        renewals = await uow.order_repository.list_by_subscription(sub.id)
    assert len(renewals) == 1
    assert renewals[0].status == OrderStatus.COMPLETED
    assert renewals[0].transaction_id == "TX-1"
