"""
订单仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Any, List, Optional
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from domain.order.entity import BillingContact, LineItem, Order, OrderStatus
from domain.order.repository import OrderRepository
from domain.common.exceptions import (
    ConcurrentModificationException,
    DuplicateRenewalOrderException,
    OrderNotFoundException,
)
from infrastructure.models.order import OrderModel
from core.logging_config import get_logger


logger = get_logger(__name__)


def line_items_to_json(items: List[LineItem]) -> List[dict[str, Any]]:
    return [
        {
            "product_id": item.product_id,
            "quantity": item.quantity,
            "unit_price": str(item.unit_price),
            "is_physical": item.is_physical,
            "name": item.name,
        }
        for item in items
    ]


def line_items_from_json(raw: Optional[List[dict[str, Any]]]) -> List[LineItem]:
    return [
        LineItem(
            product_id=int(item["product_id"]),
            quantity=int(item["quantity"]),
            unit_price=Decimal(str(item["unit_price"])),
            is_physical=bool(item.get("is_physical", True)),
            name=item.get("name", ""),
        )
        for item in (raw or [])
    ]


def billing_to_json(billing: BillingContact) -> dict[str, str]:
    return {
        "first_name": billing.first_name,
        "last_name": billing.last_name,
        "email": billing.email,
        "country_code": billing.country_code,
    }


def billing_from_json(raw: Optional[dict[str, Any]]) -> BillingContact:
    return BillingContact(**(raw or {}))


class SQLAlchemyOrderRepository(OrderRepository):
    """订单仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        """将数据库模型转换为领域实体"""
        return Order(
            id=model.id,
            status=OrderStatus(model.status),
            total=Decimal(str(model.total)),
            currency=model.currency,
            line_items=line_items_from_json(model.line_items),
            billing=billing_from_json(model.billing),
            metadata=dict(model.extra_metadata or {}),
            transaction_id=model.transaction_id,
            parent_subscription_id=model.parent_subscription_id,
            failure_reason=model.failure_reason,
            notes=list(model.notes or []),
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
            paid_at=model.paid_at,
        )

    def _values(self, entity: Order) -> dict[str, Any]:
        """可变列的取值（不含 id / version / created_at）"""
        return {
            "status": entity.status.value,
            "total": entity.total,
            "currency": entity.currency,
            "line_items": line_items_to_json(entity.line_items),
            "billing": billing_to_json(entity.billing),
            "notes": list(entity.notes),
            "extra_metadata": dict(entity.metadata or {}),
            "transaction_id": entity.transaction_id,
            "parent_subscription_id": entity.parent_subscription_id,
            "failure_reason": entity.failure_reason,
            "updated_at": entity.updated_at or datetime.now(timezone.utc),
            "paid_at": entity.paid_at,
        }

    async def create(self, order: Order) -> Order:
        """创建订单"""
        try:
            db_order = OrderModel(
                id=order.id,
                version=order.version,
                created_at=order.created_at or datetime.now(timezone.utc),
                **self._values(order),
            )
            self.session.add(db_order)
            await self.session.flush()
            await self.session.refresh(db_order)
        except IntegrityError as e:
            await self.session.rollback()
            msg = str(e).lower()
            if "transaction_id" in msg or "uq_orders_subscription_transaction" in msg:
                logger.warning(
                    "renewal_order_conflict",
                    subscription_id=order.parent_subscription_id,
                    transaction_id=order.transaction_id,
                )
                raise DuplicateRenewalOrderException(
                    order.parent_subscription_id, order.transaction_id
                )
            raise
        logger.info(
            "order_created",
            order_id=db_order.id,
            status=db_order.status,
            parent_subscription_id=db_order.parent_subscription_id,
        )
        return self._to_entity(db_order)

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """根据ID获取订单"""
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.id == order_id)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def update(self, order: Order) -> Order:
        """按版本号比较并更新，成功后版本号加一"""
        expected = order.version
        result = await self.session.execute(
            update(OrderModel)
            .where(OrderModel.id == order.id, OrderModel.version == expected)
            .values(version=expected + 1, **self._values(order))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            exists = await self.session.execute(
                select(OrderModel.id).where(OrderModel.id == order.id)
            )
            if exists.scalar_one_or_none() is None:
                raise OrderNotFoundException(order.id)
            logger.warning(
                "order_update_conflict",
                order_id=order.id,
                expected_version=expected,
            )
            raise ConcurrentModificationException(order.id, expected)

        order.version = expected + 1
        logger.info(
            "order_updated",
            order_id=order.id,
            status=order.status.value,
            version=order.version,
        )
        return order

    async def find_renewal(self, subscription_id: int, transaction_id: str) -> Optional[Order]:
        """查找已生成的续费订单"""
        result = await self.session.execute(
            select(OrderModel).where(
                OrderModel.parent_subscription_id == subscription_id,
                OrderModel.transaction_id == transaction_id,
            )
        )
        db_order = result.scalars().first()
        return self._to_entity(db_order) if db_order else None

    async def list_by_subscription(self, subscription_id: int) -> List[Order]:
        """获取订阅的续费订单，按创建时间正序"""
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.parent_subscription_id == subscription_id)
            .order_by(OrderModel.created_at.asc(), OrderModel.id.asc())
        )
        return [self._to_entity(o) for o in result.scalars().all()]
