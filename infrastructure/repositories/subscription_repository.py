"""
订阅仓储实现
"""
from typing import List, Optional
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from domain.subscription.entity import Subscription, SubscriptionStatus
from domain.subscription.repository import SubscriptionRepository
from infrastructure.models.subscription import SubscriptionModel
from infrastructure.repositories.order_repository import (
    billing_from_json,
    billing_to_json,
    line_items_from_json,
    line_items_to_json,
)


class SQLAlchemySubscriptionRepository(SubscriptionRepository):
    """订阅仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: SubscriptionModel) -> Subscription:
        return Subscription(
            id=model.id,
            billing_agreement_id=model.billing_agreement_id,
            status=SubscriptionStatus(model.status),
            total=Decimal(str(model.total)),
            currency=model.currency,
            line_items=line_items_from_json(model.line_items),
            billing=billing_from_json(model.billing),
            schedule=dict(model.schedule or {}),
            created_at=model.created_at,
        )

    def _to_model(self, entity: Subscription) -> SubscriptionModel:
        return SubscriptionModel(
            id=entity.id,
            billing_agreement_id=entity.billing_agreement_id,
            status=entity.status.value,
            total=entity.total,
            currency=entity.currency,
            line_items=line_items_to_json(entity.line_items),
            billing=billing_to_json(entity.billing),
            schedule=dict(entity.schedule or {}),
            created_at=entity.created_at or datetime.now(timezone.utc),
        )

    async def create(self, subscription: Subscription) -> Subscription:
        """创建订阅"""
        db_subscription = self._to_model(subscription)
        self.session.add(db_subscription)
        await self.session.flush()
        await self.session.refresh(db_subscription)
        return self._to_entity(db_subscription)

    async def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        """根据ID获取订阅"""
        result = await self.session.execute(
            select(SubscriptionModel).where(SubscriptionModel.id == subscription_id)
        )
        db_subscription = result.scalar_one_or_none()
        return self._to_entity(db_subscription) if db_subscription else None

    async def list_by_billing_agreement_id(self, billing_agreement_id: str) -> List[Subscription]:
        """根据账单协议ID获取全部匹配订阅"""
        result = await self.session.execute(
            select(SubscriptionModel)
            .where(SubscriptionModel.billing_agreement_id == billing_agreement_id)
            .order_by(SubscriptionModel.id.asc())
        )
        return [self._to_entity(s) for s in result.scalars().all()]
