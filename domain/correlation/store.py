"""
关联存储 - 将稳定的外部引用映射回本地订单/订阅

底层存储即订单/订阅本身的元数据字段：
- 订单元数据 ``ppcp_oxxo_payer_action``：买家需线下完成的 payer-action 链接
- 订阅 ``billing_agreement_id``：异步续费通知回查订阅的关联键（只读）
"""
from __future__ import annotations

from typing import List, Optional

from domain.order.entity import Order
from domain.order.repository import OrderRepository
from domain.subscription.entity import Subscription
from domain.subscription.repository import SubscriptionRepository


PAYER_ACTION_META_KEY = "ppcp_oxxo_payer_action"


class CorrelationStore:
    """外部引用 -> 本地记录 的 set/get 语义封装"""

    def __init__(
        self,
        order_repository: OrderRepository,
        subscription_repository: SubscriptionRepository,
    ) -> None:
        self.order_repository = order_repository
        self.subscription_repository = subscription_repository

    async def set_payer_action(self, order: Order, href: str) -> Order:
        """写入 payer-action 链接并持久化（带版本校验）"""
        order.update_metadata(PAYER_ACTION_META_KEY, href)
        return await self.order_repository.update(order)

    @staticmethod
    def get_payer_action(order: Order) -> Optional[str]:
        return (order.metadata or {}).get(PAYER_ACTION_META_KEY)

    async def subscriptions_for(self, billing_agreement_id: str) -> List[Subscription]:
        """按关联键查找订阅；空关联键不做查询"""
        if not billing_agreement_id:
            return []
        return await self.subscription_repository.list_by_billing_agreement_id(billing_agreement_id)
