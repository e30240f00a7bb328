"""
订阅领域实体
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
import copy

from domain.order.entity import BillingContact, LineItem, Order, OrderStatus


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


@dataclass
class Subscription:
    """
    订阅实体

    billing_agreement_id 在订阅初始订单创建时写入一次，此后只读，
    是异步通知回查订阅的关联键。
    """

    id: Optional[int]
    billing_agreement_id: Optional[str]
    status: SubscriptionStatus
    total: Decimal
    currency: str
    line_items: list[LineItem] = field(default_factory=list)
    billing: BillingContact = field(default_factory=BillingContact)
    schedule: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = SubscriptionStatus(self.status)
        self.total = Decimal(str(self.total))

    def create_renewal_order(self) -> Order:
        """基于订阅当前的行项目与账单信息生成一张待支付的续费订单"""
        now = datetime.now(timezone.utc)
        return Order(
            id=None,
            status=OrderStatus.PENDING_PAYMENT,
            total=self.total,
            currency=self.currency,
            line_items=copy.deepcopy(self.line_items),
            billing=copy.deepcopy(self.billing),
            metadata={},
            parent_subscription_id=self.id,
            notes=[f"Renewal order for subscription #{self.id}."],
            created_at=now,
            updated_at=now,
        )
