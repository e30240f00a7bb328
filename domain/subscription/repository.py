"""
订阅仓储接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import Subscription


class SubscriptionRepository(ABC):
    """订阅仓储抽象接口"""

    @abstractmethod
    async def create(self, subscription: Subscription) -> Subscription:
        """创建订阅"""
        pass

    @abstractmethod
    async def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        """根据ID获取订阅"""
        pass

    @abstractmethod
    async def list_by_billing_agreement_id(self, billing_agreement_id: str) -> List[Subscription]:
        """根据关联键获取全部匹配的订阅（不假设唯一）"""
        pass
