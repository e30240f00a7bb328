"""
订单仓储接口 - 定义订单数据访问的抽象接口
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import Order


class OrderRepository(ABC):
    """订单仓储抽象接口 - 只定义能做什么，不管怎么做"""

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """创建订单；续费订单 (subscription, transaction_id) 重复时抛出 DuplicateRenewalOrderException"""
        pass

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        """根据ID获取订单"""
        pass

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """
        按版本号比较并更新（compare-and-set）

        实现必须仅在存储中的版本号等于 order.version 时写入，成功后递增版本号；
        否则抛出 ConcurrentModificationException。
        """
        pass

    @abstractmethod
    async def find_renewal(self, subscription_id: int, transaction_id: str) -> Optional[Order]:
        """查找某订阅针对某笔外部交易已生成的续费订单"""
        pass

    @abstractmethod
    async def list_by_subscription(self, subscription_id: int) -> List[Order]:
        """获取订阅的所有续费订单"""
        pass
