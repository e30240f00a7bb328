"""
订单领域实体 - 订单聚合根与状态机
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from domain.common.exceptions import (
    ConflictingTerminalTransitionException,
    DomainValidationException,
    InvalidOrderTransitionException,
)


class OrderStatus(str, Enum):
    """订单状态枚举"""
    PENDING_PAYMENT = "pending-payment"  # 待支付
    ON_HOLD = "on-hold"                  # 等待线下/外部支付
    PROCESSING = "processing"            # 已付款，待履约
    COMPLETED = "completed"              # 已完成（终态）
    FAILED = "failed"                    # 支付失败（终态）
    CANCELLED = "cancelled"              # 已取消


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.FAILED})


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """确保时间为 UTC 时区"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class LineItem:
    """订单行项目"""

    product_id: int
    quantity: int
    unit_price: Decimal
    is_physical: bool = True
    name: str = ""

    def __post_init__(self):
        if self.quantity <= 0:
            raise DomainValidationException(
                f"数量必须大于0: {self.quantity}",
                field="quantity"
            )
        self.unit_price = Decimal(str(self.unit_price))

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass
class BillingContact:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    country_code: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass
class Order:
    """
    订单聚合根 - 管理订单状态生命周期

    状态机：
        pending-payment -> on-hold -> {completed, failed}
        pending-payment/on-hold -> processing -> {completed, failed}
        failed -> pending-payment （人工重试）

    业务规则：
    1. on-hold 只能从 pending-payment 进入
    2. completed/failed 只能从 on-hold 或 processing 进入
    3. 终态重复进入同一终态为幂等空操作
    4. 终态之间的互相覆盖必须拒绝
    """

    id: Optional[int]
    status: OrderStatus
    total: Decimal
    currency: str
    line_items: list[LineItem] = field(default_factory=list)
    billing: BillingContact = field(default_factory=BillingContact)
    metadata: dict[str, str] = field(default_factory=dict)

    transaction_id: Optional[str] = None
    parent_subscription_id: Optional[int] = None
    failure_reason: Optional[str] = None
    notes: list[str] = field(default_factory=list)

    # 乐观锁版本号，由仓储在持久化时校验并递增
    version: int = 0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    def __post_init__(self):
        """初始化后验证"""
        self.total = Decimal(str(self.total))
        self._validate_total()
        self._validate_currency()
        self.status = OrderStatus(self.status)
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)
        self.paid_at = _ensure_utc(self.paid_at)
        if self.metadata is None:
            self.metadata = {}

    def _validate_total(self) -> None:
        if self.total < 0:
            raise DomainValidationException(
                f"订单金额不能为负数: {self.total}",
                field="total"
            )

    def _validate_currency(self) -> None:
        """业务规则：货币代码必须是3位字母"""
        if not self.currency or len(self.currency) != 3 or not self.currency.isalpha():
            raise DomainValidationException(
                f"无效的货币代码: {self.currency}",
                field="currency"
            )
        self.currency = self.currency.upper()

    # ------------------------------------------------------------------
    # 状态机
    # ------------------------------------------------------------------
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def needs_processing(self) -> bool:
        """包含实物商品的订单付款后需要履约"""
        return any(item.is_physical for item in self.line_items)

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)

    def _set_status(self, status: OrderStatus, note: Optional[str] = None) -> None:
        self.status = status
        if note:
            self.add_note(note)
        self._touch()

    def _enter_terminal(self, target: OrderStatus) -> bool:
        """校验进入终态的合法性；返回 False 表示幂等空操作"""
        if self.status == target:
            return False
        if self.is_terminal():
            raise ConflictingTerminalTransitionException(self.status.value, target.value)
        if self.status not in (OrderStatus.ON_HOLD, OrderStatus.PROCESSING):
            raise InvalidOrderTransitionException(self.status.value, target.value)
        return True

    def mark_on_hold(self, note: Optional[str] = None) -> None:
        """等待外部支付（如 OXXO 线下付款）"""
        if self.status != OrderStatus.PENDING_PAYMENT:
            raise InvalidOrderTransitionException(self.status.value, OrderStatus.ON_HOLD.value)
        self._set_status(OrderStatus.ON_HOLD, note)

    def mark_processing(self, note: Optional[str] = None) -> None:
        if self.status not in (OrderStatus.PENDING_PAYMENT, OrderStatus.ON_HOLD):
            raise InvalidOrderTransitionException(self.status.value, OrderStatus.PROCESSING.value)
        self._set_status(OrderStatus.PROCESSING, note)

    def mark_completed(self, note: Optional[str] = None) -> bool:
        if not self._enter_terminal(OrderStatus.COMPLETED):
            return False
        self.failure_reason = None
        self._set_status(OrderStatus.COMPLETED, note)
        return True

    def mark_failed(self, reason: Optional[str] = None) -> bool:
        if not self._enter_terminal(OrderStatus.FAILED):
            return False
        self.failure_reason = reason
        self._set_status(OrderStatus.FAILED, reason)
        return True

    def retry(self) -> None:
        """人工重试：failed -> pending-payment"""
        if self.status != OrderStatus.FAILED:
            raise InvalidOrderTransitionException(self.status.value, OrderStatus.PENDING_PAYMENT.value)
        self.failure_reason = None
        self._set_status(OrderStatus.PENDING_PAYMENT, "Payment retry requested.")

    def cancel(self, note: Optional[str] = None) -> None:
        if self.status not in (OrderStatus.PENDING_PAYMENT, OrderStatus.ON_HOLD, OrderStatus.FAILED):
            raise InvalidOrderTransitionException(self.status.value, OrderStatus.CANCELLED.value)
        self._set_status(OrderStatus.CANCELLED, note)

    def payment_complete(self) -> bool:
        """
        记录付款完成

        pending-payment/on-hold 先进入 processing；不含实物商品的订单直接完成。
        已付款（processing/completed）的订单为空操作，返回 False。
        """
        if self.status in (OrderStatus.PROCESSING, OrderStatus.COMPLETED):
            return False
        self.mark_processing("Payment completed.")
        self.paid_at = datetime.now(timezone.utc)
        if not self.needs_processing():
            self.mark_completed()
        return True

    # ------------------------------------------------------------------
    # 元数据与备注
    # ------------------------------------------------------------------
    def update_metadata(self, key: str, value: str) -> None:
        """更新元数据"""
        if self.metadata is None:
            self.metadata = {}
        self.metadata[key] = value
        self._touch()

    def add_note(self, note: str) -> None:
        self.notes.append(note)
