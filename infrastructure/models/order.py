"""
订单与续费订单数据库模型
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Text, JSON,
    Index, UniqueConstraint
)
from datetime import datetime, timezone

from .base import Base


class OrderModel(Base):
    """
    订单数据库模型

    状态流转规则在 domain.order.entity.Order 中；
    version 列用于乐观并发控制（compare-and-set）。
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)

    status = Column(
        String(32),
        nullable=False,
        default="pending-payment",
        index=True,
        comment="订单状态: pending-payment/on-hold/processing/completed/failed/cancelled"
    )
    total = Column(Numeric(precision=15, scale=2), nullable=False, comment="订单金额")
    currency = Column(String(3), nullable=False, comment="货币代码 ISO-4217")

    # 行项目与账单信息以 JSON 快照保存
    line_items = Column(JSON, nullable=False, default=list, comment="行项目")
    billing = Column(JSON, nullable=False, default=dict, comment="账单联系人")
    notes = Column(JSON, nullable=False, default=list, comment="订单备注")

    # 使用 extra_metadata 避免与 SQLAlchemy 的 metadata 冲突
    extra_metadata = Column("metadata", JSON, nullable=True, comment="扩展元数据")

    transaction_id = Column(String(64), nullable=True, index=True, comment="PayPal 交易ID")
    parent_subscription_id = Column(Integer, nullable=True, index=True, comment="续费来源订阅ID")
    failure_reason = Column(Text, nullable=True, comment="失败原因")

    version = Column(Integer, nullable=False, default=0, comment="乐观锁版本号")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
        comment="创建时间"
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="更新时间"
    )
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="付款时间")

    __table_args__ = (
        # 同一订阅对同一笔交易只能生成一张续费订单
        UniqueConstraint(
            "parent_subscription_id", "transaction_id",
            name="uq_orders_subscription_transaction"
        ),
        Index("ix_orders_status_created_at", "status", "created_at"),
    )

    def __repr__(self):
        return (
            f"<OrderModel(id={self.id}, status='{self.status}', "
            f"total={self.total}, version={self.version})>"
        )
