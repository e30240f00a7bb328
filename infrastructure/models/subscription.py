"""
订阅数据库模型
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, JSON
from datetime import datetime, timezone

from .base import Base


class SubscriptionModel(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)

    # 不加唯一约束：历史数据中存在多个订阅共享同一协议的情况
    billing_agreement_id = Column(String(64), nullable=True, index=True, comment="PayPal 账单协议ID")
    status = Column(String(32), nullable=False, default="active", index=True, comment="订阅状态")

    total = Column(Numeric(precision=15, scale=2), nullable=False, comment="每期金额")
    currency = Column(String(3), nullable=False, comment="货币代码")
    line_items = Column(JSON, nullable=False, default=list, comment="行项目")
    billing = Column(JSON, nullable=False, default=dict, comment="账单联系人")
    schedule = Column(JSON, nullable=False, default=dict, comment="计费周期")

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="创建时间"
    )

    def __repr__(self):
        return (
            f"<SubscriptionModel(id={self.id}, billing_agreement_id='{self.billing_agreement_id}', "
            f"status='{self.status}')>"
        )
