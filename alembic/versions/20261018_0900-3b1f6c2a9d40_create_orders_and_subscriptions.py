"""create_orders_and_subscriptions

Revision ID: 3b1f6c2a9d40
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3b1f6c2a9d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('billing_agreement_id', sa.String(length=64), nullable=True, comment='PayPal 账单协议ID'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='active', comment='订阅状态'),
        sa.Column('total', sa.Numeric(precision=15, scale=2), nullable=False, comment='每期金额'),
        sa.Column('currency', sa.String(length=3), nullable=False, comment='货币代码'),
        sa.Column('line_items', sa.JSON(), nullable=False, comment='行项目'),
        sa.Column('billing', sa.JSON(), nullable=False, comment='账单联系人'),
        sa.Column('schedule', sa.JSON(), nullable=False, comment='计费周期'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'], unique=False)
    op.create_index('ix_subscriptions_billing_agreement_id', 'subscriptions', ['billing_agreement_id'], unique=False)
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'], unique=False)

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending-payment', comment='订单状态'),
        sa.Column('total', sa.Numeric(precision=15, scale=2), nullable=False, comment='订单金额'),
        sa.Column('currency', sa.String(length=3), nullable=False, comment='货币代码 ISO-4217'),
        sa.Column('line_items', sa.JSON(), nullable=False, comment='行项目'),
        sa.Column('billing', sa.JSON(), nullable=False, comment='账单联系人'),
        sa.Column('notes', sa.JSON(), nullable=False, comment='订单备注'),
        sa.Column('metadata', sa.JSON(), nullable=True, comment='扩展元数据'),
        sa.Column('transaction_id', sa.String(length=64), nullable=True, comment='PayPal 交易ID'),
        sa.Column('parent_subscription_id', sa.Integer(), nullable=True, comment='续费来源订阅ID'),
        sa.Column('failure_reason', sa.Text(), nullable=True, comment='失败原因'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0', comment='乐观锁版本号'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False, comment='更新时间'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True, comment='付款时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('parent_subscription_id', 'transaction_id', name='uq_orders_subscription_transaction'),
    )
    op.create_index('ix_orders_id', 'orders', ['id'], unique=False)
    op.create_index('ix_orders_status', 'orders', ['status'], unique=False)
    op.create_index('ix_orders_created_at', 'orders', ['created_at'], unique=False)
    op.create_index('ix_orders_transaction_id', 'orders', ['transaction_id'], unique=False)
    op.create_index('ix_orders_parent_subscription_id', 'orders', ['parent_subscription_id'], unique=False)
    op.create_index('ix_orders_status_created_at', 'orders', ['status', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_orders_status_created_at', table_name='orders')
    op.drop_index('ix_orders_parent_subscription_id', table_name='orders')
    op.drop_index('ix_orders_transaction_id', table_name='orders')
    op.drop_index('ix_orders_created_at', table_name='orders')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_id', table_name='orders')
    op.drop_table('orders')

    op.drop_index('ix_subscriptions_status', table_name='subscriptions')
    op.drop_index('ix_subscriptions_billing_agreement_id', table_name='subscriptions')
    op.drop_index('ix_subscriptions_id', table_name='subscriptions')
    op.drop_table('subscriptions')
