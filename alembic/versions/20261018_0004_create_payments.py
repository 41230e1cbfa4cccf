"""Create payments, subscription_history and exchange_rates tables

Revision ID: 20261018_0004
Revises: 20261018_0003
Create Date: 2026-10-18 00:04:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '20261018_0004'
down_revision: str | None = '20261018_0003'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create payments, subscription_history and exchange_rates tables."""
    op.create_table(
        'payments',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('provider', sa.String(20), nullable=False),
        sa.Column('provider_payment_id', sa.String(255), nullable=True),
        sa.Column('provider_customer_id', sa.String(255), nullable=True),
        sa.Column('amount', sa.Float, nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('payment_method', sa.String(50), nullable=True),
        sa.Column('plan', sa.String(50), nullable=False),
        sa.Column('billing_period_start', sa.DateTime, nullable=True),
        sa.Column('billing_period_end', sa.DateTime, nullable=True),
        sa.Column('invoice_url', sa.String(1000), nullable=True),
        sa.Column('receipt_url', sa.String(1000), nullable=True),
        sa.Column('metadata', sa.JSON, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])

    op.create_table(
        'subscription_history',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(30), nullable=False),
        sa.Column('from_plan', sa.String(20), nullable=True),
        sa.Column('to_plan', sa.String(20), nullable=False),
        sa.Column('effective_date', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_subscription_history_user_id', 'subscription_history', ['user_id'])

    op.create_table(
        'exchange_rates',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('base_currency', sa.String(3), nullable=False),
        sa.Column('target_currency', sa.String(3), nullable=False),
        sa.Column('rate', sa.Float, nullable=False),
        sa.Column('date', sa.DateTime, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('base_currency', 'target_currency', 'date', name='uq_exchange_rate_pair_date'),
    )
    op.create_index('idx_exchange_rate_pair', 'exchange_rates', ['base_currency', 'target_currency'])


def downgrade() -> None:
    """Drop payments, subscription_history and exchange_rates tables."""
    op.drop_index('idx_exchange_rate_pair', table_name='exchange_rates')
    op.drop_table('exchange_rates')
    op.drop_index('ix_subscription_history_user_id', table_name='subscription_history')
    op.drop_table('subscription_history')
    op.drop_index('ix_payments_user_id', table_name='payments')
    op.drop_table('payments')
