"""Create categories, members and subscriptions tables

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 00:02:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '20261018_0002'
down_revision: str | None = '20261018_0001'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create categories, members and subscriptions tables."""
    op.create_table(
        'categories',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('icon', sa.String(50), nullable=True),
        sa.Column('color', sa.String(20), nullable=True),
        sa.Column('budget_limit', sa.Float, nullable=True),
        sa.Column('budget_currency', sa.String(3), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'name', name='uq_categories_user_name'),
    )
    op.create_index('ix_categories_user_id', 'categories', ['user_id'])

    op.create_table(
        'members',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('avatar_color', sa.String(20), nullable=True),
        sa.Column('avatar_image', sa.String(500), nullable=True),
        sa.Column('is_primary', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_members_user_id', 'members', ['user_id'])

    op.create_table(
        'subscriptions',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_name', sa.String(100), nullable=False),
        sa.Column('service_icon', sa.String(255), nullable=True),
        sa.Column('amount', sa.Float, nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='IDR'),
        sa.Column('billing_frequency', sa.String(20), nullable=False),
        sa.Column('category_id', UUID(as_uuid=True), sa.ForeignKey('categories.id', ondelete='SET NULL'), nullable=True),
        sa.Column('member_id', UUID(as_uuid=True), sa.ForeignKey('members.id', ondelete='SET NULL'), nullable=True),
        sa.Column('start_date', sa.DateTime, nullable=False),
        sa.Column('next_billing', sa.DateTime, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('active', 'trial', 'paused', 'canceled')", name='subscriptions_status_check'),
        sa.CheckConstraint('amount > 0', name='subscriptions_amount_check'),
    )

    # Dashboard and reminder queries filter by user then due date or status
    op.create_index('idx_user_next_billing', 'subscriptions', ['user_id', 'next_billing'])
    op.create_index('idx_user_status', 'subscriptions', ['user_id', 'status'])


def downgrade() -> None:
    """Drop categories, members and subscriptions tables."""
    op.drop_index('idx_user_status', table_name='subscriptions')
    op.drop_index('idx_user_next_billing', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('ix_members_user_id', table_name='members')
    op.drop_table('members')
    op.drop_index('ix_categories_user_id', table_name='categories')
    op.drop_table('categories')
