"""Create users and user_settings tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:01:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '20261018_0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create users and user_settings tables."""
    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('username', sa.String(30), nullable=False, unique=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('image', sa.String(500), nullable=True),
        sa.Column('google_id', sa.String(255), nullable=True, unique=True),
        sa.Column('subscription_plan', sa.String(20), nullable=False, server_default='free'),
        sa.Column('subscription_status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('subscription_start_date', sa.DateTime, nullable=True),
        sa.Column('subscription_end_date', sa.DateTime, nullable=True),
        sa.Column('billing_cycle', sa.String(20), nullable=True),
        sa.Column('stripe_customer_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("subscription_plan IN ('free', 'pro', 'business')", name='users_subscription_plan_check'),
        sa.CheckConstraint(
            "subscription_status IN ('active', 'trial', 'canceled', 'expired')",
            name='users_subscription_status_check',
        ),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_username', 'users', ['username'])

    op.create_table(
        'user_settings',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='IDR'),
        sa.Column('language', sa.String(5), nullable=False, server_default='en'),
        sa.Column('email_reminders', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('reminder_days_before', sa.Integer, nullable=False, server_default='3'),
        sa.Column('weekly_digest', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('monthly_budget_limit', sa.Float, nullable=True),
        sa.Column('monthly_budget_currency', sa.String(3), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Drop users and user_settings tables."""
    op.drop_table('user_settings')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
