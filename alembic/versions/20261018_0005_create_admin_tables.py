"""Create admins, admin_logs, admin_settings and admin_notifications tables

Revision ID: 20261018_0005
Revises: 20261018_0004
Create Date: 2026-10-18 00:05:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '20261018_0005'
down_revision: str | None = '20261018_0004'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create admin back-office tables."""
    op.create_table(
        'admins',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='admin'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('last_login', sa.DateTime, nullable=True),
        sa.Column('two_factor_enabled', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('two_factor_secret', sa.Text, nullable=True),
        sa.Column('backup_codes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_admins_email', 'admins', ['email'])

    # Append-only: the application never updates or deletes rows
    op.create_table(
        'admin_logs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('admin_id', UUID(as_uuid=True), sa.ForeignKey('admins.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('target', sa.String(255), nullable=True),
        sa.Column('metadata', sa.JSON, nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index('idx_admin_logs_admin', 'admin_logs', ['admin_id', 'created_at'])
    op.create_index('idx_admin_logs_action', 'admin_logs', ['action'])

    op.create_table(
        'admin_settings',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('key', sa.String(100), nullable=False, unique=True),
        sa.Column('value', sa.Text, nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('category', sa.String(30), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('updated_by', UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("type IN ('string', 'number', 'boolean', 'json')", name='admin_settings_type_check'),
    )
    op.create_index('idx_admin_settings_category', 'admin_settings', ['category'])

    op.create_table(
        'admin_notifications',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('category', sa.String(30), nullable=False),
        sa.Column('severity', sa.Integer, nullable=False, server_default='1'),
        sa.Column('is_read', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime, nullable=True),
        sa.Column('read_by', UUID(as_uuid=True), nullable=True),
        sa.Column('metadata', sa.JSON, nullable=True),
        sa.Column('action_url', sa.String(500), nullable=True),
        sa.Column('expires_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('severity BETWEEN 1 AND 5', name='admin_notifications_severity_check'),
    )
    op.create_index('idx_admin_notifications_unread', 'admin_notifications', ['is_read', 'created_at'])


def downgrade() -> None:
    """Drop admin back-office tables."""
    op.drop_index('idx_admin_notifications_unread', table_name='admin_notifications')
    op.drop_table('admin_notifications')
    op.drop_index('idx_admin_settings_category', table_name='admin_settings')
    op.drop_table('admin_settings')
    op.drop_index('idx_admin_logs_action', table_name='admin_logs')
    op.drop_index('idx_admin_logs_admin', table_name='admin_logs')
    op.drop_table('admin_logs')
    op.drop_index('ix_admins_email', table_name='admins')
    op.drop_table('admins')
