"""Create maintenance_mode and maintenance_logs tables

Revision ID: 20261018_0006
Revises: 20261018_0005
Create Date: 2026-10-18 00:06:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '20261018_0006'
down_revision: str | None = '20261018_0005'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create maintenance_mode and maintenance_logs tables."""
    op.create_table(
        'maintenance_mode',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('is_enabled', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('message', sa.Text, nullable=True),
        sa.Column('estimated_end_time', sa.DateTime, nullable=True),
        sa.Column('started_at', sa.DateTime, nullable=True),
        sa.Column('started_by', UUID(as_uuid=True), nullable=True),
        sa.Column('ended_at', sa.DateTime, nullable=True),
        sa.Column('ended_by', UUID(as_uuid=True), nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'maintenance_logs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('started_at', sa.DateTime, nullable=False),
        sa.Column('ended_at', sa.DateTime, nullable=False),
        sa.Column('duration', sa.Integer, nullable=True),
        sa.Column('message', sa.Text, nullable=True),
        sa.Column('started_by', UUID(as_uuid=True), nullable=False),
        sa.Column('started_by_name', sa.String(100), nullable=True),
        sa.Column('ended_by', UUID(as_uuid=True), nullable=False),
        sa.Column('ended_by_name', sa.String(100), nullable=True),
        sa.Column('reason', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Drop maintenance_mode and maintenance_logs tables."""
    op.drop_table('maintenance_logs')
    op.drop_table('maintenance_mode')
