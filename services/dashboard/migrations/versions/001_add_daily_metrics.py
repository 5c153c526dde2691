"""Add daily_metrics and applied_metric_events tables

Revision ID: 001_add_daily_metrics
Revises:
Create Date: 2025-02-03 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_add_daily_metrics'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('daily_metrics',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('tenant_id', sa.String(length=255), nullable=False),
        sa.Column('date', sa.String(length=10), nullable=False),
        sa.Column('actor_id', sa.String(length=255), nullable=False),
        sa.Column('dials', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('connects', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('meetings_held', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('talk_time_seconds', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('revenue_generated', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('leads_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'date', 'actor_id', name='uq_daily_metrics_tenant_date_actor'),
    )

    op.create_index('ix_daily_metrics_tenant_id', 'daily_metrics', ['tenant_id'])
    op.create_index(
        'ix_daily_metrics_tenant_date',
        'daily_metrics',
        ['tenant_id', 'date'],
        postgresql_using='btree'
    )

    op.create_table('applied_metric_events',
        sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('tenant_id', sa.String(length=255), nullable=False),
        sa.Column('event_id', sa.String(length=255), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('applied_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'event_id', name='uq_applied_metric_events_tenant_event'),
    )

    op.create_index(
        'ix_applied_metric_events_applied_at',
        'applied_metric_events',
        ['applied_at'],
        postgresql_using='btree'
    )


def downgrade():
    op.drop_index('ix_applied_metric_events_applied_at', table_name='applied_metric_events')
    op.drop_table('applied_metric_events')
    op.drop_index('ix_daily_metrics_tenant_date', table_name='daily_metrics')
    op.drop_index('ix_daily_metrics_tenant_id', table_name='daily_metrics')
    op.drop_table('daily_metrics')
