"""Create indexing tables

Revision ID: 20261018_000001
Revises: 
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20261018_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Target database credentials
    op.create_table(
        'database_connections',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('host', sa.String(255), nullable=False),
        sa.Column('port', sa.Integer(), nullable=False, server_default='5432'),
        sa.Column('database', sa.String(255), nullable=False),
        sa.Column('username', sa.String(255), nullable=False),
        sa.Column('password', sa.Text(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('last_connected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_database_connections_user_id', 'database_connections', ['user_id'])

    # Indexing jobs
    op.create_table(
        'indexing_jobs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('db_connection_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='initializing'),
        sa.Column('progress', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('config', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('next_retry_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_processed_block', sa.BigInteger(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['db_connection_id'], ['database_connections.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_indexing_jobs_user_id', 'indexing_jobs', ['user_id'])
    op.create_index('ix_indexing_jobs_db_connection_id', 'indexing_jobs', ['db_connection_id'])
    op.create_index('ix_indexing_jobs_type', 'indexing_jobs', ['type'])
    op.create_index('ix_indexing_jobs_status', 'indexing_jobs', ['status'])
    op.create_index('ix_indexing_jobs_next_retry_at', 'indexing_jobs', ['next_retry_at'])
    op.create_index('ix_indexing_jobs_created_at', 'indexing_jobs', ['created_at'])

    # Webhook subscriptions
    op.create_table(
        'webhooks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('indexing_job_id', sa.Integer(), nullable=False),
        sa.Column('helius_webhook_id', sa.String(128), nullable=False),
        sa.Column('url', sa.String(1024), nullable=False),
        sa.Column('secret', sa.String(128), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('filters', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('retry_delay_ms', sa.Integer(), nullable=False, server_default='1000'),
        sa.Column('config', postgresql.JSONB(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['indexing_job_id'], ['indexing_jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_webhooks_user_id', 'webhooks', ['user_id'])
    op.create_index('ix_webhooks_indexing_job_id', 'webhooks', ['indexing_job_id'])
    op.create_index('ix_webhooks_helius_webhook_id', 'webhooks', ['helius_webhook_id'])
    op.create_index('ix_webhooks_status', 'webhooks', ['status'])

    # Delivery audit log
    op.create_table(
        'webhook_logs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('webhook_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('attempt', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('payload', postgresql.JSONB(), nullable=False),
        sa.Column('response', postgresql.JSONB(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['webhook_id'], ['webhooks.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_webhook_logs_webhook_id', 'webhook_logs', ['webhook_id'])
    op.create_index('ix_webhook_logs_timestamp', 'webhook_logs', ['timestamp'])


def downgrade() -> None:
    op.drop_index('ix_webhook_logs_timestamp', 'webhook_logs')
    op.drop_index('ix_webhook_logs_webhook_id', 'webhook_logs')
    op.drop_table('webhook_logs')

    op.drop_index('ix_webhooks_status', 'webhooks')
    op.drop_index('ix_webhooks_helius_webhook_id', 'webhooks')
    op.drop_index('ix_webhooks_indexing_job_id', 'webhooks')
    op.drop_index('ix_webhooks_user_id', 'webhooks')
    op.drop_table('webhooks')

    op.drop_index('ix_indexing_jobs_created_at', 'indexing_jobs')
    op.drop_index('ix_indexing_jobs_next_retry_at', 'indexing_jobs')
    op.drop_index('ix_indexing_jobs_status', 'indexing_jobs')
    op.drop_index('ix_indexing_jobs_type', 'indexing_jobs')
    op.drop_index('ix_indexing_jobs_db_connection_id', 'indexing_jobs')
    op.drop_index('ix_indexing_jobs_user_id', 'indexing_jobs')
    op.drop_table('indexing_jobs')

    op.drop_index('ix_database_connections_user_id', 'database_connections')
    op.drop_table('database_connections')
