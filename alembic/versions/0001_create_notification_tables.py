"""Create device_tokens, notifications and notification_logs

Revision ID: 0001_notification_tables
Revises:
Create Date: 2026-10-18 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_notification_tables'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ID = sa.BigInteger().with_variant(sa.Integer(), 'sqlite')


def upgrade() -> None:
    op.create_table(
        'device_tokens',
        sa.Column('id', _ID, primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('token', sa.String(length=512), nullable=False),
        sa.Column('platform', sa.String(length=20), nullable=False),
        sa.Column('device_id', sa.String(length=255), nullable=True),
        sa.Column('app_version', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('uq_device_tokens_token', 'device_tokens', ['token'], unique=True)
    op.create_index('ix_device_tokens_user_active', 'device_tokens', ['user_id', 'is_active'])

    op.create_table(
        'notifications',
        sa.Column('id', _ID, primary_key=True, autoincrement=True),
        # NULL user_id addresses the admin inbox
        sa.Column('user_id', sa.BigInteger(), nullable=True),
        sa.Column('title_ar', sa.String(length=255), nullable=False),
        sa.Column('title_en', sa.String(length=255), nullable=False),
        sa.Column('message_ar', sa.Text(), nullable=False),
        sa.Column('message_en', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False, server_default='general'),
        sa.Column('data', sa.Text(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'is_read'])
    op.create_index('ix_notifications_created', 'notifications', ['created_at'])

    op.create_table(
        'notification_logs',
        sa.Column('id', _ID, primary_key=True, autoincrement=True),
        sa.Column('notification_id', sa.BigInteger(), nullable=True),
        sa.Column('user_id', sa.BigInteger(), nullable=True),
        sa.Column('target', sa.String(length=512), nullable=False),
        sa.Column('title_ar', sa.String(length=255), nullable=False),
        sa.Column('title_en', sa.String(length=255), nullable=False),
        sa.Column('message_ar', sa.Text(), nullable=False),
        sa.Column('message_en', sa.Text(), nullable=False),
        sa.Column('channel', sa.String(length=20), nullable=False, server_default='push'),
        sa.Column('delivery_status', sa.String(length=20), nullable=False),
        sa.Column('provider_message_id', sa.String(length=255), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('data', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_notification_logs_notification', 'notification_logs', ['notification_id'])
    op.create_index(
        'ix_notification_logs_status_created', 'notification_logs', ['delivery_status', 'created_at']
    )


def downgrade() -> None:
    op.drop_index('ix_notification_logs_status_created', table_name='notification_logs')
    op.drop_index('ix_notification_logs_notification', table_name='notification_logs')
    op.drop_table('notification_logs')
    op.drop_index('ix_notifications_created', table_name='notifications')
    op.drop_index('ix_notifications_user_read', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_device_tokens_user_active', table_name='device_tokens')
    op.drop_index('uq_device_tokens_token', table_name='device_tokens')
    op.drop_table('device_tokens')
