"""Create events and linked_calendars tables

Revision ID: 3f1b7c2a9d40
Revises:
Create Date: 2026-10-18

events holds the family's own events plus local mirror rows of events
created in a linked calendar. linked_calendars holds each linked external
calendar with its OAuth tokens (one row per user, provider and calendar).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1b7c2a9d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('events',
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=True),
        sa.Column('family_id', sa.String(length=255), nullable=True),
        sa.Column('color', sa.String(length=20), nullable=False, server_default='#007AFF'),
        sa.Column('linked_calendar_id', sa.String(length=36), nullable=True),
        sa.Column('external_event_id', sa.String(length=255), nullable=True),
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('events', schema=None) as batch_op:
        batch_op.create_index('ix_events_family_id', ['family_id'], unique=False)
        batch_op.create_index('ix_events_family_start', ['family_id', 'start_time'], unique=False)
        batch_op.create_index('ix_events_external', ['linked_calendar_id', 'external_event_id'], unique=False)

    op.create_table('linked_calendars',
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('family_id', sa.String(length=255), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False, server_default='google'),
        sa.Column('account_email', sa.String(length=255), nullable=False),
        sa.Column('provider_calendar_id', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('color', sa.String(length=20), nullable=False, server_default='#007AFF'),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_synced', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('linked_calendars', schema=None) as batch_op:
        batch_op.create_index('ix_linked_calendars_user_id', ['user_id'], unique=False)
        batch_op.create_index('ix_linked_calendars_family_id', ['family_id'], unique=False)
        batch_op.create_index(
            'ix_linked_calendars_user_provider_calendar',
            ['user_id', 'provider', 'provider_calendar_id'],
            unique=True,
        )


def downgrade() -> None:
    with op.batch_alter_table('linked_calendars', schema=None) as batch_op:
        batch_op.drop_index('ix_linked_calendars_user_provider_calendar')
        batch_op.drop_index('ix_linked_calendars_family_id')
        batch_op.drop_index('ix_linked_calendars_user_id')
    op.drop_table('linked_calendars')

    with op.batch_alter_table('events', schema=None) as batch_op:
        batch_op.drop_index('ix_events_external')
        batch_op.drop_index('ix_events_family_start')
        batch_op.drop_index('ix_events_family_id')
    op.drop_table('events')
