"""Outbox queue and pull cursors

Revision ID: 20261018_outbox
Revises: 20261018_entity_cache
Create Date: 2026-10-18

pending_actions uses AUTOINCREMENT so action ids are never reused after
synced rows are pruned.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_outbox'
down_revision = '20261018_entity_cache'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('pending_actions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('action_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('synced', sa.Boolean(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('pending_actions', schema=None) as batch_op:
        batch_op.create_index('ix_pending_actions_delivery', ['synced', 'timestamp', 'id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pending_actions_entity_id'), ['entity_id'], unique=False)

    op.create_table('sync_cursors',
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('cursor', sa.String(length=255), nullable=True),
        sa.Column('pulled_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('entity_type')
    )


def downgrade():
    op.drop_table('sync_cursors')

    with op.batch_alter_table('pending_actions', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_pending_actions_entity_id'))
        batch_op.drop_index('ix_pending_actions_delivery')
    op.drop_table('pending_actions')
