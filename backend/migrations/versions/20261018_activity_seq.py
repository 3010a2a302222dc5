"""Activity log insertion sequence

Revision ID: 20261018_activity_seq
Revises: 20261018_activity_logs
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_activity_seq'
down_revision = '20261018_activity_logs'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('activity_logs', schema=None) as batch_op:
        batch_op.add_column(sa.Column('seq', sa.BigInteger(), nullable=False, server_default='0'))
        batch_op.create_index('ix_activity_logs_timestamp_seq', ['timestamp', 'seq'], unique=False)


def downgrade():
    with op.batch_alter_table('activity_logs', schema=None) as batch_op:
        batch_op.drop_index('ix_activity_logs_timestamp_seq')
        batch_op.drop_column('seq')
