"""Threaded comments: parent_id and tombstones

Revision ID: audiopub_003
Revises: audiopub_002
Create Date: 2025-09-14

Adds columns to comments:
- parent_id: Optional reference to the comment being replied to
- deleted_at: Set when a comment with replies is deleted and kept as a tombstone
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'audiopub_003'
down_revision = 'audiopub_002'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('comments') as batch_op:
        batch_op.add_column(sa.Column('parent_id', sa.String(36), nullable=True))
        batch_op.add_column(sa.Column('deleted_at', sa.DateTime(), nullable=True))
        batch_op.create_foreign_key(
            'fk_comments_parent',
            'comments',
            ['parent_id'], ['id'],
            ondelete='SET NULL'
        )
        batch_op.create_index('ix_comments_parent_id', ['parent_id'])


def downgrade():
    with op.batch_alter_table('comments') as batch_op:
        batch_op.drop_index('ix_comments_parent_id')
        batch_op.drop_constraint('fk_comments_parent', type_='foreignkey')
        batch_op.drop_column('deleted_at')
        batch_op.drop_column('parent_id')
