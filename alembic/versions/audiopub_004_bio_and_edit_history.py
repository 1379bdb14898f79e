"""User bio, audio edit counter and edit history

Revision ID: audiopub_004
Revises: audiopub_003
Create Date: 2026-01-20

Adds:
- users.bio: Free-form profile text
- audios.edit_count: Edits made by the uploader
- audio_edit_history: Title/description before and after each edit
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'audiopub_004'
down_revision = 'audiopub_003'
branch_labels = None
depends_on = None


def upgrade():
    op.add_column('users', sa.Column('bio', sa.Text(), nullable=True))
    op.add_column('audios', sa.Column('edit_count', sa.Integer(), nullable=False, server_default='0'))

    op.create_table(
        'audio_edit_history',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('audio_id', sa.String(36), nullable=False),
        sa.Column('old_title', sa.String(120), nullable=False),
        sa.Column('new_title', sa.String(120), nullable=False),
        sa.Column('old_description', sa.Text(), nullable=False, server_default=''),
        sa.Column('new_description', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['audio_id'], ['audios.id'], ondelete='CASCADE')
    )
    op.create_index('ix_audio_edit_history_audio_id', 'audio_edit_history', ['audio_id'])


def downgrade():
    op.drop_index('ix_audio_edit_history_audio_id', table_name='audio_edit_history')
    op.drop_table('audio_edit_history')
    op.drop_column('audios', 'edit_count')
    op.drop_column('users', 'bio')
