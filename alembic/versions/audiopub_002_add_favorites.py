"""Add audio_favorites table

Revision ID: audiopub_002
Revises: audiopub_001
Create Date: 2025-02-10

Adds table for:
- audio_favorites: One row per user and favorited audio
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'audiopub_002'
down_revision = 'audiopub_001'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'audio_favorites',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('audio_id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'audio_id', name='uq_audio_favorite_user_audio')
    )

    op.create_foreign_key(
        'fk_audio_favorites_user',
        'audio_favorites', 'users',
        ['user_id'], ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'fk_audio_favorites_audio',
        'audio_favorites', 'audios',
        ['audio_id'], ['id'],
        ondelete='CASCADE'
    )

    op.create_index('ix_audio_favorites_user_id', 'audio_favorites', ['user_id'])
    op.create_index('ix_audio_favorites_audio_id', 'audio_favorites', ['audio_id'])


def downgrade():
    op.drop_index('ix_audio_favorites_audio_id', table_name='audio_favorites')
    op.drop_index('ix_audio_favorites_user_id', table_name='audio_favorites')

    op.drop_constraint('fk_audio_favorites_audio', 'audio_favorites', type_='foreignkey')
    op.drop_constraint('fk_audio_favorites_user', 'audio_favorites', type_='foreignkey')

    op.drop_table('audio_favorites')
