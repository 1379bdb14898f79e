"""Initial schema: users, audios, comments, notifications, follows

Revision ID: audiopub_001
Revises:
Create Date: 2024-06-01

Creates tables for:
- users: Accounts with verification, trust and ban flags
- audios: Uploaded clips
- comments: Flat comments on audios
- notifications: Per-user and broadcast notifications
- audio_follows: Users following an audio's comments
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'audiopub_001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(24), nullable=False),
        sa.Column('display_name', sa.String(30), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('verification_token', sa.String(36), nullable=True),
        sa.Column('verification_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reset_password_token', sa.String(36), nullable=True),
        sa.Column('is_banned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_trusted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_name', 'users', ['name'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'audios',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(120), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('has_file', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('plays', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('extension', sa.String(16), nullable=False, server_default='aac'),
        sa.Column('is_from_ai', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE')
    )
    op.create_index('ix_audios_title', 'audios', ['title'])
    op.create_index('ix_audios_user_id', 'audios', ['user_id'])
    op.create_index('ix_audios_is_from_ai', 'audios', ['is_from_ai'])
    op.create_index('ix_audios_created_at', 'audios', ['created_at'])
    op.create_index('idx_audio_user_created', 'audios', ['user_id', 'created_at'])

    op.create_table(
        'comments',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('audio_id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['audio_id'], ['audios.id'], ondelete='CASCADE')
    )
    op.create_index('ix_comments_user_id', 'comments', ['user_id'])
    op.create_index('ix_comments_audio_id', 'comments', ['audio_id'])
    op.create_index('idx_comment_audio_created', 'comments', ['audio_id', 'created_at'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=True),
        sa.Column('actor_id', sa.String(36), nullable=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('target_type', sa.String(20), nullable=True),
        sa.Column('target_id', sa.String(36), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['actor_id'], ['users.id'], ondelete='SET NULL')
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('idx_notification_user_read', 'notifications', ['user_id', 'read_at'])
    op.create_index('idx_notification_target', 'notifications', ['target_type', 'target_id'])

    op.create_table(
        'audio_follows',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('audio_id', sa.String(36), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['audio_id'], ['audios.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'audio_id', name='uq_audio_follow_user_audio')
    )
    op.create_index('ix_audio_follows_audio_id', 'audio_follows', ['audio_id'])


def downgrade():
    op.drop_index('ix_audio_follows_audio_id', table_name='audio_follows')
    op.drop_table('audio_follows')

    op.drop_index('idx_notification_target', table_name='notifications')
    op.drop_index('idx_notification_user_read', table_name='notifications')
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')

    op.drop_index('idx_comment_audio_created', table_name='comments')
    op.drop_index('ix_comments_audio_id', table_name='comments')
    op.drop_index('ix_comments_user_id', table_name='comments')
    op.drop_table('comments')

    op.drop_index('idx_audio_user_created', table_name='audios')
    op.drop_index('ix_audios_created_at', table_name='audios')
    op.drop_index('ix_audios_is_from_ai', table_name='audios')
    op.drop_index('ix_audios_user_id', table_name='audios')
    op.drop_index('ix_audios_title', table_name='audios')
    op.drop_table('audios')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_name', table_name='users')
    op.drop_table('users')
