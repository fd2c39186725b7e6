"""add_support_rooms_tables

Revision ID: 5c1d8e2f7a90
Revises:
Create Date: 2026-10-12 09:14:02.118304

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1d8e2f7a90'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('user_id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('username', sa.String(length=30), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('suspended_until', sa.DateTime(), nullable=True),
        sa.Column('status_reason', sa.String(length=500), nullable=True),
        sa.Column('date_joined', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.PrimaryKeyConstraint('user_id'),
    )
    op.create_index('idx_users_username', 'users', ['username'], unique=True)
    op.create_index('idx_users_status', 'users', ['status'])

    op.create_table(
        'support_rooms',
        sa.Column('room_id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('support_group_id', sa.Integer(), nullable=False),
        sa.Column('stage', sa.String(length=20), nullable=False),
        sa.Column('room_number', sa.Integer(), nullable=False),
        sa.Column('member_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_members', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='open'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('room_id'),
    )
    # Safety net against two joins creating the same room number
    op.create_index(
        'uq_support_rooms_group_stage_number',
        'support_rooms',
        ['support_group_id', 'stage', 'room_number'],
        unique=True,
    )
    op.create_index(
        'idx_support_rooms_group_stage_status',
        'support_rooms',
        ['support_group_id', 'stage', 'status'],
    )

    op.create_table(
        'support_room_members',
        sa.Column('membership_id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('room_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('support_group_id', sa.Integer(), nullable=False),
        sa.Column('stage', sa.String(length=20), nullable=False),
        sa.Column('role_in_room', sa.String(length=20), nullable=False, server_default='member'),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.Column('left_at', sa.DateTime(), nullable=True),
        # 1 while active, NULL once left_at is set
        sa.Column('active', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('membership_id'),
        sa.ForeignKeyConstraint(['room_id'], ['support_rooms.room_id'], name='fk_support_room_members_room_id', onupdate='CASCADE', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id'], name='fk_support_room_members_user_id', onupdate='CASCADE', ondelete='CASCADE'),
    )
    op.create_index(
        'uq_support_room_members_active',
        'support_room_members',
        ['user_id', 'support_group_id', 'stage', 'active'],
        unique=True,
    )
    op.create_index('idx_support_room_members_room_left', 'support_room_members', ['room_id', 'left_at'])
    op.create_index('idx_support_room_members_user_left', 'support_room_members', ['user_id', 'left_at'])

    op.create_table(
        'moderation_actions',
        sa.Column('action_id', sa.Integer(), nullable=False, autoincrement=True),
        sa.Column('moderator_id', sa.Integer(), nullable=True),
        sa.Column('action_type', sa.String(length=30), nullable=False),
        sa.Column('target_user_id', sa.Integer(), nullable=True),
        sa.Column('target_room_id', sa.Integer(), nullable=True),
        sa.Column('target_message_id', sa.Integer(), nullable=True),
        sa.Column('reason', sa.String(length=500), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
        sa.PrimaryKeyConstraint('action_id'),
        sa.ForeignKeyConstraint(['moderator_id'], ['users.user_id'], name='fk_moderation_actions_moderator_id', onupdate='CASCADE', ondelete='SET NULL'),
    )
    op.create_index('idx_moderation_actions_moderator_id', 'moderation_actions', ['moderator_id'])
    op.create_index('idx_moderation_actions_target_user_id', 'moderation_actions', ['target_user_id'])
    op.create_index('idx_moderation_actions_target_room_id', 'moderation_actions', ['target_room_id'])
    op.create_index('idx_moderation_actions_created_at', 'moderation_actions', ['created_at'])
    op.create_index('idx_moderation_actions_action_type', 'moderation_actions', ['action_type'])

    for table in ('room_messages', 'room_posts', 'post_comments'):
        columns = [
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('room_id', sa.Integer(), nullable=True),
            sa.Column('user_id', sa.Integer(), nullable=True),
            sa.Column('body', sa.Text(), nullable=False),
            sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=True),
            sa.Column('deleted_at', sa.DateTime(), nullable=True),
            sa.Column('deleted_by', sa.Integer(), nullable=True),
            sa.Column('moderation_reason', sa.String(length=500), nullable=True),
        ]
        if table == 'post_comments':
            columns.append(sa.Column('post_id', sa.Integer(), nullable=True))
        op.create_table(table, *columns, sa.PrimaryKeyConstraint('id'))

    op.create_index('idx_room_messages_room_id', 'room_messages', ['room_id'])
    op.create_index('idx_room_posts_room_id', 'room_posts', ['room_id'])
    op.create_index('idx_post_comments_post_id', 'post_comments', ['post_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('idx_post_comments_post_id', table_name='post_comments')
    op.drop_index('idx_room_posts_room_id', table_name='room_posts')
    op.drop_index('idx_room_messages_room_id', table_name='room_messages')
    for table in ('post_comments', 'room_posts', 'room_messages'):
        op.drop_table(table)

    op.drop_table('moderation_actions')
    op.drop_table('support_room_members')
    op.drop_table('support_rooms')
    op.drop_table('users')
