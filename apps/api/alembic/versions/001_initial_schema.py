"""initial schema: users, badges, projects, sprints, tasks

Revision ID: 001
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create app_user table
    op.create_table(
        'app_user',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('subscription_tier', sa.Text(), server_default='free', nullable=False),
        sa.Column('ai_usage_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('timezone', sa.Text(), nullable=True),
        sa.Column('sprint_duration_weeks', sa.Integer(), server_default='2', nullable=False),
        sa.Column('ai_coach_name', sa.Text(), server_default='Coach', nullable=False),
        sa.CheckConstraint('ai_usage_count >= 0', name='ck_app_user_ai_usage_count_non_negative'),
    )
    op.create_index('ix_app_user_email', 'app_user', ['email'], unique=True)

    # Badge catalog (rows upserted by the app at startup)
    op.create_table(
        'badge',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('criteria', sa.Text(), nullable=False),
        sa.Column('icon', sa.Text(), nullable=False),
        sa.Column('badge_type', sa.Text(), nullable=False),
        sa.Column('catalog_version', sa.Integer(), nullable=False),
    )

    op.create_table(
        'user_badge',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('badge_id', sa.Text(), nullable=False),
        sa.Column('earned_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['app_user.id'], ),
        sa.ForeignKeyConstraint(['badge_id'], ['badge.id'], ),
        sa.UniqueConstraint('user_id', 'badge_id', name='uq_user_badge'),
    )
    op.create_index('ix_user_badge_user_id', 'user_badge', ['user_id'])

    op.create_table(
        'daily_checkin',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('checked_in_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['app_user.id'], ),
    )
    op.create_index('ix_daily_checkin_user_id', 'daily_checkin', ['user_id'])

    op.create_table(
        'project',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('color_theme', sa.Text(), server_default='indigo', nullable=False),
        sa.Column('status', sa.Text(), server_default='active', nullable=False),
        sa.Column('total_sprints', sa.Integer(), nullable=False),
        sa.Column('sprint_duration_weeks', sa.Integer(), nullable=False),
        sa.Column('target_completion_date', sa.Date(), nullable=True),
        sa.Column('estimated_completion_date', sa.Date(), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['app_user.id'], ),
        sa.CheckConstraint('total_sprints >= 1', name='ck_project_total_sprints_positive'),
    )
    op.create_index('ix_project_owner_id', 'project', ['owner_id'])
    op.create_index('ix_project_status', 'project', ['status'])

    op.create_table(
        'sprint',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sprint_number', sa.Integer(), nullable=False),
        sa.Column('goal', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), server_default='planning', nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('velocity_points', sa.Integer(), nullable=True),
        sa.Column('retrospective_good', sa.Text(), nullable=True),
        sa.Column('retrospective_improve', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['project_id'], ['project.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('project_id', 'sprint_number', name='uq_sprint_project_number'),
    )
    op.create_index('ix_sprint_project_id', 'sprint', ['project_id'])
    # At most one active sprint per project
    op.create_index(
        'uq_sprint_one_active_per_project',
        'sprint',
        ['project_id'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )

    op.create_table(
        'task',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('sprint_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('position', sa.Integer(), server_default='0', nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), server_default='backlog', nullable=False),
        sa.Column('story_points', sa.Integer(), nullable=True),
        sa.Column('created_by_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('assignee_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_ai_assisted', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('planned_date', sa.Date(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['sprint_id'], ['sprint.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by_id'], ['app_user.id'], ),
        sa.ForeignKeyConstraint(['assignee_id'], ['app_user.id'], ),
    )
    op.create_index('ix_task_sprint_id', 'task', ['sprint_id'])
    op.create_index('ix_task_planned_date', 'task', ['planned_date'])

    op.create_table(
        'subtask',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('task_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('position', sa.Integer(), server_default='0', nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('is_completed', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('created_by_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('assignee_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('is_ai_assisted', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.ForeignKeyConstraint(['task_id'], ['task.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by_id'], ['app_user.id'], ),
        sa.ForeignKeyConstraint(['assignee_id'], ['app_user.id'], ),
    )
    op.create_index('ix_subtask_task_id', 'subtask', ['task_id'])

    # Append-only status audit log
    op.create_table(
        'task_status_change',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('task_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('changed_by_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('from_status', sa.Text(), nullable=False),
        sa.Column('to_status', sa.Text(), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['task_id'], ['task.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['changed_by_id'], ['app_user.id'], ),
    )
    op.create_index('ix_task_status_change_task_id', 'task_status_change', ['task_id'])


def downgrade() -> None:
    op.drop_index('ix_task_status_change_task_id', table_name='task_status_change')
    op.drop_table('task_status_change')
    op.drop_index('ix_subtask_task_id', table_name='subtask')
    op.drop_table('subtask')
    op.drop_index('ix_task_planned_date', table_name='task')
    op.drop_index('ix_task_sprint_id', table_name='task')
    op.drop_table('task')
    op.drop_index('uq_sprint_one_active_per_project', table_name='sprint')
    op.drop_index('ix_sprint_project_id', table_name='sprint')
    op.drop_table('sprint')
    op.drop_index('ix_project_status', table_name='project')
    op.drop_index('ix_project_owner_id', table_name='project')
    op.drop_table('project')
    op.drop_index('ix_daily_checkin_user_id', table_name='daily_checkin')
    op.drop_table('daily_checkin')
    op.drop_index('ix_user_badge_user_id', table_name='user_badge')
    op.drop_table('user_badge')
    op.drop_table('badge')
    op.drop_index('ix_app_user_email', table_name='app_user')
    op.drop_table('app_user')
