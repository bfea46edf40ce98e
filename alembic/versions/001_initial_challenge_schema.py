"""initial challenge schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'challenge',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('type', sa.Text(), server_default='Custom', nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('image_name', sa.Text(), nullable=True),
        sa.Column('duration_in_days', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('status', sa.Text(), server_default='NotStarted', nullable=False),
        sa.Column('progress', sa.Float(), server_default='0', nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint("type IN ('75Hard', 'WaterFasting', '31Modified', 'Custom')", name='ck_challenge_type'),
        sa.CheckConstraint("status IN ('NotStarted', 'InProgress', 'Completed', 'Failed')", name='ck_challenge_status'),
        sa.CheckConstraint('progress >= 0 AND progress <= 1', name='ck_challenge_progress_range'),
    )
    op.create_index('ix_challenge_status', 'challenge', ['status'])

    op.create_table(
        'task',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('challenge_id', sa.Uuid(), sa.ForeignKey('challenge.id'), nullable=False),
        sa.Column('position', sa.Integer(), server_default='0', nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('type', sa.Text(), server_default='Custom', nullable=False),
        sa.Column('frequency', sa.Text(), server_default='Daily', nullable=False),
        sa.Column('time_of_day', sa.Text(), server_default='Anytime', nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('target_value', sa.Float(), nullable=True),
        sa.Column('target_unit', sa.Text(), nullable=True),
        sa.Column('scheduled_time', sa.Time(), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint(
            "type IN ('Workout', 'Nutrition', 'Water', 'Reading', 'Photo', 'Journal', "
            "'Meditation', 'Custom', 'Fasting', 'Weight', 'Habit')",
            name='ck_task_type',
        ),
        sa.CheckConstraint("frequency IN ('Daily', 'Weekly', 'Monthly', 'Anytime')", name='ck_task_frequency'),
        sa.CheckConstraint("time_of_day IN ('Morning', 'Evening', 'Anytime')", name='ck_task_time_of_day'),
    )
    op.create_index('ix_task_challenge_id', 'task', ['challenge_id'])

    op.create_table(
        'daily_task',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('task_id', sa.Uuid(), sa.ForeignKey('task.id'), nullable=False),
        sa.Column('challenge_id', sa.Uuid(), sa.ForeignKey('challenge.id'), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('status', sa.Text(), server_default='NotStarted', nullable=False),
        sa.Column('actual_value', sa.Float(), nullable=True),
        sa.Column('completion_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint('task_id', 'date', name='uq_daily_task_task_date'),
        sa.CheckConstraint(
            "status IN ('NotStarted', 'InProgress', 'Completed', 'Missed', 'Failed')",
            name='ck_daily_task_status',
        ),
    )
    op.create_index('ix_daily_task_challenge_id', 'daily_task', ['challenge_id'])
    op.create_index('ix_daily_task_date', 'daily_task', ['date'])

    op.create_table(
        'app_user',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('height_cm', sa.Float(), nullable=True),
        sa.Column('weight_kg', sa.Float(), nullable=True),
        sa.Column('appearance_preference', sa.Text(), server_default='system', nullable=False),
        sa.Column('language_code', sa.Text(), server_default='en', nullable=False),
        sa.Column('has_completed_onboarding', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('morning_reminder_time', sa.Time(), nullable=True),
        sa.Column('evening_reminder_time', sa.Time(), nullable=True),
        *_audit_columns(),
    )

    op.create_table(
        'progress_photo',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('challenge_id', sa.Uuid(), sa.ForeignKey('challenge.id'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('angle', sa.Text(), server_default='Front', nullable=False),
        sa.Column('file_path', sa.Text(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_blurred', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('challenge_iteration', sa.Integer(), server_default='1', nullable=False),
        *_audit_columns(),
        sa.CheckConstraint("angle IN ('Front', 'Left Side', 'Right Side', 'Back')", name='ck_progress_photo_angle'),
    )
    op.create_index('ix_progress_photo_challenge_id', 'progress_photo', ['challenge_id'])


def downgrade() -> None:
    op.drop_index('ix_progress_photo_challenge_id', table_name='progress_photo')
    op.drop_table('progress_photo')
    op.drop_table('app_user')
    op.drop_index('ix_daily_task_date', table_name='daily_task')
    op.drop_index('ix_daily_task_challenge_id', table_name='daily_task')
    op.drop_table('daily_task')
    op.drop_index('ix_task_challenge_id', table_name='task')
    op.drop_table('task')
    op.drop_index('ix_challenge_status', table_name='challenge')
    op.drop_table('challenge')
