"""create quiz, session, participant and answer tables

Revision ID: 4c7d2e91a0b1
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c7d2e91a0b1'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'quiz',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=True),
    )
    op.create_table(
        'question',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quiz.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('time_limit', sa.Integer(), nullable=False),
        sa.Column('base_points', sa.Integer(), nullable=False),
        sa.Column('speed_bonus_multiplier', sa.Float(), nullable=False),
        sa.Column('partial_credit_enabled', sa.Boolean(), nullable=False),
        sa.Column('explanation', sa.Text(), nullable=True),
    )
    op.create_table(
        'question_option',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('text', sa.String(length=500), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
    )
    op.create_table(
        'quiz_session',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('join_code', sa.String(length=16), nullable=False),
        sa.Column('quiz_id', sa.Integer(), sa.ForeignKey('quiz.id'), nullable=False),
        sa.Column('host_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('state', sa.String(length=32), nullable=False),
        sa.Column('current_question_index', sa.Integer(), nullable=False),
        sa.Column('question_started_at', sa.Float(), nullable=True),
        sa.Column('timer_end_at', sa.Float(), nullable=True),
        sa.Column('allow_late_joiners', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=True),
        sa.Column('started_at', sa.Float(), nullable=True),
        sa.Column('ended_at', sa.Float(), nullable=True),
    )
    op.create_index('ix_quiz_session_join_code', 'quiz_session', ['join_code'], unique=True)
    op.create_table(
        'participant',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('quiz_session.id'), nullable=False),
        sa.Column('nickname', sa.String(length=20), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_spectator', sa.Boolean(), nullable=False),
        sa.Column('is_connected', sa.Boolean(), nullable=False),
        sa.Column('total_score', sa.Integer(), nullable=False),
        sa.Column('total_time_ms', sa.Integer(), nullable=False),
        sa.Column('streak_count', sa.Integer(), nullable=False),
        sa.Column('joined_at', sa.Float(), nullable=True),
    )
    op.create_index('ix_participant_session_id', 'participant', ['session_id'])
    op.create_table(
        'answer',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('quiz_session.id'), nullable=False),
        sa.Column('participant_id', sa.Integer(), sa.ForeignKey('participant.id'), nullable=False),
        sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
        sa.Column('selected_options', sa.Text(), nullable=False),
        sa.Column('response_time_ms', sa.Integer(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('points_awarded', sa.Integer(), nullable=False),
        sa.Column('speed_bonus_applied', sa.Integer(), nullable=False),
        sa.Column('streak_bonus_applied', sa.Integer(), nullable=False),
        sa.Column('partial_credit_applied', sa.Boolean(), nullable=False),
        sa.Column('submitted_at', sa.Float(), nullable=True),
        sa.UniqueConstraint('participant_id', 'question_id', name='uq_answer_participant_question'),
    )
    op.create_index('ix_answer_session_id', 'answer', ['session_id'])


def downgrade():
    op.drop_index('ix_answer_session_id', table_name='answer')
    op.drop_table('answer')
    op.drop_index('ix_participant_session_id', table_name='participant')
    op.drop_table('participant')
    op.drop_index('ix_quiz_session_join_code', table_name='quiz_session')
    op.drop_table('quiz_session')
    op.drop_table('question_option')
    op.drop_table('question')
    op.drop_table('quiz')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
