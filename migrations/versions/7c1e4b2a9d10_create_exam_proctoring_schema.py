"""create exam proctoring schema

Revision ID: 7c1e4b2a9d10
Revises:
Create Date: 2026-01-12 09:14:37.512004

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '7c1e4b2a9d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

role_enum = sa.Enum('STUDENT', 'ADMIN', 'PROCTOR', name='roleenum')
question_type_enum = sa.Enum('SINGLE_CHOICE', 'TRUE_FALSE', 'FREE_TEXT', name='questiontypeenum')
difficulty_enum = sa.Enum('EASY', 'MEDIUM', 'HARD', name='difficultylevelenum')
exam_status_enum = sa.Enum('DRAFT', 'SCHEDULED', 'ACTIVE', 'COMPLETED', 'CANCELLED', name='examstatusenum')
attempt_status_enum = sa.Enum('IN_PROGRESS', 'SUBMITTED', 'EVALUATED', 'FLAGGED', name='examattemptstatusenum')
event_type_enum = sa.Enum(
    'TAB_SWITCH', 'WINDOW_BLUR', 'COPY_PASTE', 'RIGHT_CLICK', 'FULLSCREEN_EXIT', 'FACE_NOT_DETECTED',
    'MULTIPLE_FACES', 'SUSPICIOUS_MOVEMENT', 'BROWSER_RESIZE', 'DEVTOOLS_OPEN', 'SCREENSHOT_ATTEMPT',
    'IDENTITY_MISMATCH', 'NETWORK_DISCONNECT', 'EXAM_STARTED', 'EXAM_SUBMITTED', 'EXAM_TERMINATED',
    name='proctoringeventtypeenum'
)
severity_enum = sa.Enum('LOW', 'MEDIUM', 'HIGH', 'CRITICAL', name='severityenum')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('role', role_enum, nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'questions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('question_type', question_type_enum, nullable=False),
        sa.Column('correct_answer', sa.String(), nullable=True),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('topic', sa.String(), nullable=True),
        sa.Column('difficulty_level', difficulty_enum, nullable=False),
        sa.Column('marks', sa.Float(), nullable=False),
        sa.Column('negative_marks', sa.Float(), nullable=False),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_questions_id'), 'questions', ['id'], unique=False)
    op.create_index(op.f('ix_questions_category'), 'questions', ['category'], unique=False)
    op.create_index(op.f('ix_questions_is_active'), 'questions', ['is_active'], unique=False)

    op.create_table(
        'question_options',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('option_text', sa.String(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_question_options_id'), 'question_options', ['id'], unique=False)
    op.create_index(op.f('ix_question_options_question_id'), 'question_options', ['question_id'], unique=False)

    op.create_table(
        'exams',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('instructions', sa.Text(), nullable=True),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('total_marks', sa.Float(), nullable=False),
        sa.Column('passing_marks', sa.Float(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('per_question_time', sa.Integer(), nullable=True),
        sa.Column('scheduled_date', sa.DateTime(), nullable=False),
        sa.Column('start_time', sa.String(), nullable=True),
        sa.Column('end_time', sa.String(), nullable=True),
        sa.Column('is_proctored', sa.Boolean(), nullable=True),
        sa.Column('video_monitoring', sa.Boolean(), nullable=True),
        sa.Column('browser_lockdown', sa.Boolean(), nullable=True),
        sa.Column('identity_verification', sa.Boolean(), nullable=True),
        sa.Column('tab_switch_limit', sa.Integer(), nullable=True),
        sa.Column('shuffle_questions', sa.Boolean(), nullable=True),
        sa.Column('shuffle_options', sa.Boolean(), nullable=True),
        sa.Column('show_result_immediately', sa.Boolean(), nullable=True),
        sa.Column('allow_review', sa.Boolean(), nullable=True),
        sa.Column('max_attempts', sa.Integer(), nullable=False),
        sa.Column('status', exam_status_enum, nullable=False),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_exams_id'), 'exams', ['id'], unique=False)
    op.create_index(op.f('ix_exams_title'), 'exams', ['title'], unique=False)
    op.create_index(op.f('ix_exams_category'), 'exams', ['category'], unique=False)
    op.create_index(op.f('ix_exams_status'), 'exams', ['status'], unique=False)

    op.create_table(
        'exam_proctors',
        sa.Column('exam_id', sa.Integer(), nullable=False),
        sa.Column('proctor_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['proctor_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('exam_id', 'proctor_id')
    )

    op.create_table(
        'exam_questions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('exam_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('exam_id', 'question_id', name='uq_exam_question')
    )
    op.create_index(op.f('ix_exam_questions_id'), 'exam_questions', ['id'], unique=False)
    op.create_index(op.f('ix_exam_questions_exam_id'), 'exam_questions', ['exam_id'], unique=False)
    op.create_index(op.f('ix_exam_questions_question_id'), 'exam_questions', ['question_id'], unique=False)

    op.create_table(
        'exam_enrollments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('exam_id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('enrolled_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['student_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('exam_id', 'student_id', name='uq_exam_enrollment')
    )
    op.create_index(op.f('ix_exam_enrollments_id'), 'exam_enrollments', ['id'], unique=False)
    op.create_index(op.f('ix_exam_enrollments_exam_id'), 'exam_enrollments', ['exam_id'], unique=False)
    op.create_index(op.f('ix_exam_enrollments_student_id'), 'exam_enrollments', ['student_id'], unique=False)

    op.create_table(
        'exam_attempts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('exam_id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('attempt_number', sa.Integer(), nullable=False),
        sa.Column('status', attempt_status_enum, nullable=False),
        sa.Column('total_marks', sa.Float(), nullable=False),
        sa.Column('obtained_marks', sa.Float(), nullable=False),
        sa.Column('percentage', sa.Float(), nullable=False),
        sa.Column('is_passed', sa.Boolean(), nullable=False),
        sa.Column('correct_answers', sa.Integer(), nullable=False),
        sa.Column('wrong_answers', sa.Integer(), nullable=False),
        sa.Column('unanswered', sa.Integer(), nullable=False),
        sa.Column('time_taken', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('last_activity_at', sa.DateTime(), nullable=True),
        sa.Column('shuffle_seed', sa.Integer(), nullable=False),
        sa.Column('shuffle_questions', sa.Boolean(), nullable=False),
        sa.Column('shuffle_options', sa.Boolean(), nullable=False),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('reviewed_by_id', sa.Integer(), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ),
        sa.ForeignKeyConstraint(['student_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['reviewed_by_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'exam_id', 'attempt_number', name='uq_attempt_ordinal')
    )
    op.create_index(op.f('ix_exam_attempts_id'), 'exam_attempts', ['id'], unique=False)
    op.create_index(op.f('ix_exam_attempts_exam_id'), 'exam_attempts', ['exam_id'], unique=False)
    op.create_index(op.f('ix_exam_attempts_student_id'), 'exam_attempts', ['student_id'], unique=False)
    op.create_index(op.f('ix_exam_attempts_status'), 'exam_attempts', ['status'], unique=False)
    op.create_index(
        'uq_attempt_in_progress',
        'exam_attempts',
        ['student_id', 'exam_id'],
        unique=True,
        postgresql_where=sa.text("status = 'IN_PROGRESS'"),
        sqlite_where=sa.text("status = 'IN_PROGRESS'"),
    )

    op.create_table(
        'attempt_answers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('attempt_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('selected_option', sa.Text(), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('marks_obtained', sa.Float(), nullable=False),
        sa.Column('time_taken', sa.Integer(), nullable=False),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('graded_by_id', sa.Integer(), nullable=True),
        sa.Column('graded_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['attempt_id'], ['exam_attempts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['question_id'], ['questions.id'], ),
        sa.ForeignKeyConstraint(['graded_by_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('attempt_id', 'question_id', name='uq_attempt_answer_question')
    )
    op.create_index(op.f('ix_attempt_answers_id'), 'attempt_answers', ['id'], unique=False)
    op.create_index(op.f('ix_attempt_answers_attempt_id'), 'attempt_answers', ['attempt_id'], unique=False)

    op.create_table(
        'attempt_proctoring_flags',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('attempt_id', sa.Integer(), nullable=False),
        sa.Column('flag_type', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['attempt_id'], ['exam_attempts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_attempt_proctoring_flags_id'), 'attempt_proctoring_flags', ['id'], unique=False)
    op.create_index(
        op.f('ix_attempt_proctoring_flags_attempt_id'), 'attempt_proctoring_flags', ['attempt_id'], unique=False
    )

    op.create_table(
        'proctoring_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('exam_id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('attempt_id', sa.Integer(), nullable=True),
        sa.Column('event_type', event_type_enum, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('severity', severity_enum, nullable=False),
        sa.Column('screenshot', sa.String(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('is_reviewed', sa.Boolean(), nullable=False),
        sa.Column('reviewed_by_id', sa.Integer(), nullable=True),
        sa.Column('review_notes', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ),
        sa.ForeignKeyConstraint(['student_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['attempt_id'], ['exam_attempts.id'], ),
        sa.ForeignKeyConstraint(['reviewed_by_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_proctoring_logs_id'), 'proctoring_logs', ['id'], unique=False)
    op.create_index(op.f('ix_proctoring_logs_exam_id'), 'proctoring_logs', ['exam_id'], unique=False)
    op.create_index(op.f('ix_proctoring_logs_student_id'), 'proctoring_logs', ['student_id'], unique=False)
    op.create_index(op.f('ix_proctoring_logs_attempt_id'), 'proctoring_logs', ['attempt_id'], unique=False)
    op.create_index(op.f('ix_proctoring_logs_event_type'), 'proctoring_logs', ['event_type'], unique=False)
    op.create_index(op.f('ix_proctoring_logs_severity'), 'proctoring_logs', ['severity'], unique=False)
    op.create_index(op.f('ix_proctoring_logs_timestamp'), 'proctoring_logs', ['timestamp'], unique=False)


def downgrade() -> None:
    op.drop_table('proctoring_logs')
    op.drop_table('attempt_proctoring_flags')
    op.drop_table('attempt_answers')
    op.drop_index('uq_attempt_in_progress', table_name='exam_attempts')
    op.drop_table('exam_attempts')
    op.drop_table('exam_enrollments')
    op.drop_table('exam_questions')
    op.drop_table('exam_proctors')
    op.drop_table('exams')
    op.drop_table('question_options')
    op.drop_table('questions')
    op.drop_table('users')

    bind = op.get_bind()
    for enum in (severity_enum, event_type_enum, attempt_status_enum, exam_status_enum,
                 difficulty_enum, question_type_enum, role_enum):
        enum.drop(bind, checkfirst=True)
