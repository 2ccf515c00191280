"""initial squadron schema

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0a1b2c3d4e5f'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CRITERIA = (
    "first_class_logbook_completed",
    "basic_cyber_security_video_watched",
    "correct_use_of_both_full_callsigns",
    "authenticate_requested",
    "authenticate_answered_correctly",
    "radio_check_requested",
    "radio_check_answered_correctly",
    "tactical_message_fully_answered",
    "i_say_again_used_correctly",
    "say_again_used",
    "proword_knowledge_completed_ok",
    "security_knowledge_completed_ok",
    "general_operating_and_confidence",
)


def _status(name: str) -> sa.Column:
    return sa.Column(name, sa.String(16), nullable=False, server_default="UNCONFIRMED")


def upgrade() -> None:
    """Create users, audit, lessons, duty rota, absences, uniform store and assessment tables."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(64), nullable=False, unique=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False, server_default="USER"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("request_id", sa.String(64), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_username", sa.String(64), nullable=True),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("entity_type", sa.String(128), nullable=True),
        sa.Column("entity_id", sa.String(128), nullable=True),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("client_ip", sa.String(64), nullable=True),
    )

    op.create_table(
        "lessons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("lesson_date", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
    )
    op.create_index("idx_lessons_date", "lessons", ["lesson_date"])

    op.create_table(
        "lesson_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("lesson_id", sa.Integer(), sa.ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigned_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("lesson_id", "user_id", name="uq_lesson_assignment_lesson_user"),
    )
    op.create_index("idx_lesson_assignments_user", "lesson_assignments", ["user_id"])

    op.create_table(
        "lesson_resources",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("lesson_id", sa.Integer(), sa.ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("storage_key", sa.String(512), nullable=False),
        sa.Column("content_type", sa.String(128), nullable=True),
        sa.Column("size_bytes", sa.Integer(), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "duty_rota",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("duty_date", sa.Date(), nullable=False, unique=True),
        sa.Column("original_senior_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("original_junior_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("actual_senior_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("actual_junior_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        _status("senior_status"),
        _status("junior_status"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("idx_duty_rota_actual_senior", "duty_rota", ["actual_senior_id"])
    op.create_index("idx_duty_rota_actual_junior", "duty_rota", ["actual_junior_id"])

    op.create_table(
        "absences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("idx_absences_user", "absences", ["user_id"])
    op.create_index("idx_absences_range", "absences", ["start_date", "end_date"])

    op.create_table(
        "uniform_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("size", sa.String(32), nullable=False),
        sa.Column("condition", sa.String(16), nullable=False),
        sa.Column("added_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("added_at", sa.DateTime(), nullable=False),
    )
    op.create_index("idx_uniform_items_type", "uniform_items", ["type"])

    op.create_table(
        "cadets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("serial", sa.String(64), nullable=True),
        sa.Column("sqn", sa.String(32), nullable=False),
        sa.Column("rank", sa.String(32), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("idx_cadets_full_name", "cadets", ["full_name"])

    op.create_table(
        "assessment_cohorts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(32), nullable=False, server_default="BASIC_RADIO_OPERATOR"),
        sa.Column("instructor_name", sa.String(255), nullable=False),
        sa.Column("instructor_sqn", sa.String(32), nullable=False),
        sa.Column("assessor_name", sa.String(255), nullable=False),
        sa.Column("assessor_sqn", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "radio_assessments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("cohort_id", sa.Integer(), sa.ForeignKey("assessment_cohorts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("cadet_id", sa.Integer(), sa.ForeignKey("cadets.id"), nullable=False),
        *[sa.Column(name, sa.String(16), nullable=False, server_default="PENDING") for name in CRITERIA],
        sa.Column("pass_fail", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("cohort_id", "cadet_id", name="uq_radio_assessment_cohort_cadet"),
    )
    op.create_index("idx_radio_assessments_cohort", "radio_assessments", ["cohort_id"])


def downgrade() -> None:
    for table in (
        "radio_assessments",
        "assessment_cohorts",
        "cadets",
        "uniform_items",
        "absences",
        "duty_rota",
        "lesson_resources",
        "lesson_assignments",
        "lessons",
        "audit_events",
        "users",
    ):
        op.drop_table(table)
