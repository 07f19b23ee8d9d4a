"""course and job applications with per-institution quotas

Revision ID: 0002_applications_and_quotas
Revises: 0001_catalog_and_profiles
Create Date: 2026-10-12 09:30:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0002_applications_and_quotas"
down_revision: Union[str, Sequence[str], None] = "0001_catalog_and_profiles"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "course_applications",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("institution_id", sa.String(length=64), nullable=False),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("qualification_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("review_score", sa.Integer(), nullable=True),
        sa.Column("motivation", sa.Text(), nullable=False, server_default=""),
        sa.Column("final_admission_confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("promoted_from_waiting", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("decline_reason", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "status in ('pending', 'accepted', 'waiting', 'rejected', 'declined_by_student')",
            name="ck_course_applications_status",
        ),
        sa.CheckConstraint(
            "qualification_score >= 0 and qualification_score <= 100",
            name="ck_course_applications_score",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("student_id", "institution_id", "course_id", name="uq_course_applications_target"),
    )
    op.create_index(
        "ix_course_applications_student_status", "course_applications", ["student_id", "status"], unique=False
    )
    op.create_index(
        "ix_course_applications_waitlist",
        "course_applications",
        ["institution_id", "course_id", "status", "created_at"],
        unique=False,
    )

    op.create_table(
        "job_applications",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("job_id", sa.String(length=64), nullable=False),
        sa.Column("company_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("qualification_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("field_of_work", sa.String(length=80), nullable=False),
        sa.Column("cover_letter", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "status in ('pending', 'shortlisted', 'interview', 'accepted', 'rejected')",
            name="ck_job_applications_status",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("student_id", "job_id", name="uq_job_applications_target"),
    )
    op.create_index("ix_job_applications_job_id", "job_applications", ["job_id"], unique=False)
    op.create_index("ix_job_applications_company_id", "job_applications", ["company_id"], unique=False)

    op.create_table(
        "application_quotas",
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("institution_id", sa.String(length=64), nullable=False),
        sa.Column("application_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("accepted_application_id", sa.String(length=36), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("application_count >= 0", name="ck_application_quotas_count"),
        sa.PrimaryKeyConstraint("student_id", "institution_id", name="pk_application_quotas"),
    )


def downgrade() -> None:
    op.drop_table("application_quotas")
    op.drop_index("ix_job_applications_company_id", table_name="job_applications")
    op.drop_index("ix_job_applications_job_id", table_name="job_applications")
    op.drop_table("job_applications")
    op.drop_index("ix_course_applications_waitlist", table_name="course_applications")
    op.drop_index("ix_course_applications_student_status", table_name="course_applications")
    op.drop_table("course_applications")
