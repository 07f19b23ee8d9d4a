"""candidate profiles, course and job catalog

Revision ID: 0001_catalog_and_profiles
Revises: 
Create Date: 2026-10-12 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_catalog_and_profiles"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "candidate_profiles",
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("academic_gpa", sa.Numeric(6, 2), nullable=True),
        sa.Column("academic_level", sa.String(length=40), nullable=True),
        sa.Column("high_school_gpa", sa.Numeric(6, 2), nullable=True),
        sa.Column("subjects", JSON_TYPE, nullable=False),
        sa.Column("certificates", JSON_TYPE, nullable=False),
        sa.Column("work_experience", JSON_TYPE, nullable=False),
        sa.Column("fields_of_interest", JSON_TYPE, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("student_id"),
    )

    op.create_table(
        "courses",
        sa.Column("institution_id", sa.String(length=64), nullable=False),
        sa.Column("course_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("institution_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("level", sa.String(length=40), nullable=True),
        sa.Column("requirements", sa.Text(), nullable=False, server_default=""),
        sa.Column("field_tags", JSON_TYPE, nullable=False),
        sa.PrimaryKeyConstraint("institution_id", "course_id", name="pk_courses"),
    )

    op.create_table(
        "jobs",
        sa.Column("job_id", sa.String(length=64), nullable=False),
        sa.Column("company_id", sa.String(length=64), nullable=False),
        sa.Column("company_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("requirements", sa.Text(), nullable=False, server_default=""),
        sa.Column("field_of_work", sa.String(length=80), nullable=True),
        sa.Column("field_tags", JSON_TYPE, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("job_id"),
    )
    op.create_index("ix_jobs_company_id", "jobs", ["company_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_jobs_company_id", table_name="jobs")
    op.drop_table("jobs")
    op.drop_table("courses")
    op.drop_table("candidate_profiles")
