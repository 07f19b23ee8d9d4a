from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from state_machine import COURSE_STATUSES, JOB_STATUSES, CourseStatus, JobStatus

JsonColumn = JSON().with_variant(JSONB(), "postgresql")

APPLICATION_NAMESPACE = uuid.UUID("6f1d8a52-3c1e-4b8e-9a57-2f0d4c7b9e11")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def course_application_id(student_id: str, institution_id: str, course_id: str) -> str:
    return str(uuid.uuid5(APPLICATION_NAMESPACE, f"course:{student_id}:{institution_id}:{course_id}"))


def job_application_id(student_id: str, job_id: str) -> str:
    return str(uuid.uuid5(APPLICATION_NAMESPACE, f"job:{student_id}:{job_id}"))


def _status_check(column: str, values: tuple[str, ...], name: str) -> CheckConstraint:
    allowed = ", ".join(f"'{value}'" for value in values)
    return CheckConstraint(f"{column} in ({allowed})", name=name)


class Base(DeclarativeBase):
    pass


class CandidateProfile(Base):
    __tablename__ = "candidate_profiles"

    student_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    academic_gpa: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2), nullable=True)
    academic_level: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    high_school_gpa: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2), nullable=True)
    subjects: Mapped[list[dict[str, Any]]] = mapped_column(JsonColumn, nullable=False, default=list)  # [{"subject", "grade"}]
    certificates: Mapped[list[Any]] = mapped_column(JsonColumn, nullable=False, default=list)
    work_experience: Mapped[list[Any]] = mapped_column(JsonColumn, nullable=False, default=list)
    fields_of_interest: Mapped[list[str]] = mapped_column(JsonColumn, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Course(Base):
    __tablename__ = "courses"

    institution_id: Mapped[str] = mapped_column(String(64), nullable=False)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    institution_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    level: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)  # certificate | diploma | undergraduate | ...
    requirements: Mapped[str] = mapped_column(Text, nullable=False, default="")
    field_tags: Mapped[list[str]] = mapped_column(JsonColumn, nullable=False, default=list)

    __table_args__ = (PrimaryKeyConstraint("institution_id", "course_id", name="pk_courses"),)


class Job(Base):
    __tablename__ = "jobs"

    job_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    requirements: Mapped[str] = mapped_column(Text, nullable=False, default="")
    field_of_work: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    field_tags: Mapped[list[str]] = mapped_column(JsonColumn, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (Index("ix_jobs_company_id", "company_id"),)


class CourseApplication(Base):
    __tablename__ = "course_applications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    institution_id: Mapped[str] = mapped_column(String(64), nullable=False)
    course_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=CourseStatus.PENDING.value)
    qualification_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    review_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    motivation: Mapped[str] = mapped_column(Text, nullable=False, default="")
    final_admission_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    promoted_from_waiting: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    decline_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        _status_check("status", COURSE_STATUSES, "ck_course_applications_status"),
        CheckConstraint(
            "qualification_score >= 0 and qualification_score <= 100",
            name="ck_course_applications_score",
        ),
        UniqueConstraint("student_id", "institution_id", "course_id", name="uq_course_applications_target"),
        Index("ix_course_applications_student_status", "student_id", "status"),
        Index("ix_course_applications_waitlist", "institution_id", "course_id", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<CourseApplication {self.student_id} -> {self.institution_id}/{self.course_id} [{self.status}]>"


class JobApplication(Base):
    __tablename__ = "job_applications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    job_id: Mapped[str] = mapped_column(String(64), nullable=False)
    company_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=JobStatus.PENDING.value)
    qualification_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    field_of_work: Mapped[str] = mapped_column(String(80), nullable=False)
    cover_letter: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        _status_check("status", JOB_STATUSES, "ck_job_applications_status"),
        UniqueConstraint("student_id", "job_id", name="uq_job_applications_target"),
        Index("ix_job_applications_job_id", "job_id"),
        Index("ix_job_applications_company_id", "company_id"),
    )

    def __repr__(self) -> str:
        return f"<JobApplication {self.student_id} -> {self.job_id} [{self.status}]>"


class ApplicationQuota(Base):
    """Counted set of course applications per (student, institution)."""

    __tablename__ = "application_quotas"

    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    institution_id: Mapped[str] = mapped_column(String(64), nullable=False)
    application_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accepted_application_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("student_id", "institution_id", name="pk_application_quotas"),
        CheckConstraint("application_count >= 0", name="ck_application_quotas_count"),
    )


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(40), nullable=False)  # admission_promoted | student_declined
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("type in ('admission_promoted', 'student_declined')", name="ck_notifications_type"),
        Index("ix_notifications_user_id", "user_id"),
        Index("ix_notifications_undelivered", "delivered_at"),
    )

    def as_payload(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "userId": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "link": self.link,
            "read": self.read,
        }
