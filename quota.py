"""Quota & duplicate guard for course and job submissions.

The per-(student, institution) ``ApplicationQuota`` row is the only state
consulted for the two-course cap and the one-admission-per-institution
rule. Both are enforced with conditional UPDATEs so concurrent writers are
serialized by the database row, not by a read followed by a write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import get_settings
from errors import AlreadyAdmittedAtInstitution, DuplicateApplication, NotFound, PolicyViolation, QuotaExceeded, UnderQualified
from models import (
    ApplicationQuota,
    CandidateProfile,
    Course,
    CourseApplication,
    Job,
    JobApplication,
    course_application_id,
    job_application_id,
    utcnow,
)
from scoring import course_eligibility_gaps, course_score_detail, is_valid_work_field, job_score_detail
from state_machine import CourseStatus, JobStatus

logger = logging.getLogger(__name__)

LOW_SCORE_WARNING = 50


@dataclass
class SubmissionResult:
    application_id: str
    qualification_score: int
    low_score_warning: bool = False


def _quota_key(student_id: str, institution_id: str) -> tuple[Any, Any]:
    return (
        ApplicationQuota.student_id == student_id,
        ApplicationQuota.institution_id == institution_id,
    )


def ensure_quota_row(db: Session, student_id: str, institution_id: str) -> None:
    values = {
        "student_id": student_id,
        "institution_id": institution_id,
        "application_count": 0,
        "updated_at": utcnow(),
    }
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        db.execute(pg_insert(ApplicationQuota).values(**values).on_conflict_do_nothing(index_elements=["student_id", "institution_id"]))
        return
    if dialect == "sqlite":
        db.execute(sqlite_insert(ApplicationQuota).values(**values).on_conflict_do_nothing(index_elements=["student_id", "institution_id"]))
        return

    if db.get(ApplicationQuota, (student_id, institution_id)) is not None:
        return
    try:
        with db.begin_nested():
            db.add(ApplicationQuota(**values))
    except IntegrityError:
        logger.debug(f"Quota row for {student_id}@{institution_id} created concurrently")


def _quota_state(db: Session, student_id: str, institution_id: str) -> tuple[int, str | None]:
    row = db.execute(
        select(ApplicationQuota.application_count, ApplicationQuota.accepted_application_id).where(
            *_quota_key(student_id, institution_id)
        )
    ).one()
    return row.application_count, row.accepted_application_id


def _course_application_exists(db: Session, application_id: str) -> bool:
    return db.scalar(select(CourseApplication.id).where(CourseApplication.id == application_id)) is not None


def reserve_application_slot(db: Session, student_id: str, institution_id: str, application_id: str | None = None) -> None:
    limit = get_settings().course_quota_per_institution
    ensure_quota_row(db, student_id, institution_id)
    result = db.execute(
        update(ApplicationQuota)
        .where(
            *_quota_key(student_id, institution_id),
            ApplicationQuota.application_count < limit,
            ApplicationQuota.accepted_application_id.is_(None),
        )
        .values(application_count=ApplicationQuota.application_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    # A concurrent submission for the same course may have taken the last
    # slot after our duplicate read; report it as the duplicate it is.
    if application_id is not None and _course_application_exists(db, application_id):
        raise DuplicateApplication("You have already applied to this course")

    count, accepted_id = _quota_state(db, student_id, institution_id)
    if accepted_id is not None:
        raise AlreadyAdmittedAtInstitution(
            "You already have an accepted admission at this institution. "
            "Students cannot be admitted to multiple programs at the same institution."
        )
    logger.warning(f"Quota reached for {student_id}@{institution_id} ({count}/{limit})")
    raise QuotaExceeded(f"You can apply to a maximum of {limit} courses per institution")


def claim_accepted_slot(db: Session, application: CourseApplication) -> None:
    ensure_quota_row(db, application.student_id, application.institution_id)
    result = db.execute(
        update(ApplicationQuota)
        .where(
            *_quota_key(application.student_id, application.institution_id),
            (ApplicationQuota.accepted_application_id.is_(None))
            | (ApplicationQuota.accepted_application_id == application.id),
        )
        .values(accepted_application_id=application.id)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise AlreadyAdmittedAtInstitution(
            f"Student {application.student_id} already holds an accepted admission at {application.institution_id}"
        )


def release_accepted_slot(db: Session, application: CourseApplication) -> None:
    db.execute(
        update(ApplicationQuota)
        .where(
            *_quota_key(application.student_id, application.institution_id),
            ApplicationQuota.accepted_application_id == application.id,
        )
        .values(accepted_application_id=None)
        .execution_options(synchronize_session=False)
    )


def _flush_new(db: Session, record: Any, message: str) -> None:
    db.add(record)
    try:
        db.flush()
    except IntegrityError as exc:
        raise DuplicateApplication(message) from exc


def submit_course_application(
    db: Session,
    student_id: str,
    institution_id: str,
    course_id: str,
    payload: dict[str, Any] | None = None,
) -> SubmissionResult:
    payload = payload or {}
    application_id = course_application_id(student_id, institution_id, course_id)
    if db.get(CourseApplication, application_id) is not None:
        raise DuplicateApplication("You have already applied to this course")

    course = db.get(Course, (institution_id, course_id))
    if course is None:
        raise NotFound(f"Course {course_id} not found at institution {institution_id}")
    profile = db.get(CandidateProfile, student_id)
    if profile is None:
        raise NotFound(f"Candidate profile {student_id} not found")

    reserve_application_slot(db, student_id, institution_id, application_id)

    gaps = course_eligibility_gaps(profile, course)
    if gaps:
        raise UnderQualified("; ".join(gaps))

    detail = course_score_detail(profile, course)
    logger.debug(f"Course score for {student_id} -> {course_id}: {detail.as_dict()}")

    now = utcnow()
    application = CourseApplication(
        id=application_id,
        student_id=student_id,
        institution_id=institution_id,
        course_id=course_id,
        status=CourseStatus.PENDING.value,
        qualification_score=detail.score,
        motivation=str(payload.get("motivation") or ""),
        final_admission_confirmed=False,
        promoted_from_waiting=False,
        created_at=now,
        updated_at=now,
    )
    _flush_new(db, application, "You have already applied to this course")

    logger.info(f"Course application {application_id} submitted by {student_id} for {institution_id}/{course_id} (score {detail.score})")
    return SubmissionResult(application_id, detail.score, detail.score < LOW_SCORE_WARNING)


def submit_job_application(db: Session, student_id: str, job_id: str, payload: dict[str, Any] | None = None) -> SubmissionResult:
    payload = payload or {}
    application_id = job_application_id(student_id, job_id)
    if db.get(JobApplication, application_id) is not None:
        raise DuplicateApplication("You have already applied to this job")

    field_of_work = str(payload.get("field_of_work") or "").strip()
    if not is_valid_work_field(field_of_work):
        raise PolicyViolation("A field of work from the listed categories is required")

    job = db.get(Job, job_id)
    if job is None:
        raise NotFound(f"Job {job_id} not found")
    profile = db.get(CandidateProfile, student_id)
    if profile is None:
        raise NotFound(f"Candidate profile {student_id} not found")

    detail = job_score_detail({"field_of_work": field_of_work}, profile, job)
    logger.debug(f"Job score for {student_id} -> {job_id}: {detail.as_dict()}")

    now = utcnow()
    application = JobApplication(
        id=application_id,
        student_id=student_id,
        job_id=job_id,
        company_id=job.company_id,
        status=JobStatus.PENDING.value,
        qualification_score=detail.score,
        field_of_work=field_of_work,
        cover_letter=str(payload.get("cover_letter") or ""),
        created_at=now,
        updated_at=now,
    )
    _flush_new(db, application, "You have already applied to this job")

    logger.info(f"Job application {application_id} submitted by {student_id} for {job_id} (score {detail.score})")
    return SubmissionResult(application_id, detail.score)
