from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from errors import NotFound, PolicyViolation
from models import CandidateProfile, CourseApplication, Job, JobApplication
from scoring import job_eligibility_gaps
from state_machine import COURSE_STATUSES


def student_course_applications(db: Session, student_id: str) -> list[CourseApplication]:
    return list(
        db.scalars(
            select(CourseApplication)
            .where(CourseApplication.student_id == student_id)
            .order_by(CourseApplication.created_at.desc())
        )
    )


def student_job_applications(db: Session, student_id: str) -> list[JobApplication]:
    return list(
        db.scalars(
            select(JobApplication)
            .where(JobApplication.student_id == student_id)
            .order_by(JobApplication.created_at.desc())
        )
    )


def institution_applications(db: Session, institution_id: str, status: str | None = None) -> list[CourseApplication]:
    stmt = select(CourseApplication).where(CourseApplication.institution_id == institution_id)
    if status and status != "all":
        if status not in COURSE_STATUSES:
            raise PolicyViolation(f"Unknown application status '{status}'")
        stmt = stmt.where(CourseApplication.status == status)
    return list(db.scalars(stmt.order_by(CourseApplication.created_at.desc())))


def job_applications(db: Session, job_id: str) -> list[JobApplication]:
    return list(
        db.scalars(
            select(JobApplication)
            .where(JobApplication.job_id == job_id)
            .order_by(JobApplication.created_at.desc())
        )
    )


def company_job_applications(db: Session, company_id: str) -> list[JobApplication]:
    return list(
        db.scalars(
            select(JobApplication)
            .where(JobApplication.company_id == company_id)
            .order_by(JobApplication.job_id.asc(), JobApplication.created_at.desc())
        )
    )


def qualified_jobs(db: Session, student_id: str, limit: int = 50) -> list[Job]:
    jobs = list(db.scalars(select(Job).order_by(Job.created_at.desc()).limit(limit)))
    profile = db.get(CandidateProfile, student_id)
    if profile is None:
        raise NotFound(f"Candidate profile {student_id} not found")
    return [job for job in jobs if not job_eligibility_gaps(profile, job)]
