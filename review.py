from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from config import get_settings
from errors import NotFound, PolicyViolation, Unauthorized
from models import CandidateProfile, CourseApplication, JobApplication, utcnow
from quota import claim_accepted_slot, release_accepted_slot
from scoring import ScoreDetail, job_qualification_band, review_score_detail
from state_machine import (
    REVIEWER_ACTIONS,
    CourseAction,
    CourseStatus,
    ScoreBand,
    next_course_status,
    next_job_status,
    score_band,
)

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    application_id: str
    previous_status: str
    status: str
    review_score: int | None = None


def lock_course_application(db: Session, application_id: str) -> CourseApplication:
    application = db.scalar(select(CourseApplication).where(CourseApplication.id == application_id).with_for_update())
    if application is None:
        raise NotFound("Application not found")
    return application


def apply_course_transition(
    db: Session,
    application: CourseApplication,
    action: CourseAction,
    band: ScoreBand | None = None,
) -> CourseStatus:
    previous = CourseStatus(application.status)
    new_status = next_course_status(previous, action, band)

    if new_status == CourseStatus.ACCEPTED:
        claim_accepted_slot(db, application)
    elif previous == CourseStatus.ACCEPTED:
        release_accepted_slot(db, application)

    now = utcnow()
    application.status = new_status.value
    application.updated_at = now
    application.decided_at = now
    if action == CourseAction.PROMOTE:
        application.promoted_from_waiting = True
    db.flush()

    logger.info(f"Course application {application.id}: {previous.value} -> {new_status.value} ({action.value})")
    return new_status


def candidate_review_detail(db: Session, student_id: str) -> ScoreDetail:
    profile = db.get(CandidateProfile, student_id)
    if profile is None:
        raise NotFound(f"Candidate profile {student_id} not found")
    return review_score_detail(profile, get_settings().normalize_letter_grades)


def preview_review_score(db: Session, institution_id: str, application_id: str) -> dict[str, Any]:
    application = db.get(CourseApplication, application_id)
    if application is None:
        raise NotFound("Application not found")
    if application.institution_id != institution_id:
        raise Unauthorized("This application was not submitted to your institution")
    detail = candidate_review_detail(db, application.student_id)
    return {**detail.as_dict(), "band": score_band(detail.score).value}


def review_course_application(db: Session, institution_id: str, application_id: str, action: str | CourseAction) -> TransitionResult:
    try:
        action = CourseAction(action)
    except ValueError as exc:
        raise PolicyViolation(f"Unknown review action '{action}'") from exc
    if action not in REVIEWER_ACTIONS:
        raise PolicyViolation(f"Reviewers cannot {action.value.replace('_', ' ')} an application")

    application = lock_course_application(db, application_id)
    if application.institution_id != institution_id:
        raise Unauthorized("This application was not submitted to your institution")

    previous = application.status
    band = None
    if action in (CourseAction.ACCEPT, CourseAction.WAITLIST):
        detail = candidate_review_detail(db, application.student_id)
        logger.debug(f"Review score for {application.id}: {detail.as_dict()}")
        application.review_score = detail.score
        band = score_band(detail.score)

    status = apply_course_transition(db, application, action, band)
    return TransitionResult(application.id, previous, status.value, application.review_score)


def review_job_application(db: Session, company_id: str, application_id: str, status: str) -> TransitionResult:
    application = db.scalar(select(JobApplication).where(JobApplication.id == application_id).with_for_update())
    if application is None:
        raise NotFound("Job application not found")
    if application.company_id != company_id:
        raise Unauthorized("This application was not submitted to your company")

    previous = application.status
    new_status = next_job_status(previous, status)
    application.status = new_status.value
    application.updated_at = utcnow()
    db.flush()

    logger.info(
        f"Job application {application.id}: {previous} -> {new_status.value} "
        f"(score {application.qualification_score}, {job_qualification_band(application.qualification_score)})"
    )
    return TransitionResult(application.id, previous, new_status.value)
