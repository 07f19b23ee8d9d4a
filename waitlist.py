from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from errors import AlreadyAdmittedAtInstitution
from models import Course, CourseApplication
from notifications import queue_promotion_notice
from review import apply_course_transition
from state_machine import CourseAction, CourseStatus

logger = logging.getLogger(__name__)


def waiting_applications(db: Session, institution_id: str, course_id: str) -> list[CourseApplication]:
    return list(
        db.scalars(
            select(CourseApplication)
            .where(
                CourseApplication.institution_id == institution_id,
                CourseApplication.course_id == course_id,
                CourseApplication.status == CourseStatus.WAITING.value,
            )
            .order_by(CourseApplication.created_at.asc(), CourseApplication.id.asc())
            .with_for_update()
        )
    )


def promote_from_waitlist(db: Session, institution_id: str, course_id: str) -> CourseApplication | None:
    """Accept the oldest eligible waiting application for a course.

    Entries whose student already holds an admission at the institution are
    skipped. Returns None when nobody can be promoted.
    """
    for candidate in waiting_applications(db, institution_id, course_id):
        # A failed slot claim leaves the candidate row untouched.
        try:
            apply_course_transition(db, candidate, CourseAction.PROMOTE)
        except AlreadyAdmittedAtInstitution:
            logger.info(f"Skipping waiting application {candidate.id}: student already admitted at {institution_id}")
            continue

        queue_promotion_notice(db, candidate, db.get(Course, (institution_id, course_id)))
        logger.info(f"Promoted {candidate.student_id} from the waiting list of {institution_id}/{course_id}")
        return candidate

    logger.debug(f"No waiting applications to promote for {institution_id}/{course_id}")
    return None
