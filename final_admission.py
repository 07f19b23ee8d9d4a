"""Candidate decisions on admission offers.

Both operations run inside the caller's transaction: declines, waitlist
promotions and the queued notifications commit together or not at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from errors import PolicyViolation, Unauthorized
from models import Course, CourseApplication, utcnow
from notifications import queue_declined_notice
from review import apply_course_transition, lock_course_application
from state_machine import CourseAction, CourseStatus
from waitlist import promote_from_waitlist

logger = logging.getLogger(__name__)

DECLINE_REASON = "Student selected another institution"


@dataclass
class FinalAdmissionResult:
    application_id: str
    message: str
    declined_application_ids: list[str] = field(default_factory=list)
    promoted_application_ids: list[str] = field(default_factory=list)

    @property
    def promoted_waitlists(self) -> int:
        return len(self.promoted_application_ids)


@dataclass
class DeclineResult:
    application_id: str
    previous_status: str
    status: str
    promoted_application_id: str | None = None


def _owned_application(db: Session, student_id: str, application_id: str) -> CourseApplication:
    application = lock_course_application(db, application_id)
    if application.student_id != student_id:
        raise Unauthorized("Unauthorized: This application does not belong to you")
    return application


def accepted_applications(db: Session, student_id: str) -> list[CourseApplication]:
    return list(
        db.scalars(
            select(CourseApplication)
            .where(
                CourseApplication.student_id == student_id,
                CourseApplication.status == CourseStatus.ACCEPTED.value,
            )
            .order_by(CourseApplication.created_at.asc(), CourseApplication.id.asc())
            .with_for_update()
        )
    )


def select_final_admission(db: Session, student_id: str, application_id: str) -> FinalAdmissionResult:
    chosen = _owned_application(db, student_id, application_id)
    if chosen.status != CourseStatus.ACCEPTED.value:
        raise PolicyViolation("You can only select from accepted admissions")

    accepted = accepted_applications(db, student_id)
    now = utcnow()
    chosen.final_admission_confirmed = True
    chosen.confirmed_at = now
    chosen.updated_at = now

    others = [application for application in accepted if application.id != chosen.id]
    if not others:
        db.flush()
        logger.info(f"Final admission {chosen.id} confirmed for {student_id}")
        return FinalAdmissionResult(chosen.id, "Admission confirmed!")

    for application in others:
        application.decline_reason = DECLINE_REASON
        apply_course_transition(db, application, CourseAction.RESOLVE_DECLINE)
        queue_declined_notice(db, application, db.get(Course, (application.institution_id, application.course_id)))

    promoted: list[str] = []
    for application in others:
        promotion = promote_from_waitlist(db, application.institution_id, application.course_id)
        if promotion is not None:
            promoted.append(promotion.id)

    declined = [application.id for application in others]
    logger.info(
        f"Final admission {chosen.id} confirmed for {student_id}; declined {len(declined)} other offer(s), "
        f"promoted {len(promoted)} waiting application(s)"
    )
    return FinalAdmissionResult(
        chosen.id,
        "Final admission confirmed! Other acceptances have been declined and waiting list students have been promoted.",
        declined,
        promoted,
    )


def decline_offer(db: Session, student_id: str, application_id: str) -> DeclineResult:
    application = _owned_application(db, student_id, application_id)
    previous = application.status
    status = apply_course_transition(db, application, CourseAction.DECLINE_OFFER)
    promotion = promote_from_waitlist(db, application.institution_id, application.course_id)
    return DeclineResult(application.id, previous, status.value, promotion.id if promotion is not None else None)
