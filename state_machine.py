"""Course and job application statuses and their legal transitions.

Course transitions are looked up by ``(status, action, score band)``. A
band of ``None`` in the table means the transition does not depend on the
institution-review score.
"""

from __future__ import annotations

from enum import Enum

from config import get_settings
from errors import PolicyViolation


class CourseStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    WAITING = "waiting"
    REJECTED = "rejected"
    DECLINED_BY_STUDENT = "declined_by_student"


class CourseAction(str, Enum):
    ACCEPT = "accept"
    WAITLIST = "waitlist"
    REJECT = "reject"
    DECLINE_OFFER = "decline_offer"
    PROMOTE = "promote"
    RESOLVE_DECLINE = "resolve_decline"


class ScoreBand(str, Enum):
    ELIGIBLE = "eligible"
    WAITLIST = "waitlist"
    NOT_ELIGIBLE = "not_eligible"


class JobStatus(str, Enum):
    PENDING = "pending"
    SHORTLISTED = "shortlisted"
    INTERVIEW = "interview"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


COURSE_STATUSES = tuple(status.value for status in CourseStatus)
JOB_STATUSES = tuple(status.value for status in JobStatus)
TERMINAL_COURSE_STATUSES = frozenset({CourseStatus.REJECTED, CourseStatus.DECLINED_BY_STUDENT})

REVIEWER_ACTIONS = frozenset({CourseAction.ACCEPT, CourseAction.WAITLIST, CourseAction.REJECT})

COURSE_TRANSITIONS: dict[tuple[CourseStatus, CourseAction, ScoreBand | None], CourseStatus] = {
    (CourseStatus.PENDING, CourseAction.ACCEPT, ScoreBand.ELIGIBLE): CourseStatus.ACCEPTED,
    (CourseStatus.PENDING, CourseAction.WAITLIST, ScoreBand.WAITLIST): CourseStatus.WAITING,
    (CourseStatus.PENDING, CourseAction.REJECT, None): CourseStatus.REJECTED,
    (CourseStatus.WAITING, CourseAction.REJECT, None): CourseStatus.REJECTED,
    (CourseStatus.WAITING, CourseAction.PROMOTE, None): CourseStatus.ACCEPTED,
    (CourseStatus.ACCEPTED, CourseAction.DECLINE_OFFER, None): CourseStatus.REJECTED,
    (CourseStatus.ACCEPTED, CourseAction.RESOLVE_DECLINE, None): CourseStatus.DECLINED_BY_STUDENT,
}

JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.SHORTLISTED, JobStatus.INTERVIEW, JobStatus.ACCEPTED, JobStatus.REJECTED}),
    JobStatus.SHORTLISTED: frozenset({JobStatus.INTERVIEW, JobStatus.ACCEPTED, JobStatus.REJECTED}),
    JobStatus.INTERVIEW: frozenset({JobStatus.ACCEPTED, JobStatus.REJECTED}),
    JobStatus.ACCEPTED: frozenset(),
    JobStatus.REJECTED: frozenset(),
}


def score_band(score: int | None) -> ScoreBand:
    settings = get_settings()
    if score is not None and score >= settings.accept_min_review_score:
        return ScoreBand.ELIGIBLE
    if score is not None and score >= settings.waitlist_min_review_score:
        return ScoreBand.WAITLIST
    return ScoreBand.NOT_ELIGIBLE


def next_course_status(current: str | CourseStatus, action: str | CourseAction, band: ScoreBand | None = None) -> CourseStatus:
    status = CourseStatus(current)
    try:
        action = CourseAction(action)
    except ValueError as exc:
        raise PolicyViolation(f"Unknown application action '{action}'") from exc

    unconditional = COURSE_TRANSITIONS.get((status, action, None))
    if unconditional is not None:
        return unconditional
    if band is not None:
        banded = COURSE_TRANSITIONS.get((status, action, band))
        if banded is not None:
            return banded

    if status == CourseStatus.PENDING and action == CourseAction.ACCEPT:
        raise PolicyViolation(
            f"Acceptance requires an institution-review score of at least {get_settings().accept_min_review_score}"
        )
    if status == CourseStatus.PENDING and action == CourseAction.WAITLIST:
        settings = get_settings()
        raise PolicyViolation(
            "Waitlisting requires an institution-review score between "
            f"{settings.waitlist_min_review_score} and {settings.accept_min_review_score - 1}"
        )
    raise PolicyViolation(f"Cannot {action.value.replace('_', ' ')} an application that is {status.value}")


def next_job_status(current: str | JobStatus, target: str | JobStatus) -> JobStatus:
    status = JobStatus(current)
    try:
        wanted = JobStatus(target)
    except ValueError as exc:
        raise PolicyViolation(f"Unknown job application status '{target}'") from exc
    if wanted not in JOB_TRANSITIONS[status]:
        raise PolicyViolation(f"Cannot move a job application from {status.value} to {wanted.value}")
    return wanted
