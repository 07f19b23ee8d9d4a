import pytest

from config import get_settings
from errors import PolicyViolation
from state_machine import (
    CourseAction,
    CourseStatus,
    JobStatus,
    ScoreBand,
    next_course_status,
    next_job_status,
    score_band,
)


def test_score_band_thresholds() -> None:
    assert score_band(100) == ScoreBand.ELIGIBLE
    assert score_band(60) == ScoreBand.ELIGIBLE
    assert score_band(59) == ScoreBand.WAITLIST
    assert score_band(40) == ScoreBand.WAITLIST
    assert score_band(39) == ScoreBand.NOT_ELIGIBLE
    assert score_band(None) == ScoreBand.NOT_ELIGIBLE


def test_score_band_follows_configured_thresholds(monkeypatch) -> None:
    monkeypatch.setenv("ACCEPT_MIN_REVIEW_SCORE", "70")
    monkeypatch.setenv("WAITLIST_MIN_REVIEW_SCORE", "50")
    get_settings.cache_clear()

    assert score_band(65) == ScoreBand.WAITLIST
    assert score_band(45) == ScoreBand.NOT_ELIGIBLE


def test_pending_transitions() -> None:
    assert next_course_status("pending", CourseAction.ACCEPT, ScoreBand.ELIGIBLE) == CourseStatus.ACCEPTED
    assert next_course_status("pending", "waitlist", ScoreBand.WAITLIST) == CourseStatus.WAITING
    assert next_course_status("pending", "reject") == CourseStatus.REJECTED
    assert next_course_status("pending", "reject", ScoreBand.ELIGIBLE) == CourseStatus.REJECTED


def test_accept_requires_eligible_band() -> None:
    with pytest.raises(PolicyViolation, match="at least 60"):
        next_course_status("pending", "accept", ScoreBand.WAITLIST)
    with pytest.raises(PolicyViolation):
        next_course_status("pending", "accept")


def test_waitlist_requires_waitlist_band() -> None:
    with pytest.raises(PolicyViolation, match="between 40 and 59"):
        next_course_status("pending", "waitlist", ScoreBand.ELIGIBLE)
    with pytest.raises(PolicyViolation):
        next_course_status("pending", "waitlist", ScoreBand.NOT_ELIGIBLE)


def test_waiting_transitions() -> None:
    assert next_course_status("waiting", CourseAction.PROMOTE) == CourseStatus.ACCEPTED
    assert next_course_status("waiting", CourseAction.REJECT) == CourseStatus.REJECTED
    with pytest.raises(PolicyViolation):
        next_course_status("waiting", CourseAction.ACCEPT, ScoreBand.ELIGIBLE)


def test_accepted_transitions() -> None:
    assert next_course_status("accepted", CourseAction.DECLINE_OFFER) == CourseStatus.REJECTED
    assert next_course_status("accepted", CourseAction.RESOLVE_DECLINE) == CourseStatus.DECLINED_BY_STUDENT
    with pytest.raises(PolicyViolation, match="Cannot reject an application that is accepted"):
        next_course_status("accepted", CourseAction.REJECT)


@pytest.mark.parametrize("status", ["rejected", "declined_by_student"])
@pytest.mark.parametrize("action", list(CourseAction))
def test_terminal_statuses_have_no_exits(status, action) -> None:
    with pytest.raises(PolicyViolation):
        next_course_status(status, action, ScoreBand.ELIGIBLE)


def test_unknown_action_is_a_policy_violation() -> None:
    with pytest.raises(PolicyViolation, match="Unknown application action"):
        next_course_status("pending", "approve")


def test_job_transitions() -> None:
    assert next_job_status("pending", "shortlisted") == JobStatus.SHORTLISTED
    assert next_job_status("shortlisted", "interview") == JobStatus.INTERVIEW
    assert next_job_status("interview", "accepted") == JobStatus.ACCEPTED
    assert next_job_status("pending", "rejected") == JobStatus.REJECTED


def test_job_transitions_reject_illegal_moves() -> None:
    with pytest.raises(PolicyViolation):
        next_job_status("accepted", "rejected")
    with pytest.raises(PolicyViolation):
        next_job_status("interview", "shortlisted")
    with pytest.raises(PolicyViolation, match="Unknown job application status"):
        next_job_status("pending", "hired")
