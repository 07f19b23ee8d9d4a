import pytest
from sqlalchemy import func, select

import final_admission
from conftest import add_course, add_profile, borderline_profile, strong_profile
from db import db_session
from errors import PolicyViolation, Unauthorized
from final_admission import DECLINE_REASON
from models import Notification


@pytest.fixture()
def two_offers(allocation, session_factory):
    """stu-s holds offers at inst-a and inst-b; stu-w waits at inst-a."""
    add_course(session_factory, "inst-a", "cs", name="BSc Computer Science")
    add_course(session_factory, "inst-b", "nursing", name="Diploma in Nursing Science", level="diploma")
    add_profile(session_factory, strong_profile("stu-s"))
    add_profile(session_factory, borderline_profile("stu-w"))

    offer_a = allocation.submit_course_application("stu-s", "inst-a", "cs").application_id
    offer_b = allocation.submit_course_application("stu-s", "inst-b", "nursing").application_id
    waiting = allocation.submit_course_application("stu-w", "inst-a", "cs").application_id
    allocation.review_course_application("inst-a", offer_a, "accept")
    allocation.review_course_application("inst-b", offer_b, "accept")
    allocation.review_course_application("inst-a", waiting, "waitlist")
    return {"a": offer_a, "b": offer_b, "waiting": waiting}


def test_selecting_one_offer_declines_others_and_promotes(allocation, notifier, two_offers) -> None:
    result = allocation.select_final_admission("stu-s", two_offers["b"])

    assert result.declined_application_ids == [two_offers["a"]]
    assert result.promoted_application_ids == [two_offers["waiting"]]
    assert result.promoted_waitlists == 1
    assert result.message.startswith("Final admission confirmed!")

    chosen = allocation.get_course_application(two_offers["b"])
    assert chosen.status == "accepted"
    assert chosen.final_admission_confirmed is True
    assert chosen.confirmed_at is not None

    declined = allocation.get_course_application(two_offers["a"])
    assert declined.status == "declined_by_student"
    assert declined.decline_reason == DECLINE_REASON

    promoted = allocation.get_course_application(two_offers["waiting"])
    assert promoted.status == "accepted"
    assert promoted.promoted_from_waiting is True

    by_type = {payload["type"]: payload for payload in notifier.payloads}
    assert set(by_type) == {"student_declined", "admission_promoted"}
    assert by_type["student_declined"]["userId"] == "inst-a"
    assert by_type["student_declined"]["title"] == "Student Declined Admission"
    assert by_type["student_declined"]["link"] == "/manage-applications"
    assert by_type["admission_promoted"]["userId"] == "stu-w"


def test_single_offer_is_simply_confirmed(allocation, session_factory, notifier) -> None:
    add_course(session_factory, "inst-a", "cs")
    add_profile(session_factory, strong_profile("stu-s"))
    offer = allocation.submit_course_application("stu-s", "inst-a", "cs").application_id
    allocation.review_course_application("inst-a", offer, "accept")

    result = allocation.select_final_admission("stu-s", offer)

    assert result.message == "Admission confirmed!"
    assert result.declined_application_ids == []
    assert allocation.get_course_application(offer).final_admission_confirmed is True
    assert notifier.payloads == []


def test_only_accepted_offers_can_be_selected(allocation, session_factory) -> None:
    add_course(session_factory, "inst-a", "cs")
    add_profile(session_factory, strong_profile("stu-s"))
    pending = allocation.submit_course_application("stu-s", "inst-a", "cs").application_id

    with pytest.raises(PolicyViolation, match="only select from accepted admissions"):
        allocation.select_final_admission("stu-s", pending)


def test_selecting_someone_elses_offer_is_unauthorized(allocation, two_offers) -> None:
    with pytest.raises(Unauthorized, match="does not belong to you"):
        allocation.select_final_admission("stu-w", two_offers["b"])


def test_failure_during_resolution_rolls_everything_back(allocation, session_factory, notifier, two_offers, monkeypatch) -> None:
    notifier.payloads.clear()

    def broken_promotion(db, institution_id, course_id):
        raise RuntimeError("promotion crashed")

    monkeypatch.setattr(final_admission, "promote_from_waitlist", broken_promotion)

    with pytest.raises(RuntimeError):
        allocation.select_final_admission("stu-s", two_offers["b"])

    assert allocation.get_course_application(two_offers["a"]).status == "accepted"
    assert allocation.get_course_application(two_offers["b"]).final_admission_confirmed is False
    assert allocation.get_course_application(two_offers["waiting"]).status == "waiting"
    assert notifier.payloads == []
    with db_session(session_factory) as db:
        assert db.scalar(select(func.count()).select_from(Notification)) == 0


def test_selection_is_not_repeated_after_resolution(allocation, two_offers) -> None:
    allocation.select_final_admission("stu-s", two_offers["b"])

    with pytest.raises(PolicyViolation):
        allocation.select_final_admission("stu-s", two_offers["a"])
