from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select

from config import get_settings
from conftest import RecordingNotifier, add_course, add_profile, strong_profile
from db import build_engine, build_session_factory, db_session, init_schema
from engine import AllocationEngine
from errors import AllocationError, AlreadyAdmittedAtInstitution, DuplicateApplication, QuotaExceeded
from models import ApplicationQuota, CourseApplication

WORKERS = 6


@pytest.fixture()
def file_factory(tmp_path, monkeypatch):
    monkeypatch.setenv("STORE_RETRY_ATTEMPTS", "10")
    get_settings.cache_clear()
    engine = build_engine(f"sqlite:///{tmp_path / 'allocation.db'}")
    init_schema(engine)
    yield build_session_factory(engine)
    engine.dispose()


def run_concurrently(calls):
    def outcome(call):
        try:
            return call()
        except AllocationError as exc:
            return exc

    with ThreadPoolExecutor(max_workers=len(calls)) as pool:
        return list(pool.map(outcome, calls))


def test_concurrent_submissions_respect_institution_quota(file_factory) -> None:
    allocation = AllocationEngine(file_factory, RecordingNotifier())
    add_profile(file_factory, strong_profile())
    add_course(file_factory, "inst-a", "existing")
    for n in range(WORKERS):
        add_course(file_factory, "inst-a", f"course-{n}")
    allocation.submit_course_application("stu-strong", "inst-a", "existing")

    outcomes = run_concurrently(
        [
            lambda n=n: allocation.submit_course_application("stu-strong", "inst-a", f"course-{n}")
            for n in range(WORKERS)
        ]
    )

    failures = [o for o in outcomes if isinstance(o, AllocationError)]
    assert len(outcomes) - len(failures) == 1
    assert all(isinstance(o, QuotaExceeded) for o in failures)
    with db_session(file_factory) as db:
        assert db.get(ApplicationQuota, ("stu-strong", "inst-a")).application_count == 2
        assert db.scalar(select(func.count()).select_from(CourseApplication)) == 2


def test_concurrent_duplicate_submissions_create_one_application(file_factory) -> None:
    allocation = AllocationEngine(file_factory, RecordingNotifier())
    add_profile(file_factory, strong_profile())
    add_course(file_factory, "inst-a", "cs")

    outcomes = run_concurrently(
        [lambda: allocation.submit_course_application("stu-strong", "inst-a", "cs") for _ in range(WORKERS)]
    )

    failures = [o for o in outcomes if isinstance(o, AllocationError)]
    assert len(outcomes) - len(failures) == 1
    assert all(isinstance(o, DuplicateApplication) for o in failures)
    with db_session(file_factory) as db:
        assert db.get(ApplicationQuota, ("stu-strong", "inst-a")).application_count == 1


def test_concurrent_duplicates_at_last_slot_report_duplicate(file_factory) -> None:
    allocation = AllocationEngine(file_factory, RecordingNotifier())
    add_profile(file_factory, strong_profile())
    add_course(file_factory, "inst-a", "existing")
    add_course(file_factory, "inst-a", "cs")
    allocation.submit_course_application("stu-strong", "inst-a", "existing")

    outcomes = run_concurrently(
        [lambda: allocation.submit_course_application("stu-strong", "inst-a", "cs") for _ in range(WORKERS)]
    )

    failures = [o for o in outcomes if isinstance(o, AllocationError)]
    assert len(outcomes) - len(failures) == 1
    assert all(isinstance(o, DuplicateApplication) for o in failures)
    with db_session(file_factory) as db:
        assert db.get(ApplicationQuota, ("stu-strong", "inst-a")).application_count == 2
        assert db.scalar(select(func.count()).select_from(CourseApplication)) == 2


def test_concurrent_acceptances_admit_once_per_institution(file_factory) -> None:
    allocation = AllocationEngine(file_factory, RecordingNotifier())
    add_profile(file_factory, strong_profile())
    add_course(file_factory, "inst-a", "cs")
    add_course(file_factory, "inst-a", "ee")
    first = allocation.submit_course_application("stu-strong", "inst-a", "cs").application_id
    second = allocation.submit_course_application("stu-strong", "inst-a", "ee").application_id

    outcomes = run_concurrently(
        [
            lambda: allocation.review_course_application("inst-a", first, "accept"),
            lambda: allocation.review_course_application("inst-a", second, "accept"),
        ]
    )

    failures = [o for o in outcomes if isinstance(o, AllocationError)]
    assert len(failures) == 1
    assert isinstance(failures[0], AlreadyAdmittedAtInstitution)
    statuses = sorted(allocation.get_course_application(a).status for a in (first, second))
    assert statuses == ["accepted", "pending"]
