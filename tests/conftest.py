from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy.pool import StaticPool

from config import get_settings
from db import build_engine, build_session_factory, db_session, init_schema
from engine import AllocationEngine
from models import CandidateProfile, Course, Job

SETTINGS_ENV = (
    "DATABASE_URL",
    "DB_ISOLATION_LEVEL",
    "DB_ECHO",
    "STORE_RETRY_ATTEMPTS",
    "COURSE_QUOTA_PER_INSTITUTION",
    "ACCEPT_MIN_REVIEW_SCORE",
    "WAITLIST_MIN_REVIEW_SCORE",
    "NORMALIZE_LETTER_GRADES",
    "LOG_LEVEL",
)


class RecordingNotifier:
    def __init__(self) -> None:
        self.payloads: list[dict[str, Any]] = []

    def deliver(self, payload: dict[str, Any]) -> None:
        self.payloads.append(payload)


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STORE_RETRY_WAIT_MIN", "0.01")
    monkeypatch.setenv("STORE_RETRY_WAIT_MAX", "0.05")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_schema(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def allocation(session_factory, notifier) -> AllocationEngine:
    return AllocationEngine(session_factory, notifier)


def subjects(*pairs: tuple[str, str]) -> list[dict[str, str]]:
    return [{"subject": name, "grade": grade} for name, grade in pairs]


def strong_profile(student_id: str = "stu-strong") -> dict[str, Any]:
    """Review score 77: 30 + 13 + 25 + 6 + 3."""
    return {
        "student_id": student_id,
        "display_name": "Strong Candidate",
        "academic_level": "high school",
        "high_school_gpa": Decimal("3.8"),
        "academic_gpa": Decimal("3.5"),
        "subjects": subjects(
            ("English", "82"), ("Mathematics", "88"), ("Physics", "79"), ("Chemistry", "75"), ("History", "76")
        ),
        "certificates": ["Python Essentials", "First Aid"],
        "work_experience": ["Robotics club"],
        "fields_of_interest": ["Information Technology"],
    }


def borderline_profile(student_id: str = "stu-borderline") -> dict[str, Any]:
    """Review score 55: 18 + 11 + 20 + 3 + 3."""
    return {
        "student_id": student_id,
        "display_name": "Borderline Candidate",
        "academic_level": "high school",
        "high_school_gpa": Decimal("2.6"),
        "academic_gpa": Decimal("3.0"),
        "subjects": subjects(
            ("English", "70"), ("Mathematics", "70"), ("Biology", "70"), ("Geography", "70"), ("Economics", "70")
        ),
        "certificates": ["Customer Service"],
        "work_experience": ["Retail assistant"],
        "fields_of_interest": ["Retail & Sales"],
    }


def weak_profile(student_id: str = "stu-weak") -> dict[str, Any]:
    """Review score 24: 10 + 8 + 0 + 6 + 0."""
    return {
        "student_id": student_id,
        "display_name": "Weak Candidate",
        "academic_level": "high school",
        "high_school_gpa": Decimal("2.4"),
        "academic_gpa": None,
        "subjects": subjects(("English", "B"), ("Mathematics", "C"), ("Art", "C"), ("Sesotho", "D")),
        "certificates": ["Sewing", "Pattern Cutting"],
        "work_experience": [],
        "fields_of_interest": ["Arts & Creative Design"],
    }


def add_profile(factory, profile: dict[str, Any]) -> None:
    with db_session(factory) as db:
        db.add(CandidateProfile(**profile))


def update_profile(factory, student_id: str, **changes: Any) -> None:
    with db_session(factory) as db:
        profile = db.get(CandidateProfile, student_id)
        for key, value in changes.items():
            setattr(profile, key, value)


def add_course(
    factory,
    institution_id: str,
    course_id: str,
    name: str = "BSc Computer Science",
    level: str | None = "undergraduate",
    requirements: str = "",
) -> None:
    with db_session(factory) as db:
        db.add(
            Course(
                institution_id=institution_id,
                course_id=course_id,
                name=name,
                institution_name=f"{institution_id} University",
                level=level,
                requirements=requirements,
                field_tags=[],
            )
        )


def add_job(factory, job_id: str, company_id: str = "co-lumen", **fields: Any) -> None:
    row = {
        "job_id": job_id,
        "company_id": company_id,
        "company_name": "Lumen Networks",
        "title": "IT Helpdesk Intern",
        "description": "Support staff with information technology tickets.",
        "requirements": "",
        "field_of_work": "Information Technology",
        "field_tags": [],
        **fields,
    }
    with db_session(factory) as db:
        db.add(Job(**row))
