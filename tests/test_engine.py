import pytest
from sqlalchemy.orm.exc import StaleDataError

from config import get_settings, load_settings
from db import _normalize_database_url, db_session
from errors import AllocationError, QuotaExceeded, StoreUnavailable


def test_settings_defaults() -> None:
    settings = load_settings()

    assert settings.course_quota_per_institution == 2
    assert settings.accept_min_review_score == 60
    assert settings.waitlist_min_review_score == 40
    assert settings.normalize_letter_grades is False
    assert settings.store_retry_attempts == 3


def test_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("NORMALIZE_LETTER_GRADES", "yes")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.normalize_letter_grades is True
    assert settings.log_level == "DEBUG"


def test_malformed_settings_name_the_variable(monkeypatch) -> None:
    monkeypatch.setenv("COURSE_QUOTA_PER_INSTITUTION", "two")
    with pytest.raises(ValueError, match="COURSE_QUOTA_PER_INSTITUTION must be an integer, got 'two'"):
        load_settings()

    monkeypatch.delenv("COURSE_QUOTA_PER_INSTITUTION")
    monkeypatch.setenv("STORE_RETRY_WAIT_MAX", "soon")
    with pytest.raises(ValueError, match="STORE_RETRY_WAIT_MAX must be a number"):
        load_settings()

    monkeypatch.setenv("STORE_RETRY_WAIT_MAX", "2")
    monkeypatch.setenv("DB_ECHO", "maybe")
    with pytest.raises(ValueError, match="DB_ECHO must be one of"):
        load_settings()


def test_normalize_database_url() -> None:
    assert _normalize_database_url("postgres://u:p@db.example.com/app") == (
        "postgresql+psycopg2://u:p@db.example.com/app?sslmode=require"
    )
    assert _normalize_database_url("postgresql://u:p@localhost/app") == "postgresql+psycopg2://u:p@localhost/app"
    assert _normalize_database_url(" 'sqlite:///./allocation.db' ") == "sqlite:///./allocation.db"


def test_errors_expose_kind_and_retryability() -> None:
    assert QuotaExceeded("full").to_dict() == {"kind": "QuotaExceeded", "message": "full", "retryable": False}
    assert StoreUnavailable("down").retryable is True
    assert issubclass(StoreUnavailable, AllocationError)


def test_db_session_maps_transient_errors(session_factory) -> None:
    with pytest.raises(StoreUnavailable):
        with db_session(session_factory):
            raise StaleDataError("row changed underneath")


def test_transient_failures_are_retried(allocation) -> None:
    calls = []

    def flaky(db, value):
        calls.append(value)
        if len(calls) < 3:
            raise StaleDataError("row changed underneath")
        return value * 2

    assert allocation._run(flaky, 21) == 42
    assert len(calls) == 3


def test_retries_give_up_after_configured_attempts(allocation, monkeypatch) -> None:
    monkeypatch.setenv("STORE_RETRY_ATTEMPTS", "2")
    get_settings.cache_clear()
    calls = []

    def always_stale(db):
        calls.append(1)
        raise StaleDataError("row changed underneath")

    with pytest.raises(StoreUnavailable):
        allocation._run(always_stale)
    assert len(calls) == 2


def test_business_errors_are_not_retried(allocation) -> None:
    calls = []

    def refuse(db):
        calls.append(1)
        raise QuotaExceeded("full")

    with pytest.raises(QuotaExceeded):
        allocation._run(refuse)
    assert len(calls) == 1
