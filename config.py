from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from dotenv import load_dotenv

load_dotenv()


TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def _env_value(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_bool(name: str, default: bool) -> bool:
    value = _env_value(name)
    if value is None:
        return default
    if value.lower() in TRUE_VALUES:
        return True
    if value.lower() in FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be one of {sorted(TRUE_VALUES | FALSE_VALUES)}, got {value!r}")


def _env_number(name: str, default: float, cast: type) -> Any:
    value = _env_value(name)
    if value is None:
        return default
    try:
        return cast(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be {'an integer' if cast is int else 'a number'}, got {value!r}") from exc


def _env_int(name: str, default: int) -> int:
    return _env_number(name, default, int)


def _env_float(name: str, default: float) -> float:
    return _env_number(name, default, float)


@dataclass(frozen=True)
class Settings:
    database_url: str
    isolation_level: str | None
    db_echo: bool
    store_retry_attempts: int
    store_retry_wait_min: float
    store_retry_wait_max: float
    course_quota_per_institution: int
    accept_min_review_score: int
    waitlist_min_review_score: int
    normalize_letter_grades: bool
    log_level: str


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./allocation.db"),
        isolation_level=os.getenv("DB_ISOLATION_LEVEL") or None,
        db_echo=_env_bool("DB_ECHO", False),
        store_retry_attempts=_env_int("STORE_RETRY_ATTEMPTS", 3),
        store_retry_wait_min=_env_float("STORE_RETRY_WAIT_MIN", 0.1),
        store_retry_wait_max=_env_float("STORE_RETRY_WAIT_MAX", 2.0),
        course_quota_per_institution=_env_int("COURSE_QUOTA_PER_INSTITUTION", 2),
        accept_min_review_score=_env_int("ACCEPT_MIN_REVIEW_SCORE", 60),
        waitlist_min_review_score=_env_int("WAITLIST_MIN_REVIEW_SCORE", 40),
        normalize_letter_grades=_env_bool("NORMALIZE_LETTER_GRADES", False),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache()
def get_settings() -> Settings:
    return load_settings()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
