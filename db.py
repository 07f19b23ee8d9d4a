from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Callable, Iterator, TypeVar
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from config import get_settings
from errors import StoreUnavailable
from models import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (OperationalError, InterfaceError, StaleDataError)


def _normalize_database_url(database_url: str) -> str:
    value = database_url.strip().strip('"').strip("'")
    if value.startswith("postgres://"):
        value = value.replace("postgres://", "postgresql://", 1)
    if value.startswith("postgresql://"):
        value = value.replace("postgresql://", "postgresql+psycopg2://", 1)
    if not value.startswith("postgresql"):
        return value

    # Cloud providers usually include sslmode; default to require for non-local hosts.
    parsed = urlparse(value)
    hostname = (parsed.hostname or "").lower()
    is_local = hostname in {"localhost", "127.0.0.1", ""}
    query = dict(parse_qsl(parsed.query, keep_blank_values=True))
    if not is_local and "sslmode" not in query:
        query["sslmode"] = "require"
        value = urlunparse(parsed._replace(query=urlencode(query)))
    return value


def build_engine(database_url: str | None = None, **kwargs: Any) -> Engine:
    settings = get_settings()
    url = _normalize_database_url(database_url or settings.database_url)
    options: dict[str, Any] = {"pool_pre_ping": True, "echo": settings.db_echo}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False, "timeout": 30}
    elif settings.isolation_level:
        options["isolation_level"] = settings.isolation_level
    options.update(kwargs)
    return create_engine(url, **options)


def build_session_factory(engine: Engine) -> sessionmaker:
    # Loaded attributes stay readable after commit so callers can inspect results
    # outside the session scope.
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@lru_cache()
def get_engine() -> Engine:
    return build_engine()


@lru_cache()
def get_session_factory() -> sessionmaker:
    return build_session_factory(get_engine())


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, TRANSIENT_ERRORS):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


@contextmanager
def db_session(factory: sessionmaker | None = None) -> Iterator[Session]:
    """One transaction: commit on success, roll back on any error.

    Transient driver failures and lost optimistic-lock races leave as
    ``StoreUnavailable`` so callers can tell them apart from business errors.
    """
    session: Session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception as exc:
        session.rollback()
        if is_transient(exc):
            raise StoreUnavailable(f"Application store unavailable: {exc.__class__.__name__}") from exc
        raise
    finally:
        session.close()


def store_retry(func: Callable[..., T]) -> Callable[..., T]:
    settings = get_settings()
    return retry(
        stop=stop_after_attempt(settings.store_retry_attempts),
        wait=wait_exponential(multiplier=settings.store_retry_wait_min, min=settings.store_retry_wait_min, max=settings.store_retry_wait_max),
        retry=retry_if_exception_type(StoreUnavailable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )(func)


def init_schema(engine: Engine | None = None) -> None:
    Base.metadata.create_all(bind=engine or get_engine())
