"""Entry point for request handlers.

Each public method is one atomic unit: it opens a transaction, runs the
operation, commits, and only then hands queued notifications to the
notifier. ``StoreUnavailable`` is retried with backoff; every other
``AllocationError`` reaches the caller unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from sqlalchemy.orm import Session, sessionmaker

import final_admission
import notifications
import queries
import quota
import review
import waitlist
from db import db_session, get_session_factory, store_retry
from errors import AllocationError, NotFound
from models import CourseApplication, Job, JobApplication, Notification

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AllocationEngine:
    def __init__(self, session_factory: sessionmaker | None = None, notifier: notifications.Notifier | None = None) -> None:
        self.session_factory = session_factory or get_session_factory()
        self.notifier = notifier or notifications.LoggingNotifier()

    def _run(self, operation: Callable[..., T], *args: Any) -> T:
        @store_retry
        def attempt() -> tuple[T, list[Notification]]:
            with db_session(self.session_factory) as db:
                result = operation(db, *args)
                outbox = notifications.pending_outbox(db)
            return result, outbox

        try:
            result, outbox = attempt()
        except AllocationError as exc:
            logger.info(f"{operation.__name__} refused: {exc.kind}: {exc.message}")
            raise

        if outbox:
            notifications.deliver_notifications(self.session_factory, outbox, self.notifier)
        return result

    # Submissions

    def submit_course_application(
        self, student_id: str, institution_id: str, course_id: str, payload: dict[str, Any] | None = None
    ) -> quota.SubmissionResult:
        return self._run(quota.submit_course_application, student_id, institution_id, course_id, payload)

    def submit_job_application(self, student_id: str, job_id: str, payload: dict[str, Any] | None = None) -> quota.SubmissionResult:
        return self._run(quota.submit_job_application, student_id, job_id, payload)

    # Reviewer and candidate transitions

    def review_course_application(self, institution_id: str, application_id: str, action: str) -> review.TransitionResult:
        return self._run(review.review_course_application, institution_id, application_id, action)

    def preview_review_score(self, institution_id: str, application_id: str) -> dict[str, Any]:
        return self._run(review.preview_review_score, institution_id, application_id)

    def review_job_application(self, company_id: str, application_id: str, status: str) -> review.TransitionResult:
        return self._run(review.review_job_application, company_id, application_id, status)

    def decline_offer(self, student_id: str, application_id: str) -> final_admission.DeclineResult:
        return self._run(final_admission.decline_offer, student_id, application_id)

    def promote_from_waitlist(self, institution_id: str, course_id: str) -> str | None:
        def promote(db: Session, institution_id: str, course_id: str) -> str | None:
            promoted = waitlist.promote_from_waitlist(db, institution_id, course_id)
            return promoted.id if promoted is not None else None

        return self._run(promote, institution_id, course_id)

    def select_final_admission(self, student_id: str, application_id: str) -> final_admission.FinalAdmissionResult:
        return self._run(final_admission.select_final_admission, student_id, application_id)

    # Reads

    def get_course_application(self, application_id: str) -> CourseApplication:
        def load(db: Session, application_id: str) -> CourseApplication:
            application = db.get(CourseApplication, application_id)
            if application is None:
                raise NotFound("Application not found")
            return application

        return self._run(load, application_id)

    def get_job_application(self, application_id: str) -> JobApplication:
        def load(db: Session, application_id: str) -> JobApplication:
            application = db.get(JobApplication, application_id)
            if application is None:
                raise NotFound("Job application not found")
            return application

        return self._run(load, application_id)

    def student_course_applications(self, student_id: str) -> list[CourseApplication]:
        return self._run(queries.student_course_applications, student_id)

    def student_job_applications(self, student_id: str) -> list[JobApplication]:
        return self._run(queries.student_job_applications, student_id)

    def institution_applications(self, institution_id: str, status: str | None = None) -> list[CourseApplication]:
        return self._run(queries.institution_applications, institution_id, status)

    def job_applications(self, job_id: str) -> list[JobApplication]:
        return self._run(queries.job_applications, job_id)

    def company_job_applications(self, company_id: str) -> list[JobApplication]:
        return self._run(queries.company_job_applications, company_id)

    def qualified_jobs(self, student_id: str) -> list[Job]:
        return self._run(queries.qualified_jobs, student_id)

    # Notification inbox

    def notifications(self, user_id: str) -> list[Notification]:
        return self._run(notifications.list_notifications, user_id)

    def mark_notification_read(self, notification_id: str, user_id: str) -> Notification:
        return self._run(notifications.mark_notification_read, notification_id, user_id)

    def delete_notification(self, notification_id: str, user_id: str) -> None:
        self._run(notifications.delete_notification, notification_id, user_id)

    def redeliver_notifications(self, limit: int = 100) -> int:
        pending = self._run(notifications.undelivered_notifications, limit)
        return notifications.deliver_notifications(self.session_factory, pending, self.notifier)
