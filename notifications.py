"""Notification outbox.

Notifications are added to the caller's session so they commit or roll back
with the state change that produced them. Delivery to the external
component happens afterwards and never fails the originating operation.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Iterable, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from db import db_session
from errors import AllocationError, NotFound, Unauthorized
from models import Course, CourseApplication, Notification, utcnow

logger = logging.getLogger(__name__)

OUTBOX_KEY = "notification_outbox"
ADMISSION_PROMOTED = "admission_promoted"
STUDENT_DECLINED = "student_declined"


class Notifier(Protocol):
    def deliver(self, payload: dict[str, Any]) -> None: ...


class LoggingNotifier:
    def deliver(self, payload: dict[str, Any]) -> None:
        logger.info(f"Notification for {payload['userId']}: [{payload['type']}] {payload['title']}")


def queue_notification(db: Session, user_id: str, type_: str, title: str, message: str, link: str = "") -> Notification:
    notification = Notification(
        id=uuid.uuid4(),
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        link=link,
        read=False,
        created_at=utcnow(),
    )
    db.add(notification)
    db.info.setdefault(OUTBOX_KEY, []).append(notification)
    return notification


def pending_outbox(db: Session) -> list[Notification]:
    return list(db.info.get(OUTBOX_KEY, []))


def _course_label(course: Course | None, application: CourseApplication) -> tuple[str, str]:
    if course is None:
        return application.course_id, application.institution_id
    return course.name, course.institution_name or course.institution_id


def queue_promotion_notice(db: Session, application: CourseApplication, course: Course | None) -> Notification:
    course_name, institution_name = _course_label(course, application)
    return queue_notification(
        db,
        user_id=application.student_id,
        type_=ADMISSION_PROMOTED,
        title="Promoted from Waiting List",
        message=f"You have been promoted from the waiting list and admitted to {course_name} at {institution_name}!",
        link="/applications",
    )


def queue_declined_notice(db: Session, application: CourseApplication, course: Course | None) -> Notification:
    course_name, _ = _course_label(course, application)
    return queue_notification(
        db,
        user_id=application.institution_id,
        type_=STUDENT_DECLINED,
        title="Student Declined Admission",
        message=f"A student has declined their admission offer for {course_name}",
        link="/manage-applications",
    )


def deliver_notifications(factory: sessionmaker | None, notifications: Iterable[Notification], notifier: Notifier) -> int:
    delivered: list[uuid.UUID] = []
    for notification in notifications:
        try:
            notifier.deliver(notification.as_payload())
        except Exception:
            logger.exception(f"Delivery failed for notification {notification.id}; left for redelivery")
            continue
        delivered.append(notification.id)

    if delivered:
        try:
            with db_session(factory) as db:
                db.execute(
                    update(Notification)
                    .where(Notification.id.in_(delivered))
                    .values(delivered_at=utcnow())
                    .execution_options(synchronize_session=False)
                )
        except (AllocationError, SQLAlchemyError):
            logger.exception(f"Could not record delivery of {len(delivered)} notification(s); left for redelivery")
    return len(delivered)


def undelivered_notifications(db: Session, limit: int = 100) -> list[Notification]:
    return list(
        db.scalars(
            select(Notification)
            .where(Notification.delivered_at.is_(None))
            .order_by(Notification.created_at.asc())
            .limit(limit)
        )
    )


def list_notifications(db: Session, user_id: str, limit: int = 50) -> list[Notification]:
    return list(
        db.scalars(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
    )


def _owned_notification(db: Session, notification_id: str | uuid.UUID, user_id: str) -> Notification:
    try:
        key = uuid.UUID(str(notification_id))
    except ValueError as exc:
        raise NotFound("Notification not found") from exc
    notification = db.get(Notification, key)
    if notification is None:
        raise NotFound("Notification not found")
    if notification.user_id != user_id:
        raise Unauthorized("This notification does not belong to you")
    return notification


def mark_notification_read(db: Session, notification_id: str | uuid.UUID, user_id: str) -> Notification:
    notification = _owned_notification(db, notification_id, user_id)
    if not notification.read:
        notification.read = True
        notification.read_at = utcnow()
    return notification


def delete_notification(db: Session, notification_id: str | uuid.UUID, user_id: str) -> None:
    db.delete(_owned_notification(db, notification_id, user_id))
