"""
Notifications emitted by a user import:
- one welcome task per committed user (queued, carries the temporary password);
- one completion summary to the user who started the import (sent inline).
"""

import logging
from typing import Callable, Iterable, Tuple

from app.core.exceptions import NotificationError
from app.core.notifier import Notifier

from .schemas import ImportJob, ImportReport, WelcomeNotification
from .writer import CommittedUser

logger = logging.getLogger(__name__)

WELCOME_SUBJECT = "Welcome to your school account"
COMPLETION_SUBJECT = "User import completed"


def build_welcome_message(notification: WelcomeNotification) -> Tuple[str, str]:
    body = (
        f"Hello {notification.first_name} {notification.last_name},\n\n"
        "An account has been created for you.\n\n"
        f"Login: {notification.email}\n"
        f"Temporary password: {notification.temporary_password}\n\n"
        "Please change this password after your first login.\n"
    )
    return WELCOME_SUBJECT, body


def build_completion_message(job: ImportJob, report: ImportReport) -> Tuple[str, str]:
    greeting = f"Hello {job.initiator_name}," if job.initiator_name else "Hello,"
    lines = [
        greeting,
        "",
        f"The import of {job.filename} is finished.",
        f"Users created: {report.success_count}",
        f"Rows rejected: {report.error_count}",
    ]
    if report.errors:
        lines += ["", "Rejected rows:"]
        for item in report.errors:
            lines.append(f"- line {item.line}: {item.error}")
    return COMPLETION_SUBJECT, "\n".join(lines) + "\n"


def schedule_welcome_notifications(
    committed: Iterable[CommittedUser],
    submit: Callable[[WelcomeNotification], None],
) -> int:
    """Submit one welcome task per committed user. Call only after the batch committed."""
    count = 0
    for user in committed:
        submit(
            WelcomeNotification(
                user_id=user.user_id,
                first_name=user.record.first_name,
                last_name=user.record.last_name,
                email=user.record.email,
                temporary_password=user.record.temporary_password,
            )
        )
        count += 1
    logger.info("Welcome notifications scheduled: count=%s", count)
    return count


def send_welcome(notifier: Notifier, notification: WelcomeNotification) -> None:
    subject, body = build_welcome_message(notification)
    notifier.send(notification.email, subject, body)


def send_completion_summary(notifier: Notifier, job: ImportJob, report: ImportReport) -> bool:
    """
    Send the completion report to the initiator.
    Returns False when the send failed: the users are already committed, so this does not fail the job.
    """
    subject, body = build_completion_message(job, report)
    try:
        notifier.send(job.initiator_email, subject, body)
    except NotificationError as e:
        logger.error("Import summary not delivered: to=%s error=%s", job.initiator_email, e)
        return False
    return True
