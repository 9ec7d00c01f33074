import logging
from enum import Enum
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.notifier import Notifier

from .notifications import schedule_welcome_notifications, send_completion_summary
from .parser import parse_rows
from .roles import load_role_snapshot
from .schemas import ImportJob, ImportReport, ImportRowError, ValidatedRecord, WelcomeNotification
from .validator import load_existing_emails, normalize_email, validate_row
from .writer import ConflictPolicy, write_batch

logger = logging.getLogger(__name__)


class ImportJobState(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"


async def run_import_job(
    db: AsyncSession,
    job: ImportJob,
    *,
    submit_welcome: Callable[[WelcomeNotification], None],
    notifier: Notifier,
    chunk_size: Optional[int] = None,
    conflict_policy: Optional[ConflictPolicy] = None,
) -> ImportReport:
    """
    Run one user import end to end and return its report.

    Invalid rows end up in the report and never fail the job; a file with only
    invalid rows still completes with success_count=0.
    ImportConflictError and database errors propagate to the task queue, and in
    that case no summary is sent.
    """
    logger.info(
        "Import job %s: tenant=%s initiator=%s file=%s",
        ImportJobState.RUNNING.value, job.tenant_id, job.initiator_id, job.filename,
    )

    roles = await load_role_snapshot(db, job.tenant_id)
    rows = list(parse_rows(job.content))
    existing_emails = await load_existing_emails(
        db, (normalize_email(row.fields.get("email")) for row in rows), chunk_size
    )

    valid: List[ValidatedRecord] = []
    errors: List[ImportRowError] = []
    for row in rows:
        outcome = validate_row(row, roles, existing_emails)
        if isinstance(outcome, ImportRowError):
            errors.append(outcome)
        else:
            valid.append(outcome)

    batch = await write_batch(
        db,
        job.tenant_id,
        valid,
        roles,
        chunk_size=chunk_size,
        conflict_policy=conflict_policy,
    )
    schedule_welcome_notifications(batch.committed, submit_welcome)

    errors.extend(batch.errors)
    errors.sort(key=lambda e: e.line)
    report = ImportReport(
        success_count=len(batch.committed),
        error_count=len(errors),
        errors=errors,
    )

    send_completion_summary(notifier, job, report)
    logger.info(
        "Import job %s: tenant=%s success=%s errors=%s",
        ImportJobState.COMPLETED.value, job.tenant_id, report.success_count, report.error_count,
    )
    return report
