import asyncio
import logging
from typing import Any, Dict

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.api.v1.user_imports.notifications import send_welcome
from app.api.v1.user_imports.schemas import ImportJob, ImportReport, WelcomeNotification
from app.api.v1.user_imports.service import run_import_job
from app.core.exceptions import NotificationError
from app.core.notifier import SendGridNotifier
from app.db.session import create_worker_engine
from app.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


def _submit_welcome(notification: WelcomeNotification) -> None:
    send_welcome_email.delay(notification.model_dump(mode="json"))


async def _run_import(job: ImportJob) -> ImportReport:
    worker_engine = create_worker_engine()
    session_factory = async_sessionmaker(bind=worker_engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_factory() as db:
            return await run_import_job(
                db,
                job,
                submit_welcome=_submit_welcome,
                notifier=SendGridNotifier.from_settings(),
            )
    finally:
        await worker_engine.dispose()


@celery_app.task(
    bind=True,
    name="user_imports.run",
    acks_late=True,
    reject_on_worker_lost=True,
    autoretry_for=(OperationalError, OSError),
    retry_backoff=True,
    max_retries=3,
)
def run_user_import(self, job: Dict[str, Any]) -> Dict[str, Any]:
    """Run a queued user import. Retries only when the database is unreachable."""
    import_job = ImportJob.model_validate(job)
    logger.info(
        "Import task received: task_id=%s attempt=%s tenant=%s",
        getattr(self.request, "id", None),
        getattr(self.request, "retries", 0) + 1,
        import_job.tenant_id,
    )
    report = asyncio.run(_run_import(import_job))
    return report.model_dump(mode="json")


@celery_app.task(
    name="user_imports.send_welcome_email",
    autoretry_for=(NotificationError,),
    retry_backoff=True,
    max_retries=5,
)
def send_welcome_email(payload: Dict[str, Any]) -> None:
    """Send the welcome email (with temporary password) to one imported user."""
    notification = WelcomeNotification.model_validate(payload)
    send_welcome(SendGridNotifier.from_settings(), notification)
