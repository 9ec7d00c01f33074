"""Celery entry point for background user imports."""

from celery import Celery
from celery.signals import setup_logging

from app.core.config import settings
from app.core.logging import configure_logging

celery_app = Celery("school.imports", include=["app.worker.tasks"])
celery_app.conf.broker_url = settings.celery_broker_url
celery_app.conf.result_backend = settings.celery_result_backend
celery_app.conf.task_default_queue = settings.celery_queue_name
celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.enable_utc = True
celery_app.conf.timezone = "UTC"


@setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    configure_logging(settings.log_level, "app", "celery")
