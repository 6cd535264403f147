# =============================================================================
# workers/celery_app.py - Celery Application
# =============================================================================
# Builds the Celery app for key-lifecycle tasks. Broker, result backend,
# queues and the beat schedule all come from workers.config.CeleryConfig,
# which reads app.config.settings.
#
# Usage:
#   # Start worker (with beat for the daily rotation)
#   celery -A workers.celery_app worker --beat --loglevel=info -Q default,key_rotation
# =============================================================================

import logging
import time
from urllib.parse import urlsplit

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun

from app.config import settings
from workers.config import CeleryConfig

logger = logging.getLogger(__name__)


def broker_host(url: str) -> str:
    """Host and port of a broker URL, never its credentials."""
    parts = urlsplit(url)
    if not parts.hostname:
        return "<unknown>"
    return f"{parts.hostname}:{parts.port}" if parts.port else parts.hostname


def create_celery_app() -> Celery:
    """Create the Celery app configured from CeleryConfig."""
    app = Celery("hunter_key_worker", include=["workers.tasks"])
    app.config_from_object(CeleryConfig)

    logger.info(f"Celery app using broker {broker_host(settings.REDIS_URL)}")
    return app


celery_app = create_celery_app()


# =============================================================================
# Task Lifecycle Logging
# =============================================================================

# Start times by task id, popped when the task finishes
_task_started_at: dict[str, float] = {}


@task_prerun.connect
def log_task_start(task_id=None, task=None, **kwargs):
    _task_started_at[task_id] = time.monotonic()
    logger.info(f"Task started: {task.name} [{task_id}]")


@task_postrun.connect
def log_task_finish(task_id=None, task=None, state=None, **kwargs):
    started_at = _task_started_at.pop(task_id, None)
    took = f" in {time.monotonic() - started_at:.1f}s" if started_at is not None else ""
    logger.info(f"Task {task.name} [{task_id}] ended with state {state}{took}")


@task_failure.connect
def log_task_failure(sender=None, task_id=None, exception=None, **kwargs):
    logger.error(f"Task {sender.name} [{task_id}] failed: {exception!r}")
