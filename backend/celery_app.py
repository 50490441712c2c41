"""
RDC Portal Celery Application Configuration

Runs the daily reminder jobs (the same jobs exposed under ``/api/cron``)
and periodic housekeeping on a beat schedule.
"""

import logging
import time
from typing import Any

from celery import Celery, Task
from celery.schedules import crontab
from celery.signals import task_failure, task_postrun, task_prerun
from kombu import Exchange, Queue

from backend.core.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# Queue Definitions
# =============================================================================

default_exchange = Exchange("default", type="direct")

TASK_QUEUES = (
    # Reminder emails: time sensitive, run early in the working day
    Queue("reminders", exchange=default_exchange, routing_key="reminders"),
    # Housekeeping
    Queue("normal", exchange=default_exchange, routing_key="normal"),
)

TASK_ROUTES = {
    "backend.tasks.reminders.*": {"queue": "reminders"},
    "backend.tasks.maintenance.*": {"queue": "normal"},
}


def _daily(hour: int, minute: int = 0) -> crontab:
    return crontab(hour=hour, minute=minute)


BEAT_SCHEDULE = {
    "meeting-reminders": {
        "task": "backend.tasks.reminders.send_meeting_reminders",
        "schedule": _daily(8, 0),
    },
    "ppt-reminders": {
        "task": "backend.tasks.reminders.send_ppt_reminders",
        "schedule": _daily(8, 15),
    },
    "emr-interest-reminders": {
        "task": "backend.tasks.reminders.send_emr_interest_reminders",
        "schedule": _daily(8, 30),
    },
    "evaluation-reminders": {
        "task": "backend.tasks.reminders.send_evaluation_reminders",
        "schedule": _daily(9, 0),
    },
    "post-evaluation-reminders": {
        "task": "backend.tasks.reminders.send_post_evaluation_reminders",
        "schedule": _daily(9, 30),
    },
    "purge-old-records": {
        "task": "backend.tasks.maintenance.purge_old_records",
        "schedule": _daily(2, 0),
    },
}


# =============================================================================
# Celery Application
# =============================================================================


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Returns:
        Configured Celery application instance.
    """
    app = Celery(
        "rdc_portal",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
        include=[
            "backend.tasks.reminders",
            "backend.tasks.maintenance",
        ],
    )

    app.conf.update(
        # =============
        # Serialization
        # =============
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",

        # =======
        # Queues
        # =======
        task_queues=TASK_QUEUES,
        task_routes=TASK_ROUTES,
        task_default_queue="normal",
        task_default_exchange="default",
        task_default_routing_key="normal",

        # ===========
        # Time Limits
        # ===========
        task_soft_time_limit=300,
        task_time_limit=600,

        # ==========
        # Concurrency
        # ==========
        worker_concurrency=2,
        worker_prefetch_multiplier=1,

        # ===========
        # Result Backend
        # ===========
        result_expires=86400,

        # ==========
        # Task Track
        # ==========
        task_track_started=True,
        # Reminder tasks are not idempotent; a lost worker must not replay them
        task_acks_late=False,

        # ========
        # Timezone
        # ========
        # Beat fires in the portal's local zone so "tomorrow" matches the cron endpoints
        timezone=settings.timezone,
        enable_utc=True,

        broker_connection_retry_on_startup=True,
        beat_schedule=BEAT_SCHEDULE,
    )

    return app


celery_app = create_celery_app()


# =============================================================================
# Monitoring Hooks
# =============================================================================

_task_start_times: dict[str, float] = {}


@task_prerun.connect
def task_prerun_handler(
    sender: Task | None = None,
    task_id: str | None = None,
    **extra: Any,
) -> None:
    """Record task start time for latency logging."""
    if task_id:
        _task_start_times[task_id] = time.time()
        logger.debug(f"Task {sender.name if sender else 'unknown'}[{task_id}] started")


@task_postrun.connect
def task_postrun_handler(
    sender: Task | None = None,
    task_id: str | None = None,
    state: str | None = None,
    **extra: Any,
) -> None:
    if task_id and task_id in _task_start_times:
        latency = time.time() - _task_start_times.pop(task_id)
        task_name = sender.name if sender else "unknown"
        logger.info(f"Task {task_name}[{task_id}] completed in {latency:.3f}s with state={state}")


@task_failure.connect
def task_failure_handler(
    sender: Task | None = None,
    task_id: str | None = None,
    exception: Exception | None = None,
    **kwargs: Any,
) -> None:
    logger.error(f"Task {sender.name if sender else 'unknown'}[{task_id}] failed: {exception}")
    if task_id:
        _task_start_times.pop(task_id, None)


__all__ = ["BEAT_SCHEDULE", "celery_app", "create_celery_app"]
