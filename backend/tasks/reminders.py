"""
Reminder Tasks
Celery beat wrappers around the daily reminder jobs served by ``/api/cron``.
"""
import asyncio
import logging

from backend.celery_app import celery_app
from backend.database import close_db, get_async_session
from backend.services.reminders import run_reminder_job

logger = logging.getLogger(__name__)


async def _run_async(job: str) -> dict:
    try:
        async with get_async_session() as session:
            result = await run_reminder_job(session, job)
    finally:
        # Pooled connections are bound to this event loop
        await close_db()
    return {
        "job": job,
        "sent": result.sent,
        "failed": result.failed,
        "skipped": result.skipped,
        "message": result.summary(),
    }


def run_job(job: str) -> dict:
    """Run one reminder job to completion in a fresh event loop."""
    stats = asyncio.run(_run_async(job))
    logger.info(f"Reminder job {job}: {stats['message']} (failed={stats['failed']}, skipped={stats['skipped']})")
    return stats


@celery_app.task(name="backend.tasks.reminders.send_meeting_reminders")
def send_meeting_reminders() -> dict:
    return run_job("send-meeting-reminders")


@celery_app.task(name="backend.tasks.reminders.send_ppt_reminders")
def send_ppt_reminders() -> dict:
    return run_job("send-ppt-reminders")


@celery_app.task(name="backend.tasks.reminders.send_emr_interest_reminders")
def send_emr_interest_reminders() -> dict:
    return run_job("send-emr-interest-reminders")


@celery_app.task(name="backend.tasks.reminders.send_evaluation_reminders")
def send_evaluation_reminders() -> dict:
    return run_job("send-evaluation-reminders")


@celery_app.task(name="backend.tasks.reminders.send_post_evaluation_reminders")
def send_post_evaluation_reminders() -> dict:
    return run_job("send-post-evaluation-reminders")
