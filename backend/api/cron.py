"""
Scheduled reminder endpoints, called daily by an external scheduler.

Every route requires the shared cron secret header.
"""
import logging
from typing import Union

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.deps import AsyncSessionDep, verify_cron_secret
from backend.schemas.reminders import CronResponse
from backend.services.reminders import run_reminder_job

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/cron",
    tags=["Cron"],
    dependencies=[Depends(verify_cron_secret)],
)

CronResult = Union[CronResponse, JSONResponse]


async def _run(db: AsyncSession, job: str) -> CronResult:
    try:
        result = await run_reminder_job(db, job)
    except Exception as e:
        logger.exception(f"Cron job {job} failed: {e}")
        await db.rollback()
        message = getattr(e, "message", None) or str(e)
        return JSONResponse(status_code=500, content={"success": False, "error": f"Cron job failed: {message}"})

    logger.info(f"Cron job {job}: sent={result.sent} failed={result.failed} skipped={result.skipped}")
    return CronResponse.from_result(result)


@router.get("/send-meeting-reminders", response_model=CronResponse, summary="IMR meetings tomorrow")
async def send_meeting_reminders(db: AsyncSessionDep) -> CronResult:
    return await _run(db, "send-meeting-reminders")


@router.get("/send-ppt-reminders", response_model=CronResponse, summary="EMR presentations due tomorrow")
async def send_ppt_reminders(db: AsyncSessionDep) -> CronResult:
    return await _run(db, "send-ppt-reminders")


@router.get("/send-emr-interest-reminders", response_model=CronResponse, summary="EMR interest deadline tomorrow")
async def send_emr_interest_reminders(db: AsyncSessionDep) -> CronResult:
    return await _run(db, "send-emr-interest-reminders")


@router.get("/send-evaluation-reminders", response_model=CronResponse, summary="IMR evaluation window closing")
async def send_evaluation_reminders(db: AsyncSessionDep) -> CronResult:
    return await _run(db, "send-evaluation-reminders")


@router.get("/send-post-evaluation-reminders", response_model=CronResponse, summary="Evaluations still pending")
async def send_post_evaluation_reminders(db: AsyncSessionDep) -> CronResult:
    return await _run(db, "send-post-evaluation-reminders")
