"""
Daily reminder jobs.

Each job finds the records due for a reminder relative to the local
calendar day and emails the people concerned. Jobs are triggered by the
cron endpoints and by Celery beat; they send on every run, so a re-fired
trigger sends again.
"""
from datetime import date, datetime, timedelta
from typing import Awaitable, Callable, Optional
from uuid import UUID

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import settings
from backend.core.exceptions import ValidationError
from backend.delivery.models import DeliveryState, DeliveryStatus
from backend.models import (
    EmrInterest,
    EmrInterestStatus,
    FundingCall,
    Project,
    ProjectStatus,
    User,
)
from backend.schemas.common import EmailOutcome
from backend.schemas.reminders import ReminderRunResult
from backend.services.email import EmailService, portal_url
from backend.services.settings import SystemSettingsService
from backend.utils import LocalCalendar, format_display_date
from backend.utils.local_calendar import parse_meeting_time

logger = structlog.get_logger(__name__)

POST_EVALUATION_DAYS = (5, 7)
EVALUATION_QUEUE_PATH = "/dashboard/evaluator-dashboard"
EMR_CALENDAR_PATH = "/dashboard/emr-calendar"


def _long_date(day: date) -> str:
    return f"{day:%B} {day.day}, {day.year}"


def _local_timestamp(value: datetime) -> str:
    local = LocalCalendar.to_local(value)
    return f"{_long_date(local.date())}, {local:%I:%M %p} ({local.tzname()})"


class ReminderService:
    def __init__(self, db: AsyncSession, email: Optional[EmailService] = None, now: Optional[datetime] = None):
        self.db = db
        self.email = email or EmailService(db)
        self.now = now

    def _today(self) -> date:
        return LocalCalendar.today(self.now)

    @staticmethod
    def _record(result: ReminderRunResult, status: DeliveryStatus) -> None:
        if status.status == DeliveryState.SENT:
            result.sent += 1
        elif status.status == DeliveryState.FAILED:
            result.failed += 1
        else:
            result.skipped += 1
        result.outcomes.append(EmailOutcome.from_status(status))

    async def _users(self, user_ids: list[str]) -> list[User]:
        ids = [UUID(uid) for uid in user_ids]
        if not ids:
            return []
        result = await self.db.execute(select(User).where(User.id.in_(ids)))
        return list(result.scalars().all())

    async def _on_local_day(self, column, day: date, *conditions) -> list:
        """Rows whose timestamp ``column`` falls on local ``day``."""
        start, end = LocalCalendar.day_bounds(day)
        # SQLite drops offsets, so widen the window and filter in Python
        query = select(column.class_).where(
            and_(column >= start - timedelta(days=1), column < end + timedelta(days=1), *conditions)
        )
        result = await self.db.execute(query)
        return [row for row in result.scalars().all() if LocalCalendar.local_date(getattr(row, column.key)) == day]

    # =========================================================================
    # IMR meeting tomorrow
    # =========================================================================

    async def send_meeting_reminders(self) -> ReminderRunResult:
        result = ReminderRunResult(job="meeting-reminders")
        tomorrow = self._today() + timedelta(days=1)
        projects = await self.db.execute(
            select(Project).where(
                Project.status == ProjectStatus.UNDER_REVIEW.value,
                Project.meeting_date == tomorrow,
            )
        )
        for project in projects.scalars().all():
            details = project.meeting_details or {}
            meeting_time = parse_meeting_time(details.get("time"))
            status = await self.email.send_notification(
                to=project.pi_email,
                subject=f'REMINDER: IMR Meeting Tomorrow for Project "{project.title}"',
                user_name=project.pi_name,
                paragraphs=[
                    "This is a reminder that your IMR project presentation is scheduled for tomorrow.",
                    "Please be prepared for your presentation. Good luck!",
                ],
                details={
                    "Project": project.title,
                    "Date": _long_date(tomorrow),
                    "Time": f"{meeting_time:%I:%M %p}".lstrip("0"),
                    "Venue": details.get("venue"),
                    "Mode": details.get("mode"),
                },
            )
            self._record(result, status)

        logger.info("meeting_reminders_sent", day=tomorrow.isoformat(), sent=result.sent, failed=result.failed)
        return result

    # =========================================================================
    # EMR presentation due tomorrow
    # =========================================================================

    async def send_ppt_reminders(self) -> ReminderRunResult:
        result = ReminderRunResult(job="ppt-reminders")
        tomorrow = self._today() + timedelta(days=1)
        interests = await self._on_local_day(EmrInterest.ppt_deadline, tomorrow, EmrInterest.ppt_url.is_(None))
        for interest in interests:
            call_title = interest.call_title
            if interest.call_id is not None:
                call = await self.db.get(FundingCall, interest.call_id)
                call_title = call.title if call else call_title
            status = await self.email.send_notification(
                to=interest.user_email,
                subject=f'Reminder: EMR Presentation Submission for "{call_title}"',
                user_name=interest.user_name,
                paragraphs=[
                    f'This is a reminder that your presentation for the EMR call "{call_title}" has not been '
                    "uploaded yet.",
                    f"Your submission deadline is tomorrow, {_local_timestamp(interest.ppt_deadline)}.",
                    "Please upload your presentation from the EMR Calendar page on the portal as soon as possible.",
                ],
                action_url=portal_url(EMR_CALENDAR_PATH),
                action_text="Upload Presentation",
            )
            self._record(result, status)

        logger.info("ppt_reminders_sent", day=tomorrow.isoformat(), sent=result.sent, failed=result.failed)
        return result

    # =========================================================================
    # EMR interest registration closes tomorrow
    # =========================================================================

    async def send_emr_interest_reminders(self) -> ReminderRunResult:
        """
        Remind all staff about calls whose interest deadline is tomorrow.

        Raises:
            ValidationError: If no all-staff address is configured.
        """
        if not settings.all_staff_email:
            raise ValidationError("All-staff email address is not configured.")

        result = ReminderRunResult(job="emr-interest-reminders")
        tomorrow = self._today() + timedelta(days=1)
        calls = await self._on_local_day(FundingCall.interest_deadline, tomorrow)
        for call in calls:
            status = await self.email.send_notification(
                to=settings.all_staff_email,
                subject=f'Final Reminder: EMR Interest Registration for "{call.title}"',
                paragraphs=[
                    f'This is a final reminder for the EMR funding opportunity "{call.title}" from {call.agency}.',
                    f"Interest Registration Deadline: {_local_timestamp(call.interest_deadline)}",
                    "If you are interested in this opportunity, please make sure to register on the "
                    "R&D Portal before the deadline.",
                ],
                action_url=portal_url(EMR_CALENDAR_PATH),
                action_text="Register Interest",
                sender="rdc",
            )
            self._record(result, status)

        logger.info("emr_interest_reminders_sent", day=tomorrow.isoformat(), sent=result.sent, failed=result.failed)
        return result

    # =========================================================================
    # IMR evaluation window closing
    # =========================================================================

    async def send_evaluation_reminders(self) -> ReminderRunResult:
        """
        Remind evaluators on the last day of the evaluation window.

        The window is ``imr_evaluation_days`` long, so the reminder goes out
        for meetings held ``imr_evaluation_days - 1`` days ago.
        """
        result = ReminderRunResult(job="evaluation-reminders")
        evaluation_days = (await SystemSettingsService(self.db).get()).imr_evaluation_days
        if evaluation_days < 1:
            result.note = "Evaluation window is 0 days, no reminders sent."
            return result

        meeting_day = self._today() - timedelta(days=evaluation_days - 1)
        deadline = meeting_day + timedelta(days=evaluation_days)
        projects = await self.db.execute(
            select(Project).where(
                Project.status == ProjectStatus.UNDER_REVIEW.value,
                Project.meeting_date == meeting_day,
            )
        )
        for project in projects.scalars().all():
            evaluated = set(project.evaluated_by or [])
            pending = [uid for uid in project.assigned_evaluators or [] if uid not in evaluated]
            for evaluator in await self._users(pending):
                status = await self.email.send_notification(
                    to=evaluator.email,
                    subject=f'URGENT: IMR Evaluation window closing tomorrow for "{project.title}"',
                    user_name=evaluator.name,
                    paragraphs=[
                        f'This is an urgent reminder that the evaluation window for the IMR project '
                        f'"{project.title}" is closing tomorrow.',
                        "Please submit your evaluation from the Evaluation Queue on the R&D Portal.",
                    ],
                    details={
                        "Project PI": project.pi_name,
                        "Meeting Date": _long_date(meeting_day),
                        "Evaluation Deadline": _long_date(deadline),
                    },
                    action_url=portal_url(EVALUATION_QUEUE_PATH),
                    action_text="Go to Evaluation Queue",
                )
                self._record(result, status)

        logger.info("evaluation_reminders_sent", meeting_day=meeting_day.isoformat(), sent=result.sent)
        return result

    # =========================================================================
    # Evaluations still outstanding 5 and 7 days after the meeting
    # =========================================================================

    async def _remind_pending(
        self,
        result: ReminderRunResult,
        item_type: str,
        title: str,
        pi_name: str,
        meeting_day: date,
        assigned: list[str],
        evaluated: list[str],
        absent: list[str],
    ) -> None:
        excluded = set(evaluated) | set(absent)
        pending = [uid for uid in assigned if uid not in excluded]
        for evaluator in await self._users(pending):
            status = await self.email.send_notification(
                to=evaluator.email,
                subject=f'Reminder: Please Submit Your {item_type} Evaluation for "{title}"',
                user_name=evaluator.name,
                paragraphs=[
                    f"This is a friendly reminder to submit your evaluation for the following {item_type} "
                    f"project which was held on {format_display_date(meeting_day)}.",
                    'Please complete the evaluation at your earliest convenience from the "Evaluation Queue" '
                    "on the R&D Portal.",
                ],
                details={"Project": title, "Principal Investigator": pi_name},
                action_url=portal_url(EVALUATION_QUEUE_PATH),
                action_text="Go to Evaluation Queue",
            )
            self._record(result, status)

    async def send_post_evaluation_reminders(self) -> ReminderRunResult:
        result = ReminderRunResult(job="post-evaluation-reminders")
        today = self._today()
        days = [today - timedelta(days=offset) for offset in POST_EVALUATION_DAYS]

        projects = await self.db.execute(
            select(Project).where(
                Project.status == ProjectStatus.UNDER_REVIEW.value,
                Project.meeting_date.in_(days),
                Project.has_had_mid_term_review.is_(False),
            )
        )
        for project in projects.scalars().all():
            await self._remind_pending(
                result,
                "IMR",
                project.title,
                project.pi_name,
                project.meeting_date,
                project.assigned_evaluators or [],
                project.evaluated_by or [],
                (project.meeting_details or {}).get("absent_evaluators") or [],
            )

        interests = await self.db.execute(
            select(EmrInterest).where(
                EmrInterest.status == EmrInterestStatus.EVALUATION_PENDING.value,
                EmrInterest.meeting_date.in_(days),
            )
        )
        calls: dict[UUID, Optional[FundingCall]] = {}
        for interest in interests.scalars().all():
            absent: list[str] = []
            if interest.call_id is not None:
                if interest.call_id not in calls:
                    calls[interest.call_id] = await self.db.get(FundingCall, interest.call_id)
                call = calls[interest.call_id]
                absent = ((call.meeting_details if call else None) or {}).get("absent_evaluators") or []
            await self._remind_pending(
                result,
                "EMR",
                interest.call_title or "EMR Application",
                interest.user_name,
                interest.meeting_date,
                interest.assigned_evaluators or [],
                interest.evaluated_by or [],
                absent,
            )

        logger.info("post_evaluation_reminders_sent", sent=result.sent, failed=result.failed)
        return result


ReminderJob = Callable[[ReminderService], Awaitable[ReminderRunResult]]

# Job name (cron route suffix) to service method
REMINDER_JOBS: dict[str, ReminderJob] = {
    "send-meeting-reminders": ReminderService.send_meeting_reminders,
    "send-ppt-reminders": ReminderService.send_ppt_reminders,
    "send-emr-interest-reminders": ReminderService.send_emr_interest_reminders,
    "send-evaluation-reminders": ReminderService.send_evaluation_reminders,
    "send-post-evaluation-reminders": ReminderService.send_post_evaluation_reminders,
}


async def run_reminder_job(db: AsyncSession, name: str, email: Optional[EmailService] = None) -> ReminderRunResult:
    return await REMINDER_JOBS[name](ReminderService(db, email=email))
