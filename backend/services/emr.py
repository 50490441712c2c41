"""
Extramural (EMR) funding calls and the faculty interests registered on them.

An interest moves from registration through a presentation meeting,
evaluation, endorsement and agency submission to a final sanction outcome.
"""
import io
from datetime import date, datetime, timedelta, timezone
from pathlib import PurePosixPath
from typing import Optional
from uuid import UUID

import openpyxl
import structlog
from openpyxl.utils.datetime import from_excel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import settings
from backend.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PortalError,
    ValidationError,
)
from backend.core.permissions import is_admin
from backend.delivery.models import DeliveryState
from backend.models import (
    ActivityLevel,
    EmrEvaluation,
    EmrInterest,
    EmrInterestStatus,
    FundingCall,
    FundingCallStatus,
    MeetingMode,
    Recommendation,
    User,
    UserRole,
)
from backend.schemas.emr import (
    BulkUploadFailure,
    BulkUploadResult,
    CoPi,
    EmrMeetingDetails,
    FundingCallCreate,
    SanctionedProjectCreate,
)
from backend.schemas.common import EmailOutcome
from backend.services.activity_log import ActivityLogService
from backend.services.counters import next_funding_call_id, next_interest_id
from backend.services.email import EmailService, portal_url
from backend.services.notifications import NotificationService
from backend.services.storage import StorageClient, get_storage, safe_file_name
from backend.utils import LocalCalendar, format_rupees, google_calendar_link

logger = structlog.get_logger(__name__)

EMR_CALENDAR_PATH = "/dashboard/emr-calendar"
ADMIN_REGISTRATION_REMARK = "Registered by admin on behalf of the user."
ABSENT_REMARK = "Marked as absent from the evaluation meeting."
REVISION_DAYS_AFTER_MEETING = 3
REVISION_DEADLINE_HOUR = 17

STATUS_FOLLOW_UPS = {
    EmrInterestStatus.RECOMMENDED: (
        "Congratulations! Your application has been recommended. The next step is to submit your "
        "endorsement form, which you can do from the EMR Calendar page on the portal."
    ),
    EmrInterestStatus.ENDORSEMENT_SIGNED: (
        "Your endorsement letter has been signed and is ready for collection from the RDC office. "
        "You may now submit your proposal to the funding agency. Once submitted, please log the "
        "Agency Reference Number and Acknowledgement on the portal."
    ),
}


def _co_pi_columns(co_pis: list[CoPi]) -> dict:
    return {
        "co_pi_details": [co_pi.model_dump(mode="json") for co_pi in co_pis],
        "co_pi_ids": [str(co_pi.uid) for co_pi in co_pis if co_pi.uid],
        "co_pi_names": [co_pi.name for co_pi in co_pis],
    }


def _text(value) -> str:
    return "" if value is None else str(value).strip()


def read_upload_rows(content: bytes) -> list[tuple[int, dict]]:
    """(sheet row number, row keyed by the header row) for every non-blank row of the first sheet."""
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        logger.warning("bulk_upload_unreadable", error=str(e))
        raise ValidationError("Could not read the uploaded workbook.") from e
    try:
        rows = list(workbook.worksheets[0].iter_rows(values_only=True))
    finally:
        workbook.close()
    if not rows:
        return []
    headers = [_text(header) for header in rows[0]]
    records = []
    for number, row in enumerate(rows[1:], start=2):
        if all(_text(cell) == "" for cell in row):
            continue
        records.append((number, {header: cell for header, cell in zip(headers, row) if header}))
    return records


def parse_sheet_date(value) -> Optional[date]:
    """A date cell, an Excel serial number, or dd-mm-yyyy / yyyy-mm-dd text."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return from_excel(value).date()
    for pattern in ("%d-%m-%Y", "%Y-%m-%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(str(value).strip(), pattern).date()
        except ValueError:
            continue
    return None


def _co_pi_emails(row: dict) -> list[str]:
    return [
        _text(value).lower()
        for header, value in row.items()
        if header.lower().startswith("co-pi") and _text(value)
    ]


def _duration_amount(row: dict) -> str:
    amount = row.get("Total Amount")
    shown = format_rupees(amount) if isinstance(amount, (int, float)) else _text(amount) or "N/A"
    return f"Amount: {shown} | Duration: {_text(row.get('Duration of Project')) or 'N/A'}"


def revision_deadline(meeting_day: date) -> datetime:
    """Revised presentations are due three days after the meeting at 17:00 local time."""
    return LocalCalendar.at_local_time(meeting_day + timedelta(days=REVISION_DAYS_AFTER_MEETING), REVISION_DEADLINE_HOUR)


class EmrService:
    def __init__(
        self,
        db: AsyncSession,
        email: Optional[EmailService] = None,
        storage: Optional[StorageClient] = None,
    ):
        self.db = db
        self.email = email or EmailService(db)
        self.storage = storage or get_storage()
        self.notifications = NotificationService(db)
        self.activity = ActivityLogService(db)

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_call(self, call_id: UUID) -> FundingCall:
        call = await self.db.get(FundingCall, call_id)
        if call is None:
            raise NotFoundError("Funding call", message="Funding call not found.")
        return call

    async def get_interest(self, interest_pk: UUID) -> EmrInterest:
        interest = await self.db.get(EmrInterest, interest_pk)
        if interest is None:
            raise NotFoundError("Interest registration", message="Interest registration not found.")
        return interest

    async def list_calls(self, status: Optional[FundingCallStatus] = None) -> list[FundingCall]:
        query = select(FundingCall)
        if status is not None:
            query = query.where(FundingCall.status == status.value)
        result = await self.db.execute(query.order_by(FundingCall.interest_deadline.desc()))
        return list(result.scalars().all())

    async def list_interests_for_call(self, call_id: UUID) -> list[EmrInterest]:
        result = await self.db.execute(
            select(EmrInterest).where(EmrInterest.call_id == call_id).order_by(EmrInterest.registered_at)
        )
        return list(result.scalars().all())

    async def list_for_user(self, user: User) -> list[EmrInterest]:
        """Interests where ``user`` is the PI or a co-PI."""
        result = await self.db.execute(select(EmrInterest).order_by(EmrInterest.registered_at.desc()))
        uid = str(user.id)
        return [i for i in result.scalars().all() if i.user_id == user.id or uid in (i.co_pi_ids or [])]

    async def list_evaluations(self, interest_pk: UUID) -> list[EmrEvaluation]:
        result = await self.db.execute(
            select(EmrEvaluation)
            .where(EmrEvaluation.interest_id == interest_pk)
            .order_by(EmrEvaluation.evaluation_date)
        )
        return list(result.scalars().all())

    async def list_assigned_to(self, evaluator: User) -> list[EmrInterest]:
        result = await self.db.execute(
            select(EmrInterest).where(EmrInterest.status == EmrInterestStatus.EVALUATION_PENDING.value)
        )
        uid = str(evaluator.id)
        return [i for i in result.scalars().all() if uid in (i.assigned_evaluators or [])]

    # =========================================================================
    # Funding calls
    # =========================================================================

    async def create_call(self, data: FundingCallCreate, creator: User) -> FundingCall:
        call = FundingCall(
            call_identifier=await next_funding_call_id(self.db),
            title=data.title,
            agency=data.agency,
            description=data.description,
            call_type=data.call_type,
            apply_deadline=data.apply_deadline,
            interest_deadline=data.interest_deadline,
            details_url=data.details_url,
            status=FundingCallStatus.OPEN.value,
            is_announced=False,
            created_by=creator.id,
        )
        self.db.add(call)
        await self.db.flush()

        if data.notify_all_staff:
            await self.announce_call(call.id)

        await self.activity.log_activity(
            ActivityLevel.INFO,
            "New funding call created",
            {"call_id": call.call_identifier, "title": call.title},
        )
        return call

    async def announce_call(self, call_id: UUID) -> FundingCall:
        """Email the all-staff list about a call and mark it announced."""
        if not settings.all_staff_email:
            raise ValidationError("Staff email address is not configured on the server.")
        call = await self.get_call(call_id)

        deadline = LocalCalendar.to_local(call.interest_deadline)
        details = {
            "Funding Agency": call.agency,
            "Call Type": call.call_type,
            "Register Interest By": f"{deadline:%d %B %Y, %I:%M %p}",
            "Agency Deadline": (
                f"{LocalCalendar.to_local(call.apply_deadline):%d %B %Y}" if call.apply_deadline else None
            ),
            "Agency Website": call.details_url,
        }
        call.is_announced = True
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "EMR call announced",
            {"call_id": call.call_identifier, "title": call.title},
        )
        await self.db.commit()

        status = await self.email.send_notification(
            to=settings.all_staff_email,
            subject=f"New Funding Call: {call.title}",
            user_name="Faculty Members",
            paragraphs=[
                "A new extramural funding opportunity has been announced.",
                call.description or "",
            ],
            details=details,
            action_url=portal_url(EMR_CALENDAR_PATH),
            action_text="View Full Details on the Portal",
            sender="rdc",
        )
        if status.status == DeliveryState.FAILED:
            logger.warning("funding_call_announcement_failed", call_id=str(call.id), error=status.error_message)
        return call

    # =========================================================================
    # Registration
    # =========================================================================

    async def register_interest(
        self,
        call_id: UUID,
        user: User,
        co_pis: Optional[list[CoPi]] = None,
        registered_by_admin: bool = False,
    ) -> EmrInterest:
        """
        Register ``user`` for a call.

        Duplicate registrations are rejected by the (call, user) unique
        constraint, which also covers two requests racing each other.
        """
        call = await self.get_call(call_id)
        if call.status != FundingCallStatus.OPEN.value and not registered_by_admin:
            raise ValidationError("This call is no longer accepting registrations.")

        co_pis = co_pis or []
        existing = await self.db.execute(select(EmrInterest.id).where(EmrInterest.call_id == call.id).limit(1))
        is_first_interest = existing.first() is None

        interest = EmrInterest(
            interest_id=await next_interest_id(self.db),
            call_id=call.id,
            call_title=call.title,
            agency=call.agency,
            user_id=user.id,
            user_name=user.name,
            user_email=user.email,
            faculty=user.faculty or "N/A",
            department=user.department or "N/A",
            status=EmrInterestStatus.REGISTERED.value,
            registered_by_admin=registered_by_admin,
            admin_remarks=ADMIN_REGISTRATION_REMARK if registered_by_admin else None,
            **_co_pi_columns(co_pis),
        )
        self.db.add(interest)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("This user has already registered interest for this call.")

        if is_first_interest:
            await self.notifications.notify_module_holders(
                "emr-management",
                f'First registration for "{call.title}". Time to schedule a meeting.',
                str(call.id),
            )

        await self.db.commit()
        await self.email.send_notification(
            to=user.email,
            subject=f"Your EMR Interest Registration for: {call.title}",
            user_name=user.name,
            paragraphs=[
                (
                    f'An administrator has registered your interest for the EMR funding call "{call.title}".'
                    if registered_by_admin
                    else f'You have successfully registered your interest for the EMR funding call "{call.title}".'
                ),
                "The RDC will contact you with the presentation schedule.",
            ],
            details={"Interest ID": interest.interest_id},
            action_url=portal_url(EMR_CALENDAR_PATH),
            action_text="Open EMR Calendar",
        )

        await self._notify_new_co_pis(interest, interest.co_pi_ids, call.title)
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "EMR interest registered",
            {"call_id": str(call.id), "user_id": str(user.id), "by_admin": registered_by_admin},
        )
        return interest

    async def _notify_new_co_pis(self, interest: EmrInterest, co_pi_ids: list[str], title: str) -> None:
        uids = [UUID(uid) for uid in co_pi_ids]
        if not uids:
            return
        result = await self.db.execute(select(User).where(User.id.in_(uids)))
        for co_pi in result.scalars().all():
            await self.notifications.notify(co_pi.id, f'You\'ve been added as a Co-PI for the EMR call: "{title}"')
            await self.email.send_notification(
                to=co_pi.email,
                subject="You've been added to an EMR Application",
                user_name=co_pi.name,
                paragraphs=[f'You have been added as a Co-PI by {interest.user_name} for the EMR call "{title}".'],
                action_url=portal_url(EMR_CALENDAR_PATH),
                action_text="Open EMR Calendar",
            )

    async def update_co_pis(self, interest_pk: UUID, user: User, co_pis: list[CoPi]) -> EmrInterest:
        interest = await self.get_interest(interest_pk)
        if interest.user_id != user.id and not is_admin(user):
            raise AuthorizationError("You do not have permission to edit this registration.")

        before = set(interest.co_pi_ids or [])
        for column, value in _co_pi_columns(co_pis).items():
            setattr(interest, column, value)
        await self.db.commit()

        added = [uid for uid in interest.co_pi_ids if uid not in before]
        await self._notify_new_co_pis(interest, added, interest.call_title or "EMR project")
        return interest

    # =========================================================================
    # Meetings and presentations
    # =========================================================================

    async def schedule_meeting(
        self,
        call_id: UUID,
        meeting: EmrMeetingDetails,
        interest_ids: list[UUID],
    ) -> tuple[list[EmrInterest], list[EmailOutcome]]:
        if not meeting.evaluator_ids:
            raise ValidationError("An evaluation committee must be assigned.")

        call = await self.get_call(call_id)
        evaluator_ids = [str(uid) for uid in meeting.evaluator_ids]
        slot = {"time": meeting.time, "venue": meeting.venue, "mode": meeting.mode.value}

        interests = []
        for interest_pk in interest_ids:
            interest = await self.get_interest(interest_pk)
            if interest.call_id != call.id:
                raise ValidationError("Interest registration does not belong to this call.")
            interest.meeting_date = meeting.date
            interest.ppt_deadline = meeting.ppt_deadline
            interest.meeting_slot = dict(slot)
            interest.assigned_evaluators = list(evaluator_ids)
            interest.evaluated_by = []
            interest.was_absent = False
            interest.status = EmrInterestStatus.EVALUATION_PENDING.value
            interests.append(interest)
            await self.notifications.notify(
                interest.user_id,
                f'Your EMR Presentation for "{call.title}" has been scheduled.',
                str(call.id),
            )

        call.meeting_details = {
            "date": meeting.date.isoformat(),
            **slot,
            "assigned_evaluators": list(evaluator_ids),
            "absent_evaluators": [],
        }
        call.status = FundingCallStatus.MEETING_SCHEDULED.value

        evaluators = list(
            (await self.db.execute(select(User).where(User.id.in_(meeting.evaluator_ids)))).scalars().all()
        )
        await self.notifications.notify_many(
            [evaluator.id for evaluator in evaluators],
            f'You\'ve been assigned to an EMR evaluation meeting for "{call.title}"',
            str(call.id),
        )
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "EMR meeting scheduled",
            {"call_id": str(call.id), "interest_ids": [str(i.id) for i in interests], "date": meeting.date.isoformat()},
        )
        await self.db.commit()

        online = meeting.mode == MeetingMode.ONLINE
        suffix = " (Online)" if online else ""
        deadline = LocalCalendar.to_local(meeting.ppt_deadline)
        details = {
            "Date": f"{meeting.date:%B} {meeting.date.day}, {meeting.date.year}",
            "Time": meeting.time,
            "Meeting Link" if online else "Venue": meeting.venue,
        }

        outcomes: list[EmailOutcome] = []
        for interest in interests:
            status = await self.email.send_notification(
                to=interest.user_email,
                subject=f"Your EMR Presentation Slot for: {call.title}{suffix}",
                user_name=interest.user_name,
                paragraphs=[
                    f'Your presentation slot for the EMR funding call "{call.title}" has been scheduled.',
                    f"Please upload your presentation on the portal by {deadline:%d %B %Y, %I:%M %p}.",
                ],
                details=details,
                action_url=google_calendar_link(
                    f"EMR Presentation: {call.title}",
                    meeting.date,
                    meeting.time,
                    details=f"Presentation for funding call: {call.title}",
                    location=meeting.venue,
                ),
                action_text="Save to Google Calendar",
                cc=[settings.rdc_from_email],
            )
            outcomes.append(EmailOutcome.from_status(status))

        for evaluator in evaluators:
            status = await self.email.send_notification(
                to=evaluator.email,
                subject=f"EMR Evaluation Assignment: {call.title}{suffix}",
                user_name=evaluator.name,
                paragraphs=[
                    f'You have been assigned to the evaluation committee for the EMR call "{call.title}".',
                    f"{len(interests)} applicant(s) will present.",
                ],
                details=details,
                action_url=portal_url("/dashboard/emr-evaluations"),
                action_text="Open EMR evaluations",
            )
            outcomes.append(EmailOutcome.from_status(status))

        return interests, outcomes

    async def upload_ppt(
        self,
        interest_pk: UUID,
        user: User,
        file_data_url: str,
        file_name: str,
        is_revision: bool = False,
    ) -> EmrInterest:
        if not file_data_url:
            raise ValidationError("Interest ID and file data are required.")
        interest = await self.get_interest(interest_pk)
        by_admin = interest.user_id != user.id
        if by_admin and not is_admin(user):
            raise AuthorizationError("You do not have permission to upload for this registration.")

        extension = PurePosixPath(file_name).suffix
        base = f"emr_{safe_file_name(interest.user_name.replace(' ', '_'))}"
        if is_revision:
            base += "_revised"
        path = f"emr-presentations/{interest.call_id or 'admin-added'}/{interest.user_id}/{base}{extension}"
        interest.ppt_url = await self.storage.upload_data_url(file_data_url, path)
        interest.ppt_submission_date = datetime.now(timezone.utc)
        interest.status = (
            EmrInterestStatus.REVISION_SUBMITTED if is_revision else EmrInterestStatus.PPT_SUBMITTED
        ).value
        await self.db.commit()

        if by_admin:
            await self.email.send_notification(
                to=interest.user_email,
                subject=(
                    f"{'Revised ' if is_revision else ''}Presentation Uploaded for EMR Call: "
                    f"{interest.call_title or 'your EMR application'}"
                ),
                user_name=interest.user_name,
                paragraphs=[f"{user.name} has uploaded your presentation on the portal on your behalf."],
                action_url=interest.ppt_url,
                action_text="Open presentation",
            )

        await self.activity.log_activity(
            ActivityLevel.INFO,
            "Revised EMR presentation uploaded" if is_revision else "EMR presentation uploaded",
            {"interest_id": str(interest.id), "user_id": str(interest.user_id), "by_admin": by_admin},
        )
        return interest

    async def remove_ppt(self, interest_pk: UUID) -> EmrInterest:
        interest = await self.get_interest(interest_pk)
        if interest.ppt_url:
            await self.storage.delete(interest.ppt_url)
        interest.ppt_url = None
        interest.ppt_submission_date = None
        interest.status = EmrInterestStatus.REGISTERED.value
        await self.db.flush()
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "EMR presentation removed",
            {"interest_id": str(interest.id), "user_id": str(interest.user_id)},
        )
        return interest

    async def withdraw(self, interest_pk: UUID, user: User) -> None:
        interest = await self.get_interest(interest_pk)
        if interest.user_id != user.id:
            raise AuthorizationError("You do not have permission to withdraw this registration.")
        await self._delete(interest)
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "User withdrew EMR interest",
            {"interest_id": str(interest_pk), "user_id": str(user.id), "call_id": str(interest.call_id)},
        )

    async def _delete(self, interest: EmrInterest) -> None:
        if interest.ppt_url:
            await self.storage.delete(interest.ppt_url)
        await self.db.delete(interest)
        await self.db.flush()

    async def delete_interest(self, interest_pk: UUID, remarks: str, admin_name: str) -> None:
        """Admin removal of a registration; the applicant is told why."""
        interest = await self.get_interest(interest_pk)
        call_title = interest.call_title or "an EMR call"
        user_id, user_email, user_name = interest.user_id, interest.user_email, interest.user_name
        await self._delete(interest)

        await self.notifications.notify(user_id, f'Your EMR registration for "{call_title}" was removed.')
        await self.db.commit()
        await self.email.send_notification(
            to=user_email,
            subject=f"Update on your EMR Interest for: {call_title}",
            user_name=user_name,
            paragraphs=[
                f'Your registration of interest for the EMR funding call "{call_title}" '
                f"has been removed by the administrator ({admin_name}).",
            ],
            notes=f"Remarks: {remarks}",
        )
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "Admin deleted EMR interest",
            {"interest_id": str(interest_pk), "user_id": str(user_id), "admin_name": admin_name, "remarks": remarks},
        )

    # =========================================================================
    # Evaluation and outcome
    # =========================================================================

    async def add_evaluation(
        self,
        interest_pk: UUID,
        evaluator: User,
        recommendation: Recommendation,
        comments: str,
    ) -> EmrEvaluation:
        interest = await self.get_interest(interest_pk)
        uid = str(evaluator.id)
        if uid not in (interest.assigned_evaluators or []):
            raise AuthorizationError("You are not assigned to evaluate this applicant.")

        result = await self.db.execute(
            select(EmrEvaluation).where(
                EmrEvaluation.interest_id == interest.id,
                EmrEvaluation.evaluator_id == evaluator.id,
            )
        )
        evaluation = result.scalar_one_or_none()
        if evaluation is None:
            evaluation = EmrEvaluation(interest_id=interest.id, evaluator_id=evaluator.id)
        evaluation.evaluator_name = evaluator.name
        evaluation.recommendation = recommendation.value
        evaluation.comments = comments
        evaluation.evaluation_date = datetime.now(timezone.utc)
        self.db.add(evaluation)

        if uid not in (interest.evaluated_by or []):
            interest.evaluated_by = [*(interest.evaluated_by or []), uid]
        await self.db.flush()

        await self.notifications.notify_role(
            UserRole.SUPER_ADMIN,
            f"EMR evaluation submitted for {interest.user_name} by {evaluator.name}",
            str(interest.id),
        )
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "EMR evaluation added",
            {"interest_id": str(interest.id), "evaluator_id": uid},
        )
        return evaluation

    async def update_status(
        self,
        interest_pk: UUID,
        status: EmrInterestStatus,
        admin_remarks: Optional[str] = None,
    ) -> EmrInterest:
        interest = await self.get_interest(interest_pk)
        interest.status = status.value
        if admin_remarks:
            interest.admin_remarks = admin_remarks
        now = datetime.now(timezone.utc)
        if status == EmrInterestStatus.ENDORSEMENT_SIGNED:
            interest.endorsement_signed_at = now
        if status == EmrInterestStatus.SUBMITTED_TO_AGENCY:
            interest.submitted_to_agency_at = now
        await self.db.flush()

        await self.activity.log_activity(
            ActivityLevel.INFO,
            "EMR interest status updated",
            {"interest_id": str(interest.id), "user_id": str(interest.user_id), "new_status": status.value},
        )
        await self.notifications.notify(
            interest.user_id,
            f"Your EMR application status has been updated to: {status.value}",
            str(interest.id),
        )

        paragraphs = [f"The status of your EMR application has been updated to {status.value}."]
        if status in STATUS_FOLLOW_UPS:
            paragraphs.append(STATUS_FOLLOW_UPS[status])
        if status == EmrInterestStatus.REVISION_NEEDED:
            meeting_day = interest.meeting_date
            if meeting_day is None and interest.call_id is not None:
                call = await self.db.get(FundingCall, interest.call_id)
                raw = (call.meeting_details or {}).get("date") if call else None
                meeting_day = date.fromisoformat(raw) if raw else None
            if meeting_day is not None:
                deadline = revision_deadline(meeting_day)
                paragraphs.append(
                    f"Please submit your revised presentation on the portal by {deadline:%d %B %Y, %I:%M %p} (IST)."
                )
        paragraphs.append("Please check the portal for more details.")

        await self.db.commit()
        await self.email.send_notification(
            to=interest.user_email,
            subject="Update on your EMR Application",
            user_name=interest.user_name,
            paragraphs=paragraphs,
            notes=f"Admin Remarks: {admin_remarks}" if admin_remarks else None,
            action_url=portal_url(EMR_CALENDAR_PATH),
            action_text="Open EMR Calendar",
        )
        return interest

    async def submit_endorsement(self, interest_pk: UUID, user: User, endorsement_form_url: str) -> EmrInterest:
        interest = await self.get_interest(interest_pk)
        if interest.user_id != user.id and not is_admin(user):
            raise AuthorizationError("You do not have permission to edit this registration.")
        interest.endorsement_form_url = endorsement_form_url
        interest.status = EmrInterestStatus.ENDORSEMENT_SUBMITTED.value
        await self.db.flush()
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "EMR endorsement form uploaded",
            {"interest_id": str(interest.id), "user_id": str(interest.user_id)},
        )
        return interest

    async def submit_to_agency(
        self,
        interest_pk: UUID,
        user: User,
        reference_number: str,
        acknowledgement_url: Optional[str] = None,
    ) -> EmrInterest:
        interest = await self.get_interest(interest_pk)
        if interest.user_id != user.id and not is_admin(user):
            raise AuthorizationError("You do not have permission to edit this registration.")
        interest.agency_reference_number = reference_number
        if acknowledgement_url:
            interest.agency_acknowledgement_url = acknowledgement_url
        interest.status = EmrInterestStatus.SUBMITTED_TO_AGENCY.value
        interest.submitted_to_agency_at = datetime.now(timezone.utc)
        await self.db.flush()
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "EMR application submitted to agency",
            {"interest_id": str(interest.id), "reference_number": reference_number},
        )
        return interest

    async def mark_attendance(
        self,
        call_id: UUID,
        absent_interest_ids: list[UUID],
        absent_evaluator_ids: list[UUID],
    ) -> None:
        call = await self.get_call(call_id)
        for interest_pk in absent_interest_ids:
            interest = await self.get_interest(interest_pk)
            interest.status = EmrInterestStatus.AWAITING_RESCHEDULING.value
            interest.was_absent = True
            interest.admin_remarks = ABSENT_REMARK
            interest.meeting_slot = None
            interest.meeting_date = None

        if absent_evaluator_ids:
            details = dict(call.meeting_details or {})
            absent = list(details.get("absent_evaluators") or [])
            absent += [str(uid) for uid in absent_evaluator_ids if str(uid) not in absent]
            details["absent_evaluators"] = absent
            call.meeting_details = details

        await self.db.flush()
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "EMR meeting attendance marked",
            {
                "call_id": str(call.id),
                "absent_interest_ids": [str(uid) for uid in absent_interest_ids],
                "absent_evaluator_ids": [str(uid) for uid in absent_evaluator_ids],
            },
        )

    async def update_final_status(
        self,
        interest_pk: UUID,
        status: EmrInterestStatus,
        proof_data_url: str,
        file_name: str,
    ) -> EmrInterest:
        if status not in (EmrInterestStatus.SANCTIONED, EmrInterestStatus.NOT_SANCTIONED):
            raise ValidationError("Final status must be Sanctioned or Not Sanctioned.")
        if not proof_data_url:
            raise ValidationError("Interest ID, status, and proof are required.")

        interest = await self.get_interest(interest_pk)
        path = f"emr-final-proofs/{interest.call_id or 'admin-added'}/{interest.user_id}/{safe_file_name(file_name)}"
        interest.final_proof_url = await self.storage.upload_data_url(proof_data_url, path)
        interest.status = status.value
        if status == EmrInterestStatus.SANCTIONED and interest.sanction_date is None:
            interest.sanction_date = LocalCalendar.today()
        await self.db.flush()

        await self.notifications.notify_role(
            UserRole.SUPER_ADMIN,
            f"EMR final status for {interest.user_name} updated to: {status.value}",
            str(interest.id),
        )
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "EMR final status updated",
            {"interest_id": str(interest.id), "user_id": str(interest.user_id), "new_status": status.value},
        )
        return interest

    async def _insert_sanctioned(self, data: SanctionedProjectCreate) -> tuple[EmrInterest, User]:
        pi = await self.db.get(User, data.pi_id)
        if pi is None:
            raise NotFoundError("User", message="Principal Investigator not found.")

        interest = EmrInterest(
            call_id=None,
            call_title=data.title,
            agency=data.agency,
            user_id=pi.id,
            user_name=pi.name,
            user_email=pi.email,
            faculty=pi.faculty or "N/A",
            department=pi.department or "N/A",
            status=EmrInterestStatus.SANCTIONED.value,
            duration_amount=data.duration_amount,
            sanction_date=data.sanction_date,
            is_bulk_uploaded=True,
            **_co_pi_columns(data.co_pis),
        )
        self.db.add(interest)
        await self.db.flush()
        return interest, pi

    async def add_sanctioned_project(self, data: SanctionedProjectCreate) -> EmrInterest:
        """Record an already sanctioned project that never went through a call."""
        interest, pi = await self._insert_sanctioned(data)
        await self.db.commit()

        await self.email.send_notification(
            to=pi.email,
            subject=f'Your EMR Project "{data.title}" has been Added to the R&D Portal',
            user_name=pi.name,
            paragraphs=[
                f'Your sanctioned EMR project "{data.title}" funded by {data.agency} has been added '
                "to the R&D Portal by the administrator.",
            ],
            details={"Duration & Amount": data.duration_amount},
            action_url=portal_url("/dashboard/my-projects"),
            action_text="Go to My Projects",
        )
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "Admin manually added sanctioned EMR project",
            {"interest_id": str(interest.id), "title": data.title},
        )
        return interest

    async def bulk_upload_sanctioned_projects(self, content: bytes) -> BulkUploadResult:
        """
        Import sanctioned EMR projects from an .xlsx sheet, one project per row.

        Columns: Name of the Project, Scheme, Funding Agency, Total Amount,
        PI Name, PI Email, Duration of Project, sanction_date, and any number
        of ``Co-PI ...`` columns holding email addresses. A bad row is
        reported and skipped; the rest are imported. No emails are sent.
        """
        rows = read_upload_rows(content)
        emails = set()
        for _, row in rows:
            emails.add(_text(row.get("PI Email")).lower())
            emails.update(_co_pi_emails(row))
        emails.discard("")
        users: dict[str, User] = {}
        if emails:
            found = await self.db.execute(select(User).where(User.email.in_(sorted(emails))))
            users = {user.email.lower(): user for user in found.scalars().all()}

        result = BulkUploadResult()
        linked: set[UUID] = set()
        for number, row in rows:
            title = _text(row.get("Name of the Project")) or (
                f"{_text(row.get('Scheme')) or 'General'} - {_text(row.get('Funding Agency'))}"
            )
            pi_name = _text(row.get("PI Name")) or None
            try:
                pi = users.get(_text(row.get("PI Email")).lower())
                if pi is None:
                    raise ValidationError("Principal Investigator is not registered on the portal.")
                co_pis = [
                    CoPi(uid=users[email].id, name=users[email].name, email=email)
                    if email in users
                    else CoPi(name=email.split("@")[0], email=email)
                    for email in _co_pi_emails(row)
                ]
                data = SanctionedProjectCreate(
                    pi_id=pi.id,
                    co_pis=co_pis,
                    title=title,
                    agency=_text(row.get("Funding Agency")),
                    sanction_date=parse_sheet_date(row.get("sanction_date")),
                    duration_amount=_duration_amount(row),
                )
                await self._insert_sanctioned(data)
            except (PortalError, PydanticValidationError) as e:
                message = e.message if isinstance(e, PortalError) else str(e.errors()[0]["msg"])
                result.failures.append(
                    BulkUploadFailure(row=number, project_title=title, pi_name=pi_name, error=message)
                )
                continue
            result.successful_count += 1
            linked.add(pi.id)

        result.linked_user_count = len(linked)
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "Bulk EMR upload completed",
            {
                "successful_count": result.successful_count,
                "failure_count": len(result.failures),
                "linked_user_count": result.linked_user_count,
            },
        )
        if result.failures:
            await self.activity.log_activity(
                ActivityLevel.WARNING,
                "Some EMR projects failed during bulk upload",
                {"failures": [failure.model_dump() for failure in result.failures]},
            )
        return result

