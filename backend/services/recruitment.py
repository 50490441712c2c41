"""
Project staff recruitment: job postings, their approval and public applications.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from backend.core.permissions import is_admin
from backend.models import (
    ActivityLevel,
    ProjectRecruitment,
    RecruitmentApplication,
    RecruitmentStatus,
    User,
)
from backend.schemas.recruitment import ApplicationCreate, PostingCreate
from backend.services.activity_log import ActivityLogService
from backend.services.email import EmailService, portal_url
from backend.services.notifications import NotificationService
from backend.services.storage import StorageClient, get_storage, safe_file_name
from backend.utils import LocalCalendar

logger = structlog.get_logger(__name__)

APPROVALS_PATH = "/dashboard/recruitment-approvals"
APPROVER_MODULE = "recruitment-approvals"


class RecruitmentService:
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

    async def get(self, posting_id: UUID) -> ProjectRecruitment:
        posting = await self.db.get(ProjectRecruitment, posting_id)
        if posting is None:
            raise NotFoundError("Job posting", message="Job posting not found.")
        return posting

    async def create_posting(self, user: User, data: PostingCreate) -> ProjectRecruitment:
        """New postings wait for someone holding the approvals module."""
        posting = ProjectRecruitment(
            **data.model_dump(),
            posted_by_id=user.id,
            posted_by_name=user.name,
            status=RecruitmentStatus.PENDING_APPROVAL.value,
        )
        self.db.add(posting)
        await self.db.flush()

        approvers = await self.notifications.users_with_module(APPROVER_MODULE)
        await self.notifications.notify_many(
            [approver.id for approver in approvers],
            f'New Job Posting: "{posting.position_title}" by {user.name} is awaiting approval.',
            APPROVALS_PATH,
        )
        await self.db.commit()
        for approver in approvers:
            await self.email.send_notification(
                to=approver.email,
                subject="Action Required: New Job Posting for Approval",
                user_name=approver.name,
                paragraphs=[
                    f'A new job posting for "{posting.position_title}" has been submitted by {user.name} '
                    "and requires your approval.",
                    "Please visit the Recruitment Approvals page on the R&D Portal to review and take action.",
                ],
                action_url=portal_url(APPROVALS_PATH),
                action_text="Review Posting",
            )

        await self.activity.log_activity(
            ActivityLevel.INFO,
            f"Notified {len(approvers)} admins for recruitment approval",
            {"job_title": posting.position_title, "posted_by": user.name},
        )
        return posting

    async def list_pending(self) -> list[ProjectRecruitment]:
        result = await self.db.execute(
            select(ProjectRecruitment)
            .where(ProjectRecruitment.status == RecruitmentStatus.PENDING_APPROVAL.value)
            .order_by(ProjectRecruitment.created_at)
        )
        return list(result.scalars().all())

    async def list_my_postings(self, user: User) -> list[ProjectRecruitment]:
        result = await self.db.execute(
            select(ProjectRecruitment)
            .where(ProjectRecruitment.posted_by_id == user.id)
            .order_by(ProjectRecruitment.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_public(self) -> list[ProjectRecruitment]:
        result = await self.db.execute(
            select(ProjectRecruitment)
            .where(ProjectRecruitment.status == RecruitmentStatus.APPROVED.value)
            .order_by(ProjectRecruitment.application_deadline.desc())
        )
        return list(result.scalars().all())

    async def set_status(self, posting_id: UUID, status: RecruitmentStatus) -> ProjectRecruitment:
        if status == RecruitmentStatus.PENDING_APPROVAL:
            raise ValidationError("A posting can only be approved or rejected.")
        posting = await self.get(posting_id)
        posting.status = status.value
        posting.approved_at = datetime.now(timezone.utc) if status == RecruitmentStatus.APPROVED else None
        await self.db.flush()

        await self.notifications.notify(
            posting.posted_by_id,
            f'Your job posting "{posting.position_title}" was {status.value.lower()}.',
            "/dashboard/post-a-job",
        )
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "Job posting status updated",
            {"posting_id": str(posting.id), "status": status.value},
        )
        return posting

    # =========================================================================
    # Applications
    # =========================================================================

    async def apply(self, posting_id: UUID, data: ApplicationCreate) -> RecruitmentApplication:
        """Public application; the CV is required, the cover letter optional."""
        posting = await self.get(posting_id)
        if posting.status != RecruitmentStatus.APPROVED.value:
            raise ValidationError("This position is not open for applications.")
        if posting.application_deadline < LocalCalendar.today():
            raise ValidationError("The application deadline for this position has passed.")

        application_id = uuid4()
        cv_url = await self.storage.upload_data_url(
            data.cv_data_url,
            f"recruitment-cvs/{posting.id}/{application_id}_{safe_file_name(data.cv_file_name)}",
        )
        cover_letter_url = None
        if data.cover_letter_data_url:
            cover_letter_url = await self.storage.upload_data_url(
                data.cover_letter_data_url,
                f"recruitment-cover-letters/{posting.id}/{application_id}_{safe_file_name(data.cover_letter_file_name)}",
            )

        application = RecruitmentApplication(
            id=application_id,
            recruitment_id=posting.id,
            applicant_name=data.applicant_name,
            applicant_email=data.applicant_email,
            applicant_phone=data.applicant_phone,
            applicant_mis_id=data.applicant_mis_id,
            department=data.department,
            institute=data.institute,
            cv_url=cv_url,
            cover_letter_url=cover_letter_url,
        )
        self.db.add(application)
        await self.db.flush()

        logger.info("recruitment_application_received", posting_id=str(posting.id))
        return application

    async def list_applications(self, posting_id: UUID, user: User) -> list[RecruitmentApplication]:
        posting = await self.get(posting_id)
        if posting.posted_by_id != user.id and not is_admin(user):
            raise AuthorizationError("You do not have permission to view these applications.")
        result = await self.db.execute(
            select(RecruitmentApplication)
            .where(RecruitmentApplication.recruitment_id == posting.id)
            .order_by(RecruitmentApplication.applied_at.desc())
        )
        return list(result.scalars().all())
