"""
Incentive claim workflow: submission, staged approval and payment status.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from backend.core.permissions import has_module
from backend.models import ActivityLevel, ClaimStatus, ClaimType, IncentiveClaim, User
from backend.schemas.incentives import ClaimActionRequest, IncentiveClaimCreate
from backend.services.activity_log import ActivityLogService
from backend.services.counters import next_claim_id
from backend.services.eligibility import is_eligible_for_disbursement
from backend.services.email import EmailService, portal_url
from backend.services.incentive_calculation import calculate_incentive
from backend.services.notifications import NotificationService
from backend.services.settings import SystemSettingsService, approver_email_for_stage, workflow_for
from backend.utils import format_rupees

logger = structlog.get_logger(__name__)

# Claim type -> column that identifies the claimed work for duplicate detection
UNIQUENESS_FIELDS = {
    ClaimType.RESEARCH_PAPERS: "doi",
    ClaimType.BOOKS: "publication_title",
    ClaimType.PATENTS: "patent_title",
    ClaimType.MEMBERSHIP: "membership_number",
}

# Used when a claim type has no configured workflow
DEFAULT_WORKFLOW = [1, 2, 3, 4]
CO_AUTHOR_CLAIMS_PATH = "/dashboard/incentive-claim?tab=co-author"


class IncentiveService:
    def __init__(self, db: AsyncSession, email: Optional[EmailService] = None):
        self.db = db
        self.email = email or EmailService(db)
        self.notifications = NotificationService(db)
        self.activity = ActivityLogService(db)

    async def get(self, claim_pk: UUID) -> IncentiveClaim:
        claim = await self.db.get(IncentiveClaim, claim_pk)
        if claim is None:
            raise NotFoundError("Incentive claim", message="Incentive claim not found.")
        return claim

    async def list_for_user(self, user_id: UUID) -> list[IncentiveClaim]:
        result = await self.db.execute(
            select(IncentiveClaim)
            .where(IncentiveClaim.user_id == user_id)
            .order_by(IncentiveClaim.submission_date.desc())
        )
        return list(result.scalars().all())

    async def list_co_authored(self, user: User) -> list[IncentiveClaim]:
        """Submitted claims by other users that list ``user`` as an author."""
        result = await self.db.execute(
            select(IncentiveClaim).where(
                and_(IncentiveClaim.user_id != user.id, IncentiveClaim.status != ClaimStatus.DRAFT.value)
            )
        )
        uid = str(user.id)
        return [c for c in result.scalars().all() if any(str(a.get("uid") or "") == uid for a in c.authors or [])]

    async def list_all(
        self,
        status: Optional[ClaimStatus] = None,
        claim_type: Optional[ClaimType] = None,
    ) -> list[IncentiveClaim]:
        query = select(IncentiveClaim).where(IncentiveClaim.status != ClaimStatus.DRAFT.value)
        if status is not None:
            query = query.where(IncentiveClaim.status == status.value)
        if claim_type is not None:
            query = query.where(IncentiveClaim.claim_type == claim_type.value)
        result = await self.db.execute(query.order_by(IncentiveClaim.submission_date.desc()))
        return list(result.scalars().all())

    # =========================================================================
    # Submission
    # =========================================================================

    async def _ensure_not_duplicate(self, user: User, data: IncentiveClaimCreate, claim_pk: Optional[UUID]) -> None:
        field = UNIQUENESS_FIELDS.get(data.claim_type)
        value = getattr(data, field) if field else None
        if not field or not value:
            return

        column = getattr(IncentiveClaim, field)
        query = select(IncentiveClaim.id).where(
            and_(
                IncentiveClaim.user_id == user.id,
                column == value,
                IncentiveClaim.status != ClaimStatus.DRAFT.value,
            )
        )
        if claim_pk is not None:
            query = query.where(IncentiveClaim.id != claim_pk)
        if (await self.db.execute(query.limit(1))).first() is not None:
            raise ValidationError(f"You have already submitted an incentive claim for this {data.claim_type.value}.")

    async def submit(
        self,
        user: User,
        data: IncentiveClaimCreate,
        claim_pk: Optional[UUID] = None,
    ) -> IncentiveClaim:
        """
        Create a claim or update one of the user's drafts.

        Non-draft submissions are checked for duplicates, get a sequential
        claim id, enter the first configured approval stage and have their
        incentive calculated.
        """
        if claim_pk is not None:
            claim = await self.get(claim_pk)
            if claim.user_id != user.id:
                raise AuthorizationError("You do not have permission to edit this claim.")
            if claim.status != ClaimStatus.DRAFT.value:
                raise ValidationError("Only draft claims can be edited.")
        else:
            claim = IncentiveClaim(user_id=user.id)

        if not data.is_draft:
            await self._ensure_not_duplicate(user, data, claim_pk)

        fields = data.model_dump(exclude={"claim_type", "is_draft", "authors", "details"})
        for name, value in fields.items():
            setattr(claim, name, value)
        claim.claim_type = data.claim_type.value
        claim.authors = [author.model_dump(mode="json") for author in data.authors]
        claim.details = dict(data.details)
        claim.user_name = user.name
        claim.user_email = user.email
        claim.faculty = user.faculty
        claim.submission_date = datetime.now(timezone.utc)
        self.db.add(claim)

        if data.is_draft:
            claim.status = ClaimStatus.DRAFT.value
            await self.db.flush()
            return claim

        claim.calculated_incentive = calculate_incentive(claim, user.faculty)
        if not claim.claim_id:
            claim.claim_id = await next_claim_id(self.db, data.claim_type)

        system_settings = await SystemSettingsService(self.db).get()
        workflow = workflow_for(system_settings, data.claim_type)
        claim.status = (ClaimStatus.pending_stage(workflow[0]) if workflow else ClaimStatus.ACCEPTED).value
        await self.db.commit()

        await self._notify_co_authors(claim, user)
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "Incentive claim submitted",
            {"claim_id": claim.claim_id, "user_id": str(user.id)},
        )
        logger.info("incentive_claim_submitted", claim_id=claim.claim_id, status=claim.status)
        return claim

    async def _notify_co_authors(self, claim: IncentiveClaim, claimant: User) -> None:
        uids = {
            UUID(str(author["uid"]))
            for author in claim.authors
            if author.get("uid") and str(author["uid"]) != str(claimant.id)
        }
        if not uids:
            return

        result = await self.db.execute(select(User).where(User.id.in_(uids)))
        for co_author in result.scalars().all():
            if not has_module(co_author, "incentive-claim"):
                continue
            await self.notifications.notify(
                co_author.id,
                f"{claimant.name} has listed you as a co-author on an incentive claim.",
                CO_AUTHOR_CLAIMS_PATH,
            )
            await self.email.send_notification(
                to=co_author.email,
                subject=f"[{claim.claim_id}] You've been added as a co-author on an incentive claim",
                user_name=co_author.name,
                paragraphs=[
                    f'{claimant.name} has submitted an incentive claim for the work titled "{claim.title}" '
                    "and has listed you as a co-author.",
                    "If you wish to claim your share of the incentive, please visit the Co-Author Claims tab "
                    "on the Incentive Claim page.",
                ],
                action_url=portal_url(CO_AUTHOR_CLAIMS_PATH),
                action_text="Apply for Claim",
            )

    async def delete(self, claim_pk: UUID, user: User) -> None:
        claim = await self.get(claim_pk)
        if claim.user_id != user.id:
            raise AuthorizationError("You do not have permission to delete this claim.")
        if claim.status != ClaimStatus.DRAFT.value:
            raise ValidationError("Only draft claims can be deleted.")

        await self.db.delete(claim)
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "Incentive claim draft deleted",
            {"claim_pk": str(claim_pk), "user_id": str(user.id)},
        )

    # =========================================================================
    # Approval
    # =========================================================================

    async def process_action(self, claim_pk: UUID, approver: User, request: ClaimActionRequest) -> IncentiveClaim:
        """
        Record an approver's decision and move the claim along its workflow.

        The approver must be the one configured for the stage. Approvals
        from stage 2 onwards fix ``final_approved_amount``; claimants who
        are not eligible for disbursement get 0.
        """
        claim = await self.get(claim_pk)
        system_settings = await SystemSettingsService(self.db).get()
        stage = request.stage_index + 1

        expected_email = approver_email_for_stage(system_settings, stage)
        if not expected_email:
            raise ValidationError("Approval workflow is not configured correctly.")
        if approver.email.lower() != expected_email.lower():
            raise AuthorizationError("You are not authorized to perform this action for this stage.")

        amount = (request.amount or 0) if is_eligible_for_disbursement(claim) else 0
        approval = {
            "approver_id": str(approver.id),
            "approver_name": approver.name,
            "status": "Rejected" if request.action == "reject" else "Approved",
            "approved_amount": amount,
            "comments": request.comments or "",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "stage": stage,
            "verified_fields": dict(request.verified_fields),
        }
        approvals = list(claim.approvals or [])
        while len(approvals) <= request.stage_index:
            approvals.append(None)
        approvals[request.stage_index] = approval
        claim.approvals = approvals

        if request.action == "reject":
            new_status = ClaimStatus.REJECTED
        else:
            workflow = workflow_for(system_settings, claim.claim_type) or DEFAULT_WORKFLOW
            next_stage = next((s for s in workflow if s > stage), None)
            new_status = ClaimStatus.pending_stage(next_stage) if next_stage else ClaimStatus.ACCEPTED

            if request.stage_index >= 1:
                claim.final_approved_amount = amount

        claim.status = new_status.value
        await self.db.commit()

        if new_status == ClaimStatus.REJECTED:
            await self.email.send_notification(
                to=claim.user_email,
                subject=f"Update on Your Incentive Claim: {claim.title}",
                user_name=claim.user_name,
                paragraphs=[
                    f'This email is to inform you about a decision on your recent incentive claim for "{claim.title}".',
                    "After careful review, your application has been rejected.",
                    "For more information, please visit the portal or contact the RDC office.",
                ],
            )
        elif new_status == ClaimStatus.ACCEPTED:
            await self.email.send_notification(
                to=claim.user_email,
                subject=f'Congratulations! Your Incentive Claim for "{claim.title}" has been Approved',
                user_name=claim.user_name,
                paragraphs=[
                    f'We are pleased to inform you that your incentive claim for "{claim.title}" '
                    "has been successfully approved by all committees.",
                    f"The final approved incentive amount is ₹{format_rupees(amount)}. "
                    "The amount will be processed by the accounts department shortly.",
                ],
            )

        await self.activity.log_activity(
            ActivityLevel.INFO,
            "Incentive claim action processed",
            {"claim_id": claim.claim_id, "action": request.action, "stage": stage, "approver": approver.name},
        )
        return claim

    async def update_status(self, claim_pk: UUID, status: ClaimStatus) -> IncentiveClaim:
        """Administrative status change (Submitted to Accounts, Payment Completed)."""
        claim = await self.get(claim_pk)
        claim.status = status.value
        await self.db.flush()

        await self.activity.log_activity(
            ActivityLevel.INFO,
            "Incentive claim status updated",
            {"claim_id": claim.claim_id, "status": status.value, "user_id": str(claim.user_id)},
        )
        await self.notifications.notify(
            claim.user_id,
            f'Your incentive claim for "{claim.title}" was updated to: {status.value}',
            str(claim.id),
        )
        await self.db.commit()
        await self.email.send_notification(
            to=claim.user_email,
            subject=f"Incentive Claim Status Update: {status.value}",
            user_name=claim.user_name,
            paragraphs=[f'The status of your incentive claim for "{claim.title}" has been updated to {status.value}.'],
            action_url=portal_url("/dashboard/incentive-claim"),
            action_text="View your claims",
        )
        return claim
