"""
Tests for the incentive claim workflow.
"""
import pytest
from sqlalchemy import select

from backend.core.exceptions import AuthorizationError, ValidationError
from backend.models import ClaimStatus, ClaimType, Notification
from backend.schemas.incentives import ClaimActionRequest, IncentiveClaimCreate
from backend.schemas.settings import SystemSettingsUpdate
from backend.services.incentives import IncentiveService
from backend.services.settings import SystemSettingsService


def paper_claim(user, doi="10.1000/rdc.2024.001", **overrides) -> IncentiveClaimCreate:
    fields = dict(
        claim_type=ClaimType.RESEARCH_PAPERS,
        paper_title="Working Capital Cycles in Indian SMEs",
        journal_name="Journal of Small Business Finance",
        doi=doi,
        publication_type="Original Research Article",
        journal_classification="Q1",
        is_pu_name_in_publication=True,
        authors=[{"uid": user.id, "name": user.name, "email": user.email, "role": "First Author"}],
    )
    fields.update(overrides)
    return IncentiveClaimCreate(**fields)


async def configure_workflow(session, stage_one_email, stage_two_email, stages=(1, 2)):
    await SystemSettingsService(session).update(
        SystemSettingsUpdate(
            incentive_approvers=[
                {"stage": 1, "email": stage_one_email},
                {"stage": 2, "email": stage_two_email},
            ],
            incentive_approval_workflows={ClaimType.RESEARCH_PAPERS: list(stages)},
        )
    )


class TestSubmit:
    """Tests for IncentiveService.submit."""

    @pytest.mark.asyncio
    async def test_submit_without_workflow_is_accepted(self, async_session, faculty_user, email_service):
        service = IncentiveService(async_session, email=email_service)

        claim = await service.submit(faculty_user, paper_claim(faculty_user))

        assert claim.claim_id == "RDC/IC/PAPER/0001"
        assert claim.status == ClaimStatus.ACCEPTED.value
        assert claim.calculated_incentive == 15000
        assert claim.user_email == faculty_user.email
        assert claim.faculty == faculty_user.faculty

    @pytest.mark.asyncio
    async def test_submit_enters_first_stage(self, async_session, faculty_user, evaluator_user, admin_user, email_service):
        await configure_workflow(async_session, evaluator_user.email, admin_user.email)
        service = IncentiveService(async_session, email=email_service)

        claim = await service.submit(faculty_user, paper_claim(faculty_user))

        assert claim.status == "Pending Stage 1 Approval"

    @pytest.mark.asyncio
    async def test_claim_ids_are_sequential_per_type(self, async_session, faculty_user, email_service):
        service = IncentiveService(async_session, email=email_service)

        first = await service.submit(faculty_user, paper_claim(faculty_user, doi="10.1000/a"))
        second = await service.submit(faculty_user, paper_claim(faculty_user, doi="10.1000/b"))
        membership = await service.submit(
            faculty_user,
            IncentiveClaimCreate(
                claim_type=ClaimType.MEMBERSHIP,
                professional_body_name="Indian Accounting Association",
                membership_number="IAA-2231",
                membership_amount_paid=4000,
            ),
        )

        assert first.claim_id == "RDC/IC/PAPER/0001"
        assert second.claim_id == "RDC/IC/PAPER/0002"
        assert membership.claim_id == "RDC/IC/MEMBERSHIP/0001"
        assert membership.calculated_incentive == 2000

    @pytest.mark.asyncio
    async def test_duplicate_doi_rejected(self, async_session, faculty_user, email_service):
        service = IncentiveService(async_session, email=email_service)
        await service.submit(faculty_user, paper_claim(faculty_user))

        with pytest.raises(ValidationError) as exc_info:
            await service.submit(faculty_user, paper_claim(faculty_user))

        assert exc_info.value.message == "You have already submitted an incentive claim for this Research Papers."

    @pytest.mark.asyncio
    async def test_draft_then_submit(self, async_session, faculty_user, email_service):
        service = IncentiveService(async_session, email=email_service)

        draft = await service.submit(faculty_user, paper_claim(faculty_user, is_draft=True))
        assert draft.status == ClaimStatus.DRAFT.value
        assert draft.claim_id is None

        submitted = await service.submit(faculty_user, paper_claim(faculty_user), claim_pk=draft.id)
        assert submitted.id == draft.id
        assert submitted.claim_id == "RDC/IC/PAPER/0001"

    @pytest.mark.asyncio
    async def test_cannot_edit_someone_elses_draft(self, async_session, faculty_user, co_investigator, email_service):
        service = IncentiveService(async_session, email=email_service)
        draft = await service.submit(faculty_user, paper_claim(faculty_user, is_draft=True))

        with pytest.raises(AuthorizationError):
            await service.submit(co_investigator, paper_claim(co_investigator), claim_pk=draft.id)

    @pytest.mark.asyncio
    async def test_co_authors_are_notified(self, async_session, faculty_user, co_investigator, email_service, fake_channel):
        service = IncentiveService(async_session, email=email_service)
        data = paper_claim(
            faculty_user,
            authors=[
                {"uid": faculty_user.id, "name": faculty_user.name, "email": faculty_user.email, "role": "First Author"},
                {"uid": co_investigator.id, "name": co_investigator.name, "email": co_investigator.email, "role": "Co-Author"},
            ],
        )

        await service.submit(faculty_user, data)

        result = await async_session.execute(select(Notification).where(Notification.user_id == co_investigator.id))
        notifications = result.scalars().all()
        assert len(notifications) == 1
        assert "co-author" in notifications[0].title
        assert fake_channel.recipients == [co_investigator.email]

    @pytest.mark.asyncio
    async def test_only_drafts_can_be_deleted(self, async_session, faculty_user, email_service):
        service = IncentiveService(async_session, email=email_service)
        claim = await service.submit(faculty_user, paper_claim(faculty_user))

        with pytest.raises(ValidationError):
            await service.delete(claim.id, faculty_user)


class TestProcessAction:
    """Tests for the staged approval workflow."""

    @pytest.mark.asyncio
    async def test_two_stage_approval(self, async_session, faculty_user, evaluator_user, admin_user, email_service, fake_channel):
        await configure_workflow(async_session, evaluator_user.email, admin_user.email)
        service = IncentiveService(async_session, email=email_service)
        claim = await service.submit(faculty_user, paper_claim(faculty_user))

        claim = await service.process_action(
            claim.id, evaluator_user, ClaimActionRequest(action="approve", stage_index=0, amount=15000)
        )
        assert claim.status == "Pending Stage 2 Approval"
        assert claim.final_approved_amount is None

        claim = await service.process_action(
            claim.id, admin_user, ClaimActionRequest(action="approve", stage_index=1, amount=14000, comments="Verified")
        )
        assert claim.status == ClaimStatus.ACCEPTED.value
        assert claim.final_approved_amount == 14000
        assert [a["stage"] for a in claim.approvals] == [1, 2]
        assert claim.approvals[1]["comments"] == "Verified"
        assert any("Approved" in subject for subject in fake_channel.subjects_to(faculty_user.email))

    @pytest.mark.asyncio
    async def test_wrong_approver_rejected(self, async_session, faculty_user, evaluator_user, admin_user, email_service):
        await configure_workflow(async_session, evaluator_user.email, admin_user.email)
        service = IncentiveService(async_session, email=email_service)
        claim = await service.submit(faculty_user, paper_claim(faculty_user))

        with pytest.raises(AuthorizationError):
            await service.process_action(claim.id, admin_user, ClaimActionRequest(action="approve", stage_index=0))

    @pytest.mark.asyncio
    async def test_unconfigured_stage(self, async_session, faculty_user, admin_user, email_service):
        service = IncentiveService(async_session, email=email_service)
        claim = await service.submit(faculty_user, paper_claim(faculty_user))

        with pytest.raises(ValidationError) as exc_info:
            await service.process_action(claim.id, admin_user, ClaimActionRequest(action="approve", stage_index=2))

        assert exc_info.value.message == "Approval workflow is not configured correctly."

    @pytest.mark.asyncio
    async def test_reject(self, async_session, faculty_user, evaluator_user, admin_user, email_service, fake_channel):
        await configure_workflow(async_session, evaluator_user.email, admin_user.email)
        service = IncentiveService(async_session, email=email_service)
        claim = await service.submit(faculty_user, paper_claim(faculty_user))

        claim = await service.process_action(
            claim.id, evaluator_user, ClaimActionRequest(action="reject", stage_index=0, comments="Not indexed")
        )

        assert claim.status == ClaimStatus.REJECTED.value
        assert claim.approvals[0]["status"] == "Rejected"
        assert fake_channel.subjects_to(faculty_user.email) == [
            "Update on Your Incentive Claim: Working Capital Cycles in Indian SMEs"
        ]

    @pytest.mark.asyncio
    async def test_co_author_beyond_fifth_gets_nothing(
        self, async_session, faculty_user, evaluator_user, admin_user, email_service
    ):
        await configure_workflow(async_session, evaluator_user.email, admin_user.email)
        service = IncentiveService(async_session, email=email_service)
        authors = [
            {"name": f"Author {i}", "email": f"author{i}@university.edu", "role": "Co-Author"} for i in range(1, 6)
        ]
        authors.append({"uid": faculty_user.id, "name": faculty_user.name, "email": faculty_user.email, "role": "Co-Author"})
        claim = await service.submit(faculty_user, paper_claim(faculty_user, authors=authors))

        await service.process_action(claim.id, evaluator_user, ClaimActionRequest(action="approve", stage_index=0, amount=2000))
        claim = await service.process_action(
            claim.id, admin_user, ClaimActionRequest(action="approve", stage_index=1, amount=2000)
        )

        assert claim.status == ClaimStatus.ACCEPTED.value
        assert claim.final_approved_amount == 0


class TestUpdateStatus:
    @pytest.mark.asyncio
    async def test_payment_status_notifies_claimant(self, async_session, faculty_user, email_service, fake_channel):
        service = IncentiveService(async_session, email=email_service)
        claim = await service.submit(faculty_user, paper_claim(faculty_user))

        claim = await service.update_status(claim.id, ClaimStatus.PAYMENT_COMPLETED)

        assert claim.status == "Payment Completed"
        assert fake_channel.subjects_to(faculty_user.email) == ["Incentive Claim Status Update: Payment Completed"]
