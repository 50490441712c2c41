"""
Tests for the IMR project workflow.
"""
from datetime import date

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from backend.models import MeetingMode, Notification, Project, ProjectStatus, Recommendation
from backend.schemas.projects import CoPiDetail, GrantUpdate, MeetingDetails, ProjectSubmission
from backend.services.projects import ProjectService, _meeting_time_label


def submission(status="Submitted", **overrides) -> ProjectSubmission:
    fields = dict(
        title="Financial Literacy Among Rural Self-Help Groups",
        abstract="A mixed-methods study of savings behaviour in Vadodara district.",
        type="Research",
        status=status,
    )
    fields.update(overrides)
    return ProjectSubmission(**fields)


async def notification_titles(session, user_id) -> list[str]:
    result = await session.execute(select(Notification.title).where(Notification.user_id == user_id))
    return list(result.scalars().all())


class TestSubmission:
    """Tests for save_submission."""

    @pytest.mark.asyncio
    async def test_submit_copies_pi_hierarchy(self, async_session, faculty_user, co_investigator, email_service):
        service = ProjectService(async_session, email=email_service)
        data = submission(co_pi_details=[CoPiDetail(uid=co_investigator.id, name=co_investigator.name)])

        project = await service.save_submission(faculty_user, data)

        assert project.status == ProjectStatus.SUBMITTED.value
        assert project.faculty == "Faculty of Management Studies"
        assert project.institute == "Institute of Management"
        assert project.department == "Finance"
        assert project.pi_email == faculty_user.email
        assert project.co_pi_ids == [str(co_investigator.id)]
        assert project.submission_date is not None

    @pytest.mark.asyncio
    async def test_submit_notifies_reviewers(self, async_session, faculty_user, admin_user, evaluator_user, email_service):
        service = ProjectService(async_session, email=email_service)

        await service.save_submission(faculty_user, submission())

        assert await notification_titles(async_session, admin_user.id) == [
            'New Project Submitted: "Financial Literacy Among Rural Self-Help Groups" by Dr. Asha Patel'
        ]
        assert await notification_titles(async_session, evaluator_user.id) == []

    @pytest.mark.asyncio
    async def test_draft_does_not_notify(self, async_session, faculty_user, admin_user, email_service):
        service = ProjectService(async_session, email=email_service)

        project = await service.save_submission(faculty_user, submission(status="Draft"))

        assert project.status == ProjectStatus.DRAFT.value
        assert project.submission_date is None
        assert await notification_titles(async_session, admin_user.id) == []

    @pytest.mark.asyncio
    async def test_only_pi_edits(self, async_session, faculty_user, co_investigator, email_service):
        service = ProjectService(async_session, email=email_service)
        project = await service.save_submission(faculty_user, submission(status="Draft"))

        with pytest.raises(AuthorizationError):
            await service.save_submission(co_investigator, submission(), project_id=project.id)

    @pytest.mark.asyncio
    async def test_submitted_project_is_not_editable(self, async_session, faculty_user, email_service):
        service = ProjectService(async_session, email=email_service)
        project = await service.save_submission(faculty_user, submission())

        with pytest.raises(ValidationError):
            await service.save_submission(faculty_user, submission(title="Renamed"), project_id=project.id)


class TestStatusAndVisibility:
    @pytest.mark.asyncio
    async def test_revision_comments_are_stored_and_emailed(self, async_session, faculty_user, email_service, fake_channel):
        service = ProjectService(async_session, email=email_service)
        project = await service.save_submission(faculty_user, submission())

        project = await service.update_status(project.id, ProjectStatus.REVISION_NEEDED, "Clarify the sampling frame.")

        assert project.revision_comments == "Clarify the sampling frame."
        assert project.rejection_comments is None
        assert fake_channel.subjects_to(faculty_user.email) == [f"Project Status Update: {project.title}"]
        assert "Clarify the sampling frame." in fake_channel.sent[0].body_text
        titles = await notification_titles(async_session, faculty_user.id)
        assert any("Revision Needed" in title for title in titles)

    @pytest.mark.asyncio
    async def test_not_recommended_stores_rejection(self, async_session, faculty_user, email_service):
        service = ProjectService(async_session, email=email_service)
        project = await service.save_submission(faculty_user, submission())

        project = await service.update_status(project.id, ProjectStatus.NOT_RECOMMENDED, "Out of scope.")

        assert project.rejection_comments == "Out of scope."

    @pytest.mark.asyncio
    async def test_status_is_committed_before_email(
        self, async_engine, async_session, faculty_user, email_service, fake_channel, monkeypatch
    ):
        service = ProjectService(async_session, email=email_service)
        project = await service.save_submission(faculty_user, submission())
        seen = []
        deliver = fake_channel.send

        async def send_after_reading(content):
            async with AsyncSession(async_engine) as other:
                seen.append(await other.scalar(select(Project.status).where(Project.id == project.id)))
            return await deliver(content)

        monkeypatch.setattr(fake_channel, "send", send_after_reading)

        await service.update_status(project.id, ProjectStatus.REVISION_NEEDED, "Clarify the sampling frame.")

        assert seen == [ProjectStatus.REVISION_NEEDED.value]

    @pytest.mark.asyncio
    async def test_missing_project(self, async_session, email_service):
        import uuid

        with pytest.raises(NotFoundError):
            await ProjectService(async_session, email=email_service).get(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_visibility(self, async_session, faculty_user, co_investigator, evaluator_user, cro_user, email_service):
        service = ProjectService(async_session, email=email_service)
        data = submission(co_pi_details=[CoPiDetail(uid=co_investigator.id, name=co_investigator.name)])
        project = await service.save_submission(faculty_user, data)
        await service.save_submission(faculty_user, submission(title="Unfinished idea", status="Draft"))

        assert len(await service.list_projects(faculty_user)) == 2
        assert [p.id for p in await service.list_projects(co_investigator)] == [project.id]
        assert [p.id for p in await service.list_projects(cro_user)] == [project.id]
        assert await service.list_projects(evaluator_user) == []

        with pytest.raises(AuthorizationError):
            await service.get_for_user(project.id, evaluator_user)


class TestMeetingsAndEvaluations:
    """Tests for schedule_meeting and add_evaluation."""

    @pytest.mark.asyncio
    async def test_schedule_meeting(self, async_session, faculty_user, evaluator_user, email_service, fake_channel):
        service = ProjectService(async_session, email=email_service)
        project = await service.save_submission(faculty_user, submission())
        meeting = MeetingDetails(
            date=date(2026, 11, 20),
            time="14:30",
            venue="RDC Board Room",
            evaluator_ids=[evaluator_user.id],
        )

        projects, outcomes = await service.schedule_meeting([project.id], meeting)

        scheduled = projects[0]
        assert scheduled.status == ProjectStatus.UNDER_REVIEW.value
        assert scheduled.meeting_date == date(2026, 11, 20)
        assert scheduled.meeting_details == {"time": "14:30", "venue": "RDC Board Room", "mode": "Offline"}
        assert scheduled.assigned_evaluators == [str(evaluator_user.id)]
        assert [o.status for o in outcomes] == ["sent", "sent"]
        assert set(fake_channel.recipients) == {faculty_user.email, evaluator_user.email}
        assert fake_channel.subjects_to(evaluator_user.email) == ["IMR Evaluation Assignment (New Submission)"]
        assert "2:30 PM (IST)" in fake_channel.sent[0].body_text

    @pytest.mark.asyncio
    async def test_mid_term_review_keeps_status(self, async_session, faculty_user, evaluator_user, email_service):
        service = ProjectService(async_session, email=email_service)
        project = await service.save_submission(faculty_user, submission())
        await service.update_status(project.id, ProjectStatus.IN_PROGRESS)
        meeting = MeetingDetails(
            date=date(2026, 12, 1),
            time="10:00",
            venue="https://meet.example.org/rdc",
            mode=MeetingMode.ONLINE,
            evaluator_ids=[evaluator_user.id],
        )

        projects, _ = await service.schedule_meeting([project.id], meeting, is_mid_term_review=True)

        assert projects[0].status == ProjectStatus.IN_PROGRESS.value
        assert projects[0].has_had_mid_term_review is True

    @pytest.mark.asyncio
    async def test_failed_email_is_reported(self, async_session, faculty_user, evaluator_user, fake_channel):
        from backend.services.email import EmailService

        fake_channel.fail_for = {evaluator_user.email}
        service = ProjectService(async_session, email=EmailService(async_session, channel=fake_channel))
        project = await service.save_submission(faculty_user, submission())
        meeting = MeetingDetails(
            date=date(2026, 11, 20), time="09:00", venue="Room 4", evaluator_ids=[evaluator_user.id]
        )

        projects, outcomes = await service.schedule_meeting([project.id], meeting)

        assert projects[0].status == ProjectStatus.UNDER_REVIEW.value
        failed = [o for o in outcomes if o.status == "failed"]
        assert [o.to_email for o in failed] == [evaluator_user.email]
        assert failed[0].error == "HTTP 400: Bad Request"

    def test_meeting_needs_a_committee(self):
        with pytest.raises(PydanticValidationError):
            MeetingDetails(date=date(2026, 11, 20), time="10:00", venue="Room 4", evaluator_ids=[])

    @pytest.mark.asyncio
    async def test_evaluation_requires_assignment(self, async_session, faculty_user, evaluator_user, email_service):
        service = ProjectService(async_session, email=email_service)
        project = await service.save_submission(faculty_user, submission())

        with pytest.raises(AuthorizationError) as exc_info:
            await service.add_evaluation(project.id, evaluator_user, Recommendation.RECOMMENDED, "Strong design.")

        assert exc_info.value.message == "You are not assigned to evaluate this project."

    @pytest.mark.asyncio
    async def test_evaluation_is_replaced_not_duplicated(self, async_session, faculty_user, evaluator_user, email_service):
        service = ProjectService(async_session, email=email_service)
        project = await service.save_submission(faculty_user, submission())
        meeting = MeetingDetails(date=date(2026, 11, 20), time="10:00", venue="Room 4", evaluator_ids=[evaluator_user.id])
        await service.schedule_meeting([project.id], meeting)

        await service.add_evaluation(project.id, evaluator_user, Recommendation.REVISION_NEEDED, "Tighten scope.")
        await service.add_evaluation(project.id, evaluator_user, Recommendation.RECOMMENDED, "Revised, fine.")

        evaluations = await service.list_evaluations(project.id)
        assert len(evaluations) == 1
        assert evaluations[0].recommendation == "Recommended"
        refreshed = await service.get(project.id)
        assert refreshed.evaluated_by == [str(evaluator_user.id)]

    @pytest.mark.asyncio
    async def test_mark_attendance_covers_whole_meeting(
        self, async_session, faculty_user, co_investigator, evaluator_user, cro_user, email_service
    ):
        service = ProjectService(async_session, email=email_service)
        present = await service.save_submission(faculty_user, submission())
        absent = await service.save_submission(co_investigator, submission(title="Microfinance Repayment Patterns"))
        elsewhere = await service.save_submission(faculty_user, submission(title="Rural Insurance Uptake"))
        committee = [evaluator_user.id, cro_user.id]
        meeting = MeetingDetails(date=date(2026, 11, 20), time="10:00", venue="Room 4", evaluator_ids=committee)
        await service.schedule_meeting([present.id, absent.id], meeting)
        other = MeetingDetails(date=date(2026, 11, 20), time="15:00", venue="Room 4", evaluator_ids=committee)
        await service.schedule_meeting([elsewhere.id], other)

        projects = await service.mark_attendance([present.id], [absent.id], [cro_user.id])

        assert {p.id for p in projects} == {present.id, absent.id}
        assert present.was_absent is False
        assert present.meeting_details["absent_evaluators"] == [str(cro_user.id)]
        assert absent.was_absent is True
        assert "absent_evaluators" not in absent.meeting_details
        assert "absent_evaluators" not in elsewhere.meeting_details

    @pytest.mark.asyncio
    async def test_rescheduling_clears_absence(self, async_session, faculty_user, evaluator_user, email_service):
        service = ProjectService(async_session, email=email_service)
        project = await service.save_submission(faculty_user, submission())
        meeting = MeetingDetails(date=date(2026, 11, 20), time="10:00", venue="Room 4", evaluator_ids=[evaluator_user.id])
        await service.schedule_meeting([project.id], meeting)
        await service.mark_attendance([project.id], [project.id], [])

        await service.schedule_meeting([project.id], meeting.model_copy(update={"date": date(2026, 11, 27)}))

        assert project.was_absent is False


class TestGrant:
    @pytest.mark.asyncio
    async def test_update_grant(self, async_session, faculty_user, email_service):
        service = ProjectService(async_session, email=email_service)
        project = await service.save_submission(faculty_user, submission())

        project = await service.update_grant(
            project.id,
            GrantUpdate(total_amount=100000, phases=[{"name": "Phase 1", "amount": 60000}]),
        )

        assert project.grant == {
            "total_amount": 100000,
            "phases": [{"name": "Phase 1", "amount": 60000, "status": "Pending Disbursement"}],
        }

    def test_phases_cannot_exceed_total(self):
        with pytest.raises(PydanticValidationError):
            GrantUpdate(total_amount=1000, phases=[{"name": "Phase 1", "amount": 800}, {"name": "Phase 2", "amount": 400}])


class TestHelpers:
    @pytest.mark.parametrize(
        "value,expected",
        [("00:15", "12:15 AM (IST)"), ("09:05", "9:05 AM (IST)"), ("12:00", "12:00 PM (IST)"), ("18:45", "6:45 PM (IST)")],
    )
    def test_meeting_time_label(self, value, expected):
        assert _meeting_time_label(value) == expected
