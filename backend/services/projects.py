"""
IMR project workflow: submission, review meetings, evaluations and grants.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from backend.core.permissions import is_admin
from backend.models import (
    ActivityLevel,
    MeetingMode,
    Project,
    ProjectEvaluation,
    ProjectStatus,
    Recommendation,
    User,
    UserRole,
)
from backend.schemas.common import EmailOutcome
from backend.schemas.projects import (
    GrantUpdate,
    MeetingDetails,
    ProjectFilters,
    ProjectSubmission,
)
from backend.services.activity_log import ActivityLogService
from backend.services.email import EmailService, portal_url
from backend.services.notifications import NotificationService
from backend.utils import google_calendar_link

logger = structlog.get_logger(__name__)


def _project_path(project_id: UUID | str) -> str:
    return f"/dashboard/project/{project_id}"


def _meeting_time_label(time_str: str) -> str:
    """'14:30' -> '2:30 PM (IST)'."""
    hour, minute = (int(part) for part in time_str.split(":")[:2])
    suffix = "AM" if hour < 12 else "PM"
    return f"{(hour % 12) or 12}:{minute:02d} {suffix} (IST)"


class ProjectService:
    def __init__(self, db: AsyncSession, email: Optional[EmailService] = None):
        self.db = db
        self.email = email or EmailService(db)
        self.notifications = NotificationService(db)
        self.activity = ActivityLogService(db)

    async def get(self, project_id: UUID) -> Project:
        project = await self.db.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project", message="Project not found.")
        return project

    async def get_for_user(self, project_id: UUID, user: User) -> Project:
        """A project as seen by ``user``: PI, co-PI, assigned evaluator, CRO or admin."""
        project = await self.get(project_id)
        uid = str(user.id)
        if (
            project.pi_id == user.id
            or uid in (project.co_pi_ids or [])
            or uid in (project.assigned_evaluators or [])
            or is_admin(user)
            or UserRole(user.role) == UserRole.CRO
        ):
            return project
        raise AuthorizationError("You do not have permission to view this project.")

    async def list_projects(self, user: User, filters: Optional[ProjectFilters] = None) -> list[Project]:
        """
        Projects visible to ``user``.

        Admins and CROs see everything (drafts excluded); evaluators see
        projects assigned to them; everyone else sees their own and those
        they are a co-PI on.
        """
        filters = filters or ProjectFilters()
        query = select(Project)
        if filters.status is not None:
            query = query.where(Project.status == filters.status.value)
        if filters.faculty:
            query = query.where(Project.faculty == filters.faculty)
        if filters.institute:
            query = query.where(Project.institute == filters.institute)
        if filters.pi_id is not None:
            query = query.where(Project.pi_id == filters.pi_id)

        result = await self.db.execute(query.order_by(Project.created_at.desc()))
        projects = list(result.scalars().all())

        if is_admin(user) or UserRole(user.role) == UserRole.CRO:
            return [p for p in projects if p.status != ProjectStatus.DRAFT.value]

        uid = str(user.id)
        if UserRole(user.role) == UserRole.EVALUATOR:
            assigned = [p for p in projects if uid in (p.assigned_evaluators or [])]
            if assigned:
                return assigned
        return [p for p in projects if p.pi_id == user.id or uid in (p.co_pi_ids or [])]

    # =========================================================================
    # Submission and status
    # =========================================================================

    async def save_submission(
        self,
        user: User,
        data: ProjectSubmission,
        project_id: Optional[UUID] = None,
    ) -> Project:
        """Create a proposal or merge into one of the user's own drafts."""
        if project_id is not None:
            project = await self.get(project_id)
            if project.pi_id != user.id:
                raise AuthorizationError("You do not have permission to edit this project.")
            editable = (ProjectStatus.DRAFT.value, ProjectStatus.REVISION_NEEDED.value)
            if project.status not in editable:
                raise ValidationError("Only draft or revision-requested projects can be edited.")
        else:
            project = Project(pi_id=user.id)

        project.title = data.title
        project.abstract = data.abstract
        project.type = data.type
        project.faculty = data.faculty or user.faculty
        project.institute = data.institute or user.institute
        project.department = data.department or user.department
        project.pi_name = user.name
        project.pi_email = user.email
        project.co_pi_details = [co_pi.model_dump(mode="json") for co_pi in data.co_pi_details]
        project.co_pi_ids = [str(co_pi.uid) for co_pi in data.co_pi_details if co_pi.uid]
        project.project_duration = data.project_duration
        project.status = data.status
        if data.status == ProjectStatus.SUBMITTED.value:
            project.submission_date = datetime.now(timezone.utc)
        self.db.add(project)
        await self.db.flush()

        if data.status == ProjectStatus.SUBMITTED.value:
            await self.notifications.notify_module_holders(
                "pending-reviews",
                f'New Project Submitted: "{project.title}" by {user.name}',
                str(project.id),
            )

        await self.activity.log_activity(
            ActivityLevel.INFO,
            f"Project {data.status}",
            {"project_id": str(project.id), "title": project.title},
        )
        return project

    async def update_status(
        self,
        project_id: UUID,
        new_status: ProjectStatus,
        comments: Optional[str] = None,
    ) -> Project:
        project = await self.get(project_id)
        project.status = new_status.value
        if comments:
            if new_status == ProjectStatus.REVISION_NEEDED:
                project.revision_comments = comments
            elif new_status == ProjectStatus.NOT_RECOMMENDED:
                project.rejection_comments = comments
        await self.db.flush()

        await self.activity.log_activity(
            ActivityLevel.INFO,
            "Project status updated",
            {"project_id": str(project.id), "new_status": new_status.value, "pi_id": str(project.pi_id)},
        )
        await self.notifications.notify(
            project.pi_id,
            f'Your project "{project.title}" status was updated to: {new_status.value}',
            str(project.id),
        )

        paragraphs = [f'The status of your project, "{project.title}" has been updated to {new_status.value}.']
        notes = None
        if comments:
            heading = (
                "Evaluator's Comments for Revision:"
                if new_status == ProjectStatus.REVISION_NEEDED
                else "Reason for Decision:"
            )
            notes = f"{heading}\n{comments}"
            if new_status == ProjectStatus.REVISION_NEEDED:
                paragraphs.append("Please submit the revised proposal from your project details page on the portal.")

        await self.db.commit()
        if project.pi_email:
            await self.email.send_notification(
                to=project.pi_email,
                subject=f"Project Status Update: {project.title}",
                user_name=project.pi_name,
                paragraphs=paragraphs,
                notes=notes,
                action_url=portal_url(_project_path(project.id)),
                action_text="View project",
            )
        return project

    # =========================================================================
    # Meetings and evaluations
    # =========================================================================

    async def schedule_meeting(
        self,
        project_ids: list[UUID],
        meeting: MeetingDetails,
        is_mid_term_review: bool = False,
    ) -> tuple[list[Project], list[EmailOutcome]]:
        """
        Schedule one evaluation meeting for several projects.

        Project updates and notifications are committed together before any
        email goes out; email outcomes are reported per recipient.
        """
        if not meeting.evaluator_ids:
            raise ValidationError("An evaluation committee must be assigned.")

        projects = [await self.get(project_id) for project_id in project_ids]
        evaluators = list(
            (await self.db.execute(select(User).where(User.id.in_(meeting.evaluator_ids)))).scalars().all()
        )
        evaluator_ids = [str(evaluator_id) for evaluator_id in meeting.evaluator_ids]

        meeting_type = "IMR Mid-term Review Meeting" if is_mid_term_review else "IMR Evaluation Meeting"
        subject_prefix = "Mid-term Review" if is_mid_term_review else "IMR Meeting"
        online = meeting.mode == MeetingMode.ONLINE
        online_suffix = " (Online)" if online else ""
        formatted_date = f"{meeting.date:%B} {meeting.date.day}, {meeting.date.year}"
        formatted_time = _meeting_time_label(meeting.time)

        for project in projects:
            project.meeting_date = meeting.date
            project.meeting_details = {"time": meeting.time, "venue": meeting.venue, "mode": meeting.mode.value}
            project.assigned_evaluators = list(evaluator_ids)
            project.evaluated_by = []
            project.was_absent = False
            if is_mid_term_review:
                project.has_had_mid_term_review = True
            else:
                project.status = ProjectStatus.UNDER_REVIEW.value

            await self.notifications.notify(
                project.pi_id,
                f'{subject_prefix} scheduled for your project: "{project.title}"',
                str(project.id),
            )

        await self.notifications.notify_many(
            [evaluator.id for evaluator in evaluators],
            f"You've been assigned to an IMR evaluation on {formatted_date}",
            str(projects[0].id),
        )
        await self.activity.log_activity(
            ActivityLevel.INFO,
            f"IMR {'mid-term review ' if is_mid_term_review else ''}meeting scheduled",
            {"project_ids": [str(p.id) for p in projects], "meeting_date": meeting.date.isoformat()},
        )
        await self.db.commit()

        venue_label = "Meeting Link" if online else "Venue"
        outcomes: list[EmailOutcome] = []
        for project in projects:
            if not project.pi_email:
                continue
            action_url, action_text = portal_url(_project_path(project.id)), "View project"
            if online:
                action_url = google_calendar_link(
                    f"{subject_prefix}: {project.title}",
                    meeting.date,
                    meeting.time,
                    details=f"For project: {project.title}",
                    location=meeting.venue,
                )
                action_text = "Save to Google Calendar"
            status = await self.email.send_notification(
                to=project.pi_email,
                subject=f"{subject_prefix} Scheduled for Your Project: {project.title}{online_suffix}",
                user_name="Researcher",
                paragraphs=[
                    f'An {meeting_type} has been scheduled for your project, "{project.title}".',
                    "Please prepare for your presentation.",
                ],
                details={"Date": formatted_date, "Time": formatted_time, venue_label: meeting.venue},
                action_url=action_url,
                action_text=action_text,
            )
            outcomes.append(EmailOutcome.from_status(status))

        titles = ", ".join(project.title for project in projects)
        for evaluator in evaluators:
            status = await self.email.send_notification(
                to=evaluator.email,
                subject=(
                    f"IMR Evaluation Assignment "
                    f"({'Mid-term Review' if is_mid_term_review else 'New Submission'}){online_suffix}"
                ),
                user_name=evaluator.name,
                paragraphs=[
                    f"You have been assigned to an {meeting_type} committee with the following details. "
                    "You are requested to be present.",
                    f"The following projects are scheduled for your review: {titles}",
                ],
                details={"Date": formatted_date, "Time": formatted_time, venue_label: meeting.venue},
                action_url=portal_url("/dashboard/evaluator-dashboard"),
                action_text="Open evaluation queue",
            )
            outcomes.append(EmailOutcome.from_status(status))

        logger.info(
            "imr_meeting_scheduled",
            projects=len(projects),
            evaluators=len(evaluators),
            emails_failed=sum(1 for o in outcomes if o.status == "failed"),
        )
        return projects, outcomes

    async def _same_meeting(self, projects: list[Project]) -> list[Project]:
        """The given projects plus every other project booked into one of their meetings."""
        slots = {
            (p.meeting_date, (p.meeting_details or {}).get("time"), (p.meeting_details or {}).get("venue"))
            for p in projects
            if p.meeting_date is not None
        }
        found = {p.id: p for p in projects}
        if slots:
            result = await self.db.execute(
                select(Project).where(Project.meeting_date.in_(sorted({slot[0] for slot in slots})))
            )
            for project in result.scalars().all():
                details = project.meeting_details or {}
                if (project.meeting_date, details.get("time"), details.get("venue")) in slots:
                    found.setdefault(project.id, project)
        return list(found.values())

    async def mark_attendance(
        self,
        project_ids: list[UUID],
        absent_project_ids: list[UUID],
        absent_evaluator_ids: list[UUID],
    ) -> list[Project]:
        """
        Record who missed an IMR meeting.

        Projects whose PI was absent are flagged ``was_absent``. Absent
        evaluators are added to ``meeting_details.absent_evaluators`` of the
        projects that were presented, so post-meeting reminders skip them.
        """
        projects = await self._same_meeting([await self.get(project_id) for project_id in project_ids])
        absent_projects = {str(project_id) for project_id in absent_project_ids}
        absent_evaluators = [str(uid) for uid in absent_evaluator_ids]

        for project in projects:
            if str(project.id) in absent_projects:
                project.was_absent = True
                continue
            if absent_evaluators:
                details = dict(project.meeting_details or {})
                recorded = list(details.get("absent_evaluators") or [])
                recorded += [uid for uid in absent_evaluators if uid not in recorded]
                details["absent_evaluators"] = recorded
                project.meeting_details = details

        await self.db.flush()
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "IMR meeting attendance marked",
            {
                "total_projects": len(projects),
                "absent_project_ids": sorted(absent_projects),
                "absent_evaluator_ids": absent_evaluators,
            },
        )
        return projects

    async def add_evaluation(
        self,
        project_id: UUID,
        evaluator: User,
        recommendation: Recommendation,
        comments: str,
    ) -> ProjectEvaluation:
        """Record (or replace) an assigned evaluator's verdict."""
        project = await self.get(project_id)
        uid = str(evaluator.id)
        if uid not in (project.assigned_evaluators or []):
            raise AuthorizationError("You are not assigned to evaluate this project.")

        result = await self.db.execute(
            select(ProjectEvaluation).where(
                ProjectEvaluation.project_id == project.id,
                ProjectEvaluation.evaluator_id == evaluator.id,
            )
        )
        evaluation = result.scalar_one_or_none()
        if evaluation is None:
            evaluation = ProjectEvaluation(project_id=project.id, evaluator_id=evaluator.id)
        evaluation.evaluator_name = evaluator.name
        evaluation.recommendation = recommendation.value
        evaluation.comments = comments
        evaluation.evaluation_date = datetime.now(timezone.utc)
        self.db.add(evaluation)

        if uid not in (project.evaluated_by or []):
            project.evaluated_by = [*(project.evaluated_by or []), uid]
        await self.db.flush()

        await self.activity.log_activity(
            ActivityLevel.INFO,
            "IMR evaluation submitted",
            {"project_id": str(project.id), "evaluator_id": uid, "recommendation": recommendation.value},
        )
        return evaluation

    async def list_evaluations(self, project_id: UUID) -> list[ProjectEvaluation]:
        result = await self.db.execute(
            select(ProjectEvaluation)
            .where(ProjectEvaluation.project_id == project_id)
            .order_by(ProjectEvaluation.evaluation_date)
        )
        return list(result.scalars().all())

    # =========================================================================
    # Grants
    # =========================================================================

    async def update_grant(self, project_id: UUID, data: GrantUpdate) -> Project:
        project = await self.get(project_id)
        project.grant = {
            "total_amount": data.total_amount,
            "phases": [phase.model_dump() for phase in data.phases],
        }
        await self.db.flush()
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "Project grant updated",
            {"project_id": str(project.id), "total_amount": data.total_amount},
        )
        return project

    async def update_duration(self, project_id: UUID, project_duration: str) -> Project:
        project = await self.get(project_id)
        project.project_duration = project_duration
        await self.db.flush()
        return project
