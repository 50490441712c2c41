"""
IMR project endpoints: submission, review, meetings, evaluations and grants.
"""
import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from backend.api.deps import AdminUser, AsyncSessionDep, CurrentUser, require_module
from backend.models import ProjectStatus, User
from backend.schemas.common import ActionResult, DataResponse, ListResponse, list_response
from backend.schemas.projects import (
    ImrAttendanceRequest,
    EvaluationCreate,
    GrantUpdate,
    ProjectDetailResponse,
    ProjectEvaluationResponse,
    ProjectFilters,
    ProjectResponse,
    ProjectStatusUpdate,
    ProjectSubmission,
    ScheduleMeetingRequest,
    ScheduleMeetingResult,
)
from backend.services.projects import ProjectService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["IMR Projects"])

MeetingScheduler = Annotated[User, Depends(require_module("schedule-meeting"))]
Reviewer = Annotated[User, Depends(require_module("pending-reviews"))]


@router.get("", response_model=ListResponse[ProjectResponse], summary="List visible projects")
async def list_projects(
    db: AsyncSessionDep,
    current_user: CurrentUser,
    status_filter: Optional[ProjectStatus] = Query(None, alias="status"),
    faculty: Optional[str] = Query(None),
    institute: Optional[str] = Query(None),
    pi_id: Optional[UUID] = Query(None),
) -> dict:
    filters = ProjectFilters(status=status_filter, faculty=faculty, institute=institute, pi_id=pi_id)
    projects = await ProjectService(db).list_projects(current_user, filters)
    return list_response([ProjectResponse.model_validate(p) for p in projects])


@router.post(
    "",
    response_model=DataResponse[ProjectResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft or submit a proposal",
)
async def create_project(data: ProjectSubmission, db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    project = await ProjectService(db).save_submission(current_user, data)
    return {"success": True, "data": ProjectResponse.model_validate(project)}


@router.get("/{project_id}", response_model=DataResponse[ProjectDetailResponse], summary="Get a project")
async def get_project(project_id: UUID, db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    service = ProjectService(db)
    project = await service.get_for_user(project_id, current_user)
    detail = ProjectDetailResponse.model_validate(project)
    detail.evaluations = [
        ProjectEvaluationResponse.model_validate(e) for e in await service.list_evaluations(project.id)
    ]
    return {"success": True, "data": detail}


@router.put("/{project_id}", response_model=DataResponse[ProjectResponse], summary="Edit or submit a proposal")
async def update_project(
    project_id: UUID,
    data: ProjectSubmission,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> dict:
    project = await ProjectService(db).save_submission(current_user, data, project_id=project_id)
    return {"success": True, "data": ProjectResponse.model_validate(project)}


@router.patch("/{project_id}/status", response_model=DataResponse[ProjectResponse], summary="Change project status")
async def update_status(
    project_id: UUID,
    data: ProjectStatusUpdate,
    db: AsyncSessionDep,
    reviewer: Reviewer,
) -> dict:
    project = await ProjectService(db).update_status(project_id, data.status, data.comments)
    logger.info(f"Project {project_id} set to {data.status.value} by {reviewer.id}")
    return {"success": True, "data": ProjectResponse.model_validate(project)}


@router.post("/schedule-meeting", response_model=ScheduleMeetingResult, summary="Schedule an IMR meeting")
async def schedule_meeting(
    request: ScheduleMeetingRequest,
    db: AsyncSessionDep,
    _scheduler: MeetingScheduler,
) -> ScheduleMeetingResult:
    projects, outcomes = await ProjectService(db).schedule_meeting(
        request.project_ids,
        request.meeting,
        request.is_mid_term_review,
    )
    return ScheduleMeetingResult(scheduled=len(projects), emails=outcomes)


@router.post("/attendance", response_model=ActionResult, summary="Record IMR meeting absentees")
async def mark_attendance(
    request: ImrAttendanceRequest,
    db: AsyncSessionDep,
    _scheduler: MeetingScheduler,
) -> ActionResult:
    await ProjectService(db).mark_attendance(
        request.project_ids,
        request.absent_project_ids,
        request.absent_evaluator_ids,
    )
    return ActionResult(message="Attendance updated.")


@router.get(
    "/{project_id}/evaluations",
    response_model=ListResponse[ProjectEvaluationResponse],
    summary="List evaluations of a project",
)
async def list_evaluations(project_id: UUID, db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    service = ProjectService(db)
    project = await service.get_for_user(project_id, current_user)
    evaluations = await service.list_evaluations(project.id)
    return list_response([ProjectEvaluationResponse.model_validate(e) for e in evaluations])


@router.post(
    "/{project_id}/evaluations",
    response_model=DataResponse[ProjectEvaluationResponse],
    summary="Submit an evaluation",
)
async def add_evaluation(
    project_id: UUID,
    data: EvaluationCreate,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> dict:
    evaluation = await ProjectService(db).add_evaluation(
        project_id,
        current_user,
        data.recommendation,
        data.comments,
    )
    return {"success": True, "data": ProjectEvaluationResponse.model_validate(evaluation)}


@router.put("/{project_id}/grant", response_model=DataResponse[ProjectResponse], summary="Set grant phases")
async def update_grant(project_id: UUID, data: GrantUpdate, db: AsyncSessionDep, _admin: AdminUser) -> dict:
    project = await ProjectService(db).update_grant(project_id, data)
    return {"success": True, "data": ProjectResponse.model_validate(project)}
