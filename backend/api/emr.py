"""
EMR endpoints: funding calls, interest registrations, meetings, evaluations
and the post-evaluation submission trail.
"""
import logging
from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from backend.api.deps import AsyncSessionDep, CurrentUser, SuperAdminUser, require_module
from backend.core.exceptions import AuthorizationError
from backend.core.permissions import is_admin
from backend.models import EmrInterestStatus, FundingCallStatus, User
from backend.schemas.common import ActionResult, DataResponse, ListResponse, list_response
from backend.schemas.emr import (
    AgencySubmission,
    AttendanceRequest,
    BulkUploadRequest,
    BulkUploadResult,
    CoPiUpdate,
    EmrEvaluationCreate,
    EmrEvaluationResponse,
    EmrInterestResponse,
    EmrMeetingRequest,
    EmrStatusUpdate,
    EndorsementUpload,
    FinalStatusUpdate,
    FundingCallCreate,
    FundingCallResponse,
    InterestDeleteRequest,
    InterestRegistration,
    PptUpload,
    SanctionedProjectCreate,
)
from backend.schemas.projects import ScheduleMeetingResult
from backend.services.emr import EmrService
from backend.services.storage import decode_data_url
from backend.services.users import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/emr", tags=["EMR"])

EmrManager = Annotated[User, Depends(require_module("emr-management"))]
BulkUploader = Annotated[User, Depends(require_module("bulk-upload"))]


def _interest(interest) -> dict:
    return {"success": True, "data": EmrInterestResponse.model_validate(interest)}


# =============================================================================
# Funding calls
# =============================================================================


@router.get("/calls", response_model=ListResponse[FundingCallResponse], summary="List funding calls")
async def list_calls(
    db: AsyncSessionDep,
    _user: CurrentUser,
    status_filter: Optional[FundingCallStatus] = Query(None, alias="status"),
) -> dict:
    calls = await EmrService(db).list_calls(status_filter)
    return list_response([FundingCallResponse.model_validate(c) for c in calls])


@router.post(
    "/calls",
    response_model=DataResponse[FundingCallResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a funding call",
)
async def create_call(data: FundingCallCreate, db: AsyncSessionDep, manager: EmrManager) -> dict:
    call = await EmrService(db).create_call(data, manager)
    return {"success": True, "data": FundingCallResponse.model_validate(call)}


@router.post("/calls/{call_id}/announce", response_model=DataResponse[FundingCallResponse], summary="Email all staff")
async def announce_call(call_id: UUID, db: AsyncSessionDep, _manager: EmrManager) -> dict:
    call = await EmrService(db).announce_call(call_id)
    return {"success": True, "data": FundingCallResponse.model_validate(call)}


@router.get(
    "/calls/{call_id}/interests",
    response_model=ListResponse[EmrInterestResponse],
    summary="List registrations for a call",
)
async def list_call_interests(call_id: UUID, db: AsyncSessionDep, _manager: EmrManager) -> dict:
    interests = await EmrService(db).list_interests_for_call(call_id)
    return list_response([EmrInterestResponse.model_validate(i) for i in interests])


@router.post(
    "/calls/{call_id}/interests",
    response_model=DataResponse[EmrInterestResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Register interest in a call",
)
async def register_interest(
    call_id: UUID,
    data: InterestRegistration,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> dict:
    """Admins may register on behalf of another user by passing ``user_id``."""
    applicant = current_user
    on_behalf = data.user_id is not None and data.user_id != current_user.id
    if on_behalf:
        if not is_admin(current_user):
            raise AuthorizationError("Only admins can register interest on behalf of another user.")
        applicant = await UserService(db).get(data.user_id)

    interest = await EmrService(db).register_interest(call_id, applicant, data.co_pis, registered_by_admin=on_behalf)
    return _interest(interest)


@router.post("/calls/{call_id}/meeting", response_model=ScheduleMeetingResult, summary="Schedule the EMR meeting")
async def schedule_meeting(
    call_id: UUID,
    request: EmrMeetingRequest,
    db: AsyncSessionDep,
    _manager: EmrManager,
) -> ScheduleMeetingResult:
    interests, outcomes = await EmrService(db).schedule_meeting(call_id, request.meeting, request.interest_ids)
    return ScheduleMeetingResult(scheduled=len(interests), emails=outcomes)


@router.post("/calls/{call_id}/attendance", response_model=ActionResult, summary="Record meeting absentees")
async def mark_attendance(
    call_id: UUID,
    request: AttendanceRequest,
    db: AsyncSessionDep,
    _manager: EmrManager,
) -> ActionResult:
    await EmrService(db).mark_attendance(call_id, request.absent_interest_ids, request.absent_evaluator_ids)
    return ActionResult(message="Attendance updated.")


# =============================================================================
# Interests
# =============================================================================


@router.get("/interests/mine", response_model=ListResponse[EmrInterestResponse], summary="My registrations")
async def my_interests(db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    interests = await EmrService(db).list_for_user(current_user)
    return list_response([EmrInterestResponse.model_validate(i) for i in interests])


@router.get(
    "/interests/assigned",
    response_model=ListResponse[EmrInterestResponse],
    summary="Registrations awaiting my evaluation",
)
async def assigned_interests(db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    interests = await EmrService(db).list_assigned_to(current_user)
    return list_response([EmrInterestResponse.model_validate(i) for i in interests])


@router.put("/interests/{interest_id}/co-pis", response_model=DataResponse[EmrInterestResponse])
async def update_co_pis(interest_id: UUID, data: CoPiUpdate, db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    return _interest(await EmrService(db).update_co_pis(interest_id, current_user, data.co_pis))


@router.post("/interests/{interest_id}/ppt", response_model=DataResponse[EmrInterestResponse], summary="Upload PPT")
async def upload_ppt(interest_id: UUID, data: PptUpload, db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    interest = await EmrService(db).upload_ppt(
        interest_id,
        current_user,
        data.file_data_url,
        data.file_name,
        is_revision=data.is_revision,
    )
    return _interest(interest)


@router.delete("/interests/{interest_id}/ppt", response_model=DataResponse[EmrInterestResponse], summary="Remove PPT")
async def remove_ppt(interest_id: UUID, db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    service = EmrService(db)
    interest = await service.get_interest(interest_id)
    if interest.user_id != current_user.id and not is_admin(current_user):
        raise AuthorizationError("You do not have permission to edit this registration.")
    return _interest(await service.remove_ppt(interest_id))


@router.delete("/interests/{interest_id}", response_model=ActionResult, summary="Withdraw my registration")
async def withdraw_interest(interest_id: UUID, db: AsyncSessionDep, current_user: CurrentUser) -> ActionResult:
    await EmrService(db).withdraw(interest_id, current_user)
    return ActionResult(message="Registration withdrawn.")


@router.post("/interests/{interest_id}/delete", response_model=ActionResult, summary="Remove a registration")
async def delete_interest(
    interest_id: UUID,
    data: InterestDeleteRequest,
    db: AsyncSessionDep,
    manager: EmrManager,
) -> ActionResult:
    await EmrService(db).delete_interest(interest_id, data.remarks, manager.name)
    return ActionResult(message="Registration deleted.")


@router.get(
    "/interests/{interest_id}/evaluations",
    response_model=ListResponse[EmrEvaluationResponse],
    summary="Evaluations of a registration",
)
async def list_evaluations(interest_id: UUID, db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    service = EmrService(db)
    interest = await service.get_interest(interest_id)
    uid = str(current_user.id)
    if not (is_admin(current_user) or interest.user_id == current_user.id or uid in interest.assigned_evaluators):
        raise AuthorizationError("You do not have permission to view these evaluations.")
    evaluations = await service.list_evaluations(interest.id)
    return list_response([EmrEvaluationResponse.model_validate(e) for e in evaluations])


@router.post("/interests/{interest_id}/evaluations", response_model=DataResponse[EmrEvaluationResponse])
async def add_evaluation(
    interest_id: UUID,
    data: EmrEvaluationCreate,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> dict:
    evaluation = await EmrService(db).add_evaluation(interest_id, current_user, data.recommendation, data.comments)
    return {"success": True, "data": EmrEvaluationResponse.model_validate(evaluation)}


@router.patch("/interests/{interest_id}/status", response_model=DataResponse[EmrInterestResponse])
async def update_status(
    interest_id: UUID,
    data: EmrStatusUpdate,
    db: AsyncSessionDep,
    _manager: EmrManager,
) -> dict:
    return _interest(await EmrService(db).update_status(interest_id, data.status, data.admin_remarks))


@router.post("/interests/{interest_id}/endorsement", response_model=DataResponse[EmrInterestResponse])
async def submit_endorsement(
    interest_id: UUID,
    data: EndorsementUpload,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> dict:
    return _interest(await EmrService(db).submit_endorsement(interest_id, current_user, data.endorsement_form_url))


@router.post("/interests/{interest_id}/agency-submission", response_model=DataResponse[EmrInterestResponse])
async def submit_to_agency(
    interest_id: UUID,
    data: AgencySubmission,
    db: AsyncSessionDep,
    current_user: CurrentUser,
) -> dict:
    interest = await EmrService(db).submit_to_agency(
        interest_id,
        current_user,
        data.reference_number,
        data.acknowledgement_url,
    )
    return _interest(interest)


@router.post("/interests/{interest_id}/final-status", response_model=DataResponse[EmrInterestResponse])
async def update_final_status(
    interest_id: UUID,
    data: FinalStatusUpdate,
    db: AsyncSessionDep,
    _super_admin: SuperAdminUser,
) -> dict:
    interest = await EmrService(db).update_final_status(
        interest_id,
        EmrInterestStatus(data.status),
        data.proof_data_url,
        data.file_name,
    )
    return _interest(interest)


@router.post(
    "/sanctioned",
    response_model=DataResponse[EmrInterestResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Add an already sanctioned EMR project",
)
async def add_sanctioned_project(data: SanctionedProjectCreate, db: AsyncSessionDep, _uploader: BulkUploader) -> dict:
    return _interest(await EmrService(db).add_sanctioned_project(data))


@router.post(
    "/sanctioned/bulk-upload",
    response_model=BulkUploadResult,
    summary="Import sanctioned EMR projects from a sheet",
)
async def bulk_upload_sanctioned(
    request: BulkUploadRequest,
    db: AsyncSessionDep,
    _uploader: BulkUploader,
) -> BulkUploadResult:
    content, _ = decode_data_url(request.file_data_url)
    return await EmrService(db).bulk_upload_sanctioned_projects(content)
