"""
EMR funding call and interest schemas.
"""
from datetime import date, datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from backend.models.enums import EmrInterestStatus, FundingCallStatus, MeetingMode, Recommendation


class FundingCallCreate(BaseModel):
    title: str = Field(..., min_length=1)
    agency: str = Field(..., min_length=1)
    description: Optional[str] = None
    call_type: Optional[str] = None
    apply_deadline: Optional[datetime] = None
    interest_deadline: datetime
    details_url: Optional[str] = None
    notify_all_staff: bool = False


class FundingCallResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    call_identifier: str
    title: str
    agency: str
    description: Optional[str] = None
    call_type: Optional[str] = None
    apply_deadline: Optional[datetime] = None
    interest_deadline: datetime
    details_url: Optional[str] = None
    status: FundingCallStatus
    is_announced: bool
    meeting_details: Optional[dict[str, Any]] = None
    created_at: datetime


class CoPi(BaseModel):
    uid: Optional[UUID] = None
    name: str
    email: EmailStr


class InterestRegistration(BaseModel):
    """Register interest; admins may register on behalf of ``user_id``."""

    co_pis: list[CoPi] = Field(default_factory=list)
    user_id: Optional[UUID] = None


class EmrMeetingDetails(BaseModel):
    date: date
    time: str = Field(..., pattern=r"^\d{1,2}:\d{2}$")
    venue: str = Field(..., min_length=1)
    ppt_deadline: datetime
    mode: MeetingMode = MeetingMode.OFFLINE
    evaluator_ids: list[UUID] = Field(default_factory=list)


class EmrMeetingRequest(BaseModel):
    meeting: EmrMeetingDetails
    interest_ids: list[UUID] = Field(..., min_length=1)


class PptUpload(BaseModel):
    file_data_url: str
    file_name: str = Field(..., min_length=1)
    is_revision: bool = False


class InterestDeleteRequest(BaseModel):
    remarks: str = Field(..., min_length=1)


class EmrEvaluationCreate(BaseModel):
    recommendation: Recommendation
    comments: str = Field(..., min_length=1)


class EmrStatusUpdate(BaseModel):
    status: EmrInterestStatus
    admin_remarks: Optional[str] = None


class AttendanceRequest(BaseModel):
    absent_interest_ids: list[UUID] = Field(default_factory=list)
    absent_evaluator_ids: list[UUID] = Field(default_factory=list)


class FinalStatusUpdate(BaseModel):
    status: Literal["Sanctioned", "Not Sanctioned"]
    proof_data_url: str
    file_name: str = Field(..., min_length=1)


class SanctionedProjectCreate(BaseModel):
    pi_id: UUID
    co_pis: list[CoPi] = Field(default_factory=list)
    title: str = Field(..., min_length=1)
    agency: str = Field(..., min_length=1)
    sanction_date: Optional[date] = None
    duration_amount: str = Field(..., description="e.g. 'Duration: 3 Years, Amount: 25,00,000'")


class BulkUploadRequest(BaseModel):
    file_data_url: str = Field(..., description="Base64 data URL of an .xlsx workbook")


class BulkUploadFailure(BaseModel):
    row: int
    project_title: str
    pi_name: Optional[str] = None
    error: str


class BulkUploadResult(BaseModel):
    success: bool = True
    successful_count: int = 0
    failures: list[BulkUploadFailure] = Field(default_factory=list)
    linked_user_count: int = 0


class EndorsementUpload(BaseModel):
    endorsement_form_url: str


class AgencySubmission(BaseModel):
    reference_number: str = Field(..., min_length=1)
    acknowledgement_url: Optional[str] = None


class CoPiUpdate(BaseModel):
    co_pis: list[CoPi] = Field(default_factory=list)


class EmrInterestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    interest_id: Optional[str] = None
    call_id: Optional[UUID] = None
    call_title: Optional[str] = None
    agency: Optional[str] = None
    user_id: UUID
    user_name: str
    user_email: str
    faculty: Optional[str] = None
    department: Optional[str] = None
    co_pi_ids: list[str] = Field(default_factory=list)
    co_pi_names: list[str] = Field(default_factory=list)
    co_pi_details: list[dict[str, Any]] = Field(default_factory=list)
    status: EmrInterestStatus
    ppt_url: Optional[str] = None
    ppt_submission_date: Optional[datetime] = None
    meeting_date: Optional[date] = None
    ppt_deadline: Optional[datetime] = None
    meeting_slot: Optional[dict[str, Any]] = None
    assigned_evaluators: list[str] = Field(default_factory=list)
    evaluated_by: list[str] = Field(default_factory=list)
    was_absent: bool = False
    admin_remarks: Optional[str] = None
    registered_by_admin: bool = False
    endorsement_form_url: Optional[str] = None
    endorsement_signed_at: Optional[datetime] = None
    agency_reference_number: Optional[str] = None
    submitted_to_agency_at: Optional[datetime] = None
    sanction_date: Optional[date] = None
    duration_amount: Optional[str] = None
    final_proof_url: Optional[str] = None
    is_bulk_uploaded: bool = False
    registered_at: datetime


class EmrEvaluationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    interest_id: UUID
    evaluator_id: UUID
    evaluator_name: str
    recommendation: Recommendation
    comments: str
    evaluation_date: datetime
