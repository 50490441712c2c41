"""
IMR project schemas.
"""
from datetime import date, datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from backend.models.enums import MeetingMode, ProjectStatus, Recommendation
from backend.schemas.common import EmailOutcome


class CoPiDetail(BaseModel):
    uid: Optional[UUID] = None
    name: str
    email: Optional[EmailStr] = None


class ProjectSubmission(BaseModel):
    """Create or update a proposal; ``status`` chooses draft or final submission."""

    title: str = Field(..., min_length=1, max_length=1000)
    abstract: Optional[str] = None
    type: Optional[str] = None
    faculty: Optional[str] = None
    institute: Optional[str] = None
    department: Optional[str] = None
    co_pi_details: list[CoPiDetail] = Field(default_factory=list)
    project_duration: Optional[str] = None
    status: Literal["Draft", "Submitted"] = "Draft"


class MeetingDetails(BaseModel):
    date: date
    time: str = Field(..., pattern=r"^\d{1,2}:\d{2}$", description="24h HH:MM, local time")
    venue: str = Field(..., min_length=1)
    mode: MeetingMode = MeetingMode.OFFLINE
    evaluator_ids: list[UUID] = Field(..., min_length=1)


class ScheduleMeetingRequest(BaseModel):
    project_ids: list[UUID] = Field(..., min_length=1)
    meeting: MeetingDetails
    is_mid_term_review: bool = False


class ImrAttendanceRequest(BaseModel):
    project_ids: list[UUID] = Field(..., min_length=1)
    absent_project_ids: list[UUID] = Field(default_factory=list)
    absent_evaluator_ids: list[UUID] = Field(default_factory=list)


class ProjectStatusUpdate(BaseModel):
    status: ProjectStatus
    comments: Optional[str] = None


class EvaluationCreate(BaseModel):
    recommendation: Recommendation
    comments: str = Field(..., min_length=1)


class GrantPhase(BaseModel):
    name: str
    amount: float = Field(..., ge=0)
    status: str = "Pending Disbursement"


class GrantUpdate(BaseModel):
    total_amount: float = Field(..., ge=0)
    phases: list[GrantPhase] = Field(default_factory=list)

    @field_validator("phases")
    @classmethod
    def phases_fit_total(cls, v: list[GrantPhase], info) -> list[GrantPhase]:
        total = info.data.get("total_amount")
        if total is not None and sum(phase.amount for phase in v) > total:
            raise ValueError("Phase amounts exceed the total grant amount.")
        return v


class ProjectFilters(BaseModel):
    status: Optional[ProjectStatus] = None
    faculty: Optional[str] = None
    institute: Optional[str] = None
    pi_id: Optional[UUID] = None


class ProjectEvaluationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    evaluator_id: UUID
    evaluator_name: str
    recommendation: Recommendation
    comments: str
    evaluation_date: datetime


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    abstract: Optional[str] = None
    type: Optional[str] = None
    faculty: Optional[str] = None
    institute: Optional[str] = None
    department: Optional[str] = None
    pi_id: UUID
    pi_name: str
    pi_email: str
    co_pi_ids: list[str] = Field(default_factory=list)
    co_pi_details: list[dict[str, Any]] = Field(default_factory=list)
    status: ProjectStatus
    submission_date: Optional[datetime] = None
    meeting_date: Optional[date] = None
    meeting_details: Optional[dict[str, Any]] = None
    assigned_evaluators: list[str] = Field(default_factory=list)
    evaluated_by: list[str] = Field(default_factory=list)
    has_had_mid_term_review: bool = False
    was_absent: bool = False
    revision_comments: Optional[str] = None
    rejection_comments: Optional[str] = None
    grant: Optional[dict[str, Any]] = None
    project_duration: Optional[str] = None


class ProjectDetailResponse(ProjectResponse):
    evaluations: list[ProjectEvaluationResponse] = Field(default_factory=list)


class ScheduleMeetingResult(BaseModel):
    success: bool = True
    scheduled: int
    emails: list[EmailOutcome] = Field(default_factory=list)
