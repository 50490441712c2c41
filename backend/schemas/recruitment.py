"""
Project staff recruitment schemas.
"""
from datetime import date, datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from backend.models.enums import RecruitmentStatus


class PostingCreate(BaseModel):
    project_name: str = Field(..., min_length=1)
    position_title: str = Field(..., min_length=1)
    position_type: str = Field(..., description="e.g. JRF, SRF, Project Associate")
    job_description: str = Field(..., min_length=1)
    qualifications: str = Field(..., min_length=1)
    salary: Optional[str] = None
    application_deadline: date
    target_departments: list[str] = Field(default_factory=list)


class PostingStatusUpdate(BaseModel):
    status: Literal["Approved", "Rejected"]


class PostingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_name: str
    position_title: str
    position_type: str
    job_description: str
    qualifications: str
    salary: Optional[str] = None
    application_deadline: date
    target_departments: list[str] = Field(default_factory=list)
    posted_by_id: UUID
    posted_by_name: str
    status: RecruitmentStatus
    approved_at: Optional[datetime] = None
    created_at: datetime


class ApplicationCreate(BaseModel):
    applicant_name: str = Field(..., min_length=1)
    applicant_email: EmailStr
    applicant_phone: str = Field(..., min_length=5, max_length=30)
    applicant_mis_id: Optional[str] = None
    department: Optional[str] = None
    institute: Optional[str] = None
    cv_data_url: str = Field(..., min_length=1)
    cv_file_name: str = "cv.pdf"
    cover_letter_data_url: Optional[str] = None
    cover_letter_file_name: str = "cover_letter.pdf"


class ApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recruitment_id: UUID
    applicant_name: str
    applicant_email: str
    applicant_phone: str
    applicant_mis_id: Optional[str] = None
    department: Optional[str] = None
    institute: Optional[str] = None
    cv_url: str
    cover_letter_url: Optional[str] = None
    applied_at: datetime
