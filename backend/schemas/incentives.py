"""
Incentive claim schemas.
"""
from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from backend.models.enums import ClaimStatus, ClaimType


class ClaimAuthor(BaseModel):
    """An author on the claimed work; internal authors carry a portal uid."""

    uid: Optional[UUID] = None
    name: str
    email: EmailStr
    role: str = Field(..., description="First Author, Corresponding Author, Co-Author, Presenting Author, ...")
    is_external: bool = False


class IncentiveClaimFields(BaseModel):
    """Type-specific fields shared by create requests and responses."""

    # Research papers
    paper_title: Optional[str] = None
    journal_name: Optional[str] = None
    doi: Optional[str] = None
    publication_type: Optional[str] = None
    journal_classification: Optional[str] = None
    index_type: Optional[str] = None
    wos_type: Optional[str] = None
    author_type: Optional[str] = None
    author_position: Optional[str] = None
    is_pu_name_in_publication: Optional[bool] = None

    # Books
    book_title: Optional[str] = None
    publication_title: Optional[str] = None
    book_application_type: Optional[Literal["Book", "Book Chapter"]] = None
    is_scopus_indexed: Optional[bool] = None
    publisher_type: Optional[Literal["National", "International"]] = None
    author_role: Optional[Literal["Author", "Editor"]] = None
    book_total_pages: Optional[int] = Field(None, ge=0)
    book_chapter_pages: Optional[int] = Field(None, ge=0)
    chapters_in_same_book: Optional[int] = Field(None, ge=0)

    # Patents
    patent_title: Optional[str] = None
    current_status: Optional[str] = None
    patent_locale: Optional[Literal["National", "International"]] = None
    patent_filed_in_pu_name: Optional[bool] = None
    is_pu_sole_applicant: Optional[bool] = None

    # Conferences
    conference_paper_title: Optional[str] = None
    conference_name: Optional[str] = None
    conference_type: Optional[str] = None
    conference_venue: Optional[str] = None
    conference_mode: Optional[Literal["Online", "Offline"]] = None
    presentation_type: Optional[str] = None
    online_presentation_order: Optional[str] = None
    organizer_name: Optional[str] = None
    registration_fee: Optional[float] = Field(None, ge=0)
    travel_fare: Optional[float] = Field(None, ge=0)

    # Memberships
    professional_body_name: Optional[str] = None
    membership_number: Optional[str] = None
    membership_amount_paid: Optional[float] = Field(None, ge=0)

    # APC
    apc_paper_title: Optional[str] = None
    apc_indexing_status: list[str] = Field(default_factory=list)
    apc_q_rating: Optional[str] = None


class IncentiveClaimCreate(IncentiveClaimFields):
    """Submit a new claim, or save it as a draft."""

    claim_type: ClaimType
    is_draft: bool = False
    authors: list[ClaimAuthor] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)


class IncentiveClaimResponse(IncentiveClaimFields):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    claim_id: Optional[str] = None
    claim_type: ClaimType
    status: ClaimStatus
    title: str
    user_id: UUID
    user_name: str
    user_email: str
    faculty: Optional[str] = None
    submission_date: datetime
    authors: list[dict[str, Any]] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)
    calculated_incentive: Optional[float] = None
    final_approved_amount: Optional[float] = None
    approvals: list[Optional[dict[str, Any]]] = Field(default_factory=list)


class ClaimActionRequest(BaseModel):
    """An approver's decision at one stage (``stage_index`` 0 is stage 1)."""

    action: Literal["approve", "reject", "verify"]
    stage_index: int = Field(..., ge=0, le=3)
    amount: Optional[float] = Field(None, ge=0)
    comments: Optional[str] = None
    verified_fields: dict[str, bool] = Field(default_factory=dict)


class ClaimStatusUpdate(BaseModel):
    status: ClaimStatus


class ClaimSubmitResult(BaseModel):
    success: bool = True
    id: UUID
    claim_id: Optional[str] = None
    status: ClaimStatus
    calculated_incentive: Optional[float] = None
