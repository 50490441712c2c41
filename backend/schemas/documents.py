"""
Generated document schemas.
"""
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from backend.schemas.projects import GrantPhase


class DocumentResult(BaseModel):
    """A rendered document, base64 encoded."""

    success: bool = True
    file_data: str = Field(..., description="Base64 encoded file contents")
    file_name: str


class OfficeNotingRequest(BaseModel):
    project_duration: str = Field(..., min_length=1)
    phases: list[GrantPhase] = Field(default_factory=list, max_length=4)


class PaymentSheetRequest(BaseModel):
    claim_ids: list[UUID] = Field(..., min_length=1)
    remarks: dict[str, str] = Field(default_factory=dict, description="Remarks keyed by claim id")
    reference_number: str = Field(..., min_length=1)
    file_name: Optional[str] = None
