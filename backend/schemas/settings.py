"""
System settings schemas.
"""
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from backend.models.enums import ClaimType


class ApproverStage(BaseModel):
    stage: int = Field(..., ge=1, le=4)
    email: EmailStr


class SystemSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    imr_evaluation_days: int
    dnd_email: Optional[str] = None
    incentive_approvers: list[ApproverStage] = Field(default_factory=list)
    incentive_approval_workflows: dict[str, list[int]] = Field(default_factory=dict)
    updated_at: datetime


class SystemSettingsUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    imr_evaluation_days: Optional[int] = Field(None, ge=0, le=30)
    dnd_email: Optional[EmailStr] = None
    incentive_approvers: Optional[list[ApproverStage]] = None
    incentive_approval_workflows: Optional[dict[ClaimType, list[int]]] = None

    @field_validator("incentive_approval_workflows")
    @classmethod
    def validate_stages(cls, v: Optional[dict[ClaimType, list[int]]]) -> Optional[dict[ClaimType, list[int]]]:
        if v is None:
            return v
        for claim_type, stages in v.items():
            if any(stage < 1 or stage > 4 for stage in stages):
                raise ValueError(f"Workflow stages for {claim_type.value} must be between 1 and 4")
        return {claim_type: sorted(set(stages)) for claim_type, stages in v.items()}


class ActivityLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    level: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
