"""
Annual Research Performance Score (ARPS) response schemas.
"""
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ArpsGrade(str, Enum):
    SEE = "SEE"  # Significantly Exceeds Expectations
    EE = "EE"  # Exceeds Expectations
    ME = "ME"  # Meets Expectations
    DME = "DME"  # Does not Meet Expectations


class ArpsContribution(BaseModel):
    """A single claim or EMR project that added to a category score."""

    id: UUID
    reference: Optional[str] = Field(None, description="Claim id or EMR interest id")
    title: str
    score: float


class ArpsCategoryScore(BaseModel):
    raw: float = 0.0
    weighted: float = 0.0
    final: float = Field(0.0, description="Weighted score after the category cap")
    contributing_items: list[ArpsContribution] = Field(default_factory=list)


class ArpsResult(BaseModel):
    user_id: UUID
    year: int
    publications: ArpsCategoryScore
    patents: ArpsCategoryScore
    emr: ArpsCategoryScore
    total_arps: float
    grade: ArpsGrade


class ArpsResponse(BaseModel):
    success: bool = True
    data: ArpsResult
