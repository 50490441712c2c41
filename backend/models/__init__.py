"""
RDC Portal Database Models
SQLAlchemy ORM models for the research administration portal.
"""
from backend.models.base import Base, utcnow
from backend.models.emr import EmrEvaluation, EmrInterest, FundingCall
from backend.models.enums import (
    APPROVED_CLAIM_STATUSES,
    ActivityLevel,
    AuthorRole,
    ClaimStatus,
    ClaimType,
    EmrInterestStatus,
    FundingCallStatus,
    MeetingMode,
    ProjectStatus,
    Recommendation,
    RecruitmentStatus,
    UserRole,
)
from backend.models.incentives import IncentiveClaim
from backend.models.projects import Project, ProjectEvaluation
from backend.models.recruitment import ProjectRecruitment, RecruitmentApplication
from backend.models.system import ActivityLog, Counter, Notification, SystemSettings
from backend.models.users import User

__all__ = [
    "APPROVED_CLAIM_STATUSES",
    "ActivityLevel",
    "ActivityLog",
    "AuthorRole",
    "Base",
    "ClaimStatus",
    "ClaimType",
    "Counter",
    "EmrEvaluation",
    "EmrInterest",
    "EmrInterestStatus",
    "FundingCall",
    "FundingCallStatus",
    "IncentiveClaim",
    "MeetingMode",
    "Notification",
    "Project",
    "ProjectEvaluation",
    "ProjectRecruitment",
    "ProjectStatus",
    "Recommendation",
    "RecruitmentApplication",
    "RecruitmentStatus",
    "SystemSettings",
    "User",
    "UserRole",
    "utcnow",
]
