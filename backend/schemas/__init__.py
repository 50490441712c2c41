"""
RDC Portal Pydantic Schemas
Request/Response models for API endpoints.
"""
from backend.schemas.auth import (
    BankDetails,
    ModulesUpdate,
    ProfileUpdate,
    RoleUpdate,
    StaffProfile,
    Token,
    TokenData,
    UserCreate,
    UserLogin,
    UserResponse,
)
from backend.schemas.common import ActionResult, DataResponse, EmailOutcome, ListResponse
from backend.schemas.emr import (
    EmrEvaluationCreate,
    EmrInterestResponse,
    EmrMeetingDetails,
    FundingCallCreate,
    FundingCallResponse,
    InterestRegistration,
)
from backend.schemas.incentives import (
    ClaimActionRequest,
    IncentiveClaimCreate,
    IncentiveClaimResponse,
)
from backend.schemas.notifications import NotificationListResponse, NotificationResponse
from backend.schemas.projects import (
    EvaluationCreate,
    GrantUpdate,
    MeetingDetails,
    ProjectResponse,
    ProjectSubmission,
)
from backend.schemas.recruitment import ApplicationCreate, PostingCreate, PostingResponse
from backend.schemas.reminders import CronResponse, ReminderRunResult
from backend.schemas.settings import SystemSettingsResponse, SystemSettingsUpdate

__all__ = [
    # Auth
    "BankDetails",
    "ModulesUpdate",
    "ProfileUpdate",
    "RoleUpdate",
    "StaffProfile",
    "Token",
    "TokenData",
    "UserCreate",
    "UserLogin",
    "UserResponse",
    # Common
    "ActionResult",
    "DataResponse",
    "EmailOutcome",
    "ListResponse",
    # EMR
    "EmrEvaluationCreate",
    "EmrInterestResponse",
    "EmrMeetingDetails",
    "FundingCallCreate",
    "FundingCallResponse",
    "InterestRegistration",
    # Incentives
    "ClaimActionRequest",
    "IncentiveClaimCreate",
    "IncentiveClaimResponse",
    # Notifications
    "NotificationListResponse",
    "NotificationResponse",
    # Projects
    "EvaluationCreate",
    "GrantUpdate",
    "MeetingDetails",
    "ProjectResponse",
    "ProjectSubmission",
    # Recruitment
    "ApplicationCreate",
    "PostingCreate",
    "PostingResponse",
    # Reminders
    "CronResponse",
    "ReminderRunResult",
    # Settings
    "SystemSettingsResponse",
    "SystemSettingsUpdate",
]
