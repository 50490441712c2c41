"""
Backend services for portal workflows and external integrations.
"""

from backend.services.activity_log import ActivityLogService
from backend.services.arps import ArpsService
from backend.services.documents import DocumentService
from backend.services.email import EmailService
from backend.services.emr import EmrService
from backend.services.incentives import IncentiveService
from backend.services.notifications import NotificationService
from backend.services.projects import ProjectService
from backend.services.recruitment import RecruitmentService
from backend.services.reminders import ReminderService
from backend.services.settings import SystemSettingsService
from backend.services.storage import StorageClient, get_storage
from backend.services.users import UserService

__all__ = [
    "ActivityLogService",
    "ArpsService",
    "DocumentService",
    "EmailService",
    "EmrService",
    "IncentiveService",
    "NotificationService",
    "ProjectService",
    "RecruitmentService",
    "ReminderService",
    "StorageClient",
    "SystemSettingsService",
    "UserService",
    "get_storage",
]
