"""
Status and role enumerations.

These are the single source of truth for every status string stored in the
database; services and schemas import them from here.
"""
import enum


class UserRole(str, enum.Enum):
    """Portal roles, from least to most privileged."""

    FACULTY = "faculty"
    EVALUATOR = "Evaluator"
    CRO = "CRO"
    ADMIN = "admin"
    SUPER_ADMIN = "Super-admin"


class ProjectStatus(str, enum.Enum):
    """Lifecycle of an intramural (IMR) project."""

    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    UNDER_REVIEW = "Under Review"
    REVISION_NEEDED = "Revision Needed"
    RECOMMENDED = "Recommended"
    NOT_RECOMMENDED = "Not Recommended"
    SANCTIONED = "Sanctioned"
    IN_PROGRESS = "In Progress"
    PENDING_COMPLETION_APPROVAL = "Pending Completion Approval"
    COMPLETED = "Completed"


class Recommendation(str, enum.Enum):
    """Evaluator verdict, shared by IMR and EMR evaluations."""

    RECOMMENDED = "Recommended"
    NOT_RECOMMENDED = "Not Recommended"
    REVISION_NEEDED = "Revision Needed"


class MeetingMode(str, enum.Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"


class FundingCallStatus(str, enum.Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    MEETING_SCHEDULED = "Meeting Scheduled"


class EmrInterestStatus(str, enum.Enum):
    """Lifecycle of a registration of interest in an EMR funding call."""

    REGISTERED = "Registered"
    PPT_SUBMITTED = "PPT Submitted"
    REVISION_SUBMITTED = "Revision Submitted"
    EVALUATION_PENDING = "Evaluation Pending"
    EVALUATION_DONE = "Evaluation Done"
    RECOMMENDED = "Recommended"
    NOT_RECOMMENDED = "Not Recommended"
    REVISION_NEEDED = "Revision Needed"
    AWAITING_RESCHEDULING = "Awaiting Rescheduling"
    ENDORSEMENT_SUBMITTED = "Endorsement Submitted"
    ENDORSEMENT_SIGNED = "Endorsement Signed"
    SUBMITTED_TO_AGENCY = "Submitted to Agency"
    SANCTIONED = "Sanctioned"
    NOT_SANCTIONED = "Not Sanctioned"
    PROCESS_COMPLETE = "Process Complete"


class ClaimType(str, enum.Enum):
    RESEARCH_PAPERS = "Research Papers"
    PATENTS = "Patents"
    CONFERENCE = "Conference Presentations"
    BOOKS = "Books"
    MEMBERSHIP = "Membership of Professional Bodies"
    APC = "Seed Money for APC"
    GENERAL = "General"

    @property
    def acronym(self) -> str:
        return CLAIM_TYPE_ACRONYMS[self]


CLAIM_TYPE_ACRONYMS = {
    ClaimType.RESEARCH_PAPERS: "PAPER",
    ClaimType.PATENTS: "PATENT",
    ClaimType.CONFERENCE: "CONFERENCE",
    ClaimType.BOOKS: "BOOK",
    ClaimType.MEMBERSHIP: "MEMBERSHIP",
    ClaimType.APC: "APC",
    ClaimType.GENERAL: "GENERAL",
}


class ClaimStatus(str, enum.Enum):
    DRAFT = "Draft"
    PENDING = "Pending"
    PENDING_STAGE_1 = "Pending Stage 1 Approval"
    PENDING_STAGE_2 = "Pending Stage 2 Approval"
    PENDING_STAGE_3 = "Pending Stage 3 Approval"
    PENDING_STAGE_4 = "Pending Stage 4 Approval"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    SUBMITTED_TO_ACCOUNTS = "Submitted to Accounts"
    PAYMENT_COMPLETED = "Payment Completed"

    @classmethod
    def pending_stage(cls, stage: int) -> "ClaimStatus":
        return cls(f"Pending Stage {stage} Approval")


# Claims in these states count towards ARPS and payment sheets
APPROVED_CLAIM_STATUSES = (
    ClaimStatus.ACCEPTED,
    ClaimStatus.SUBMITTED_TO_ACCOUNTS,
    ClaimStatus.PAYMENT_COMPLETED,
)


class AuthorRole(str, enum.Enum):
    FIRST = "First Author"
    CORRESPONDING = "Corresponding Author"
    FIRST_AND_CORRESPONDING = "First & Corresponding Author"
    CO_AUTHOR = "Co-Author"

    @property
    def is_main(self) -> bool:
        return self is not AuthorRole.CO_AUTHOR


class RecruitmentStatus(str, enum.Enum):
    PENDING_APPROVAL = "Pending Approval"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ActivityLevel(str, enum.Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
