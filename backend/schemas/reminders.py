"""
Scheduled reminder job schemas.
"""
from typing import Optional

from pydantic import BaseModel, Field

from backend.schemas.common import EmailOutcome


class ReminderRunResult(BaseModel):
    """Outcome of one reminder job's email fan-out."""

    job: str
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    outcomes: list[EmailOutcome] = Field(default_factory=list)
    note: Optional[str] = Field(None, description="Why the job had nothing to do, when it says more than the default")

    @property
    def attempted(self) -> int:
        return self.sent + self.failed + self.skipped

    def summary(self) -> str:
        if self.note:
            return self.note
        if self.attempted == 0:
            return "No reminders to send."
        return f"Sent {self.sent} reminders."


class CronResponse(BaseModel):
    success: bool = True
    message: str
    sent: int = 0
    failed: int = 0
    skipped: int = 0

    @classmethod
    def from_result(cls, result: ReminderRunResult) -> "CronResponse":
        return cls(message=result.summary(), sent=result.sent, failed=result.failed, skipped=result.skipped)
