"""
Email delivery models.
Pydantic models for outgoing messages and their delivery outcome.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class DeliveryState(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"  # DND address or email not configured


class EmailContent(BaseModel):
    """Rendered email ready for a channel."""

    subject: str = Field(..., max_length=200)
    body_html: str
    body_text: str
    from_email: str
    from_name: str
    to_email: str
    to_name: Optional[str] = None
    cc: list[str] = Field(default_factory=list)
    reply_to: Optional[str] = None
    category: str = "rdc_portal"


class DeliveryStatus(BaseModel):
    """Outcome of one send attempt sequence."""

    delivery_id: UUID = Field(default_factory=uuid4)
    to_email: str
    status: DeliveryState = DeliveryState.PENDING
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    provider_message_id: Optional[str] = None
    retry_count: int = 0

    @property
    def ok(self) -> bool:
        """Sent, or deliberately not sent."""
        return self.status in (DeliveryState.SENT, DeliveryState.SKIPPED)
