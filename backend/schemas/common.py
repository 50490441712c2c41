"""
Common response envelopes.

Every action endpoint answers ``{"success": true, ...}``; failures are
rendered as ``{"success": false, "error": "..."}`` by the exception handlers.
"""
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ActionResult(BaseModel):
    """Tagged result of a create/update/delete action."""

    success: bool = Field(default=True, description="Whether the action completed")
    message: Optional[str] = Field(None, description="Human readable outcome")
    error: Optional[str] = Field(None, description="Error message when success is false")


class DataResponse(ActionResult, Generic[T]):
    """Action result carrying a single resource."""

    data: T


class ListResponse(ActionResult, Generic[T]):
    """Action result carrying a list of resources."""

    data: List[T] = Field(default_factory=list)
    total: int = 0


class EmailOutcome(BaseModel):
    """Result of one email in a fan-out."""

    to_email: str
    status: str
    error: Optional[str] = None

    @classmethod
    def from_status(cls, status) -> "EmailOutcome":
        return cls(to_email=status.to_email, status=status.status.value, error=status.error_message)


def list_response(items: list) -> dict:
    return {"success": True, "data": items, "total": len(items)}


__all__ = ["ActionResult", "DataResponse", "EmailOutcome", "ListResponse", "list_response"]
