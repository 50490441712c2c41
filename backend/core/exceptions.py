"""
Custom Exception Classes for the RDC Portal API.

Every service raises one of these; the handlers in ``backend.main`` turn
them into ``{"success": false, "error": "..."}`` responses.
"""
from typing import Optional

from fastapi import HTTPException, status


class PortalError(HTTPException):
    """Base class for errors surfaced to the caller as a tagged result."""

    def __init__(self, status_code: int, message: str):
        super().__init__(status_code=status_code, detail=message)

    @property
    def message(self) -> str:
        return str(self.detail)


class NotFoundError(PortalError):
    """Exception raised when a requested resource is not found."""

    def __init__(self, resource: str, id: Optional[str] = None, message: Optional[str] = None):
        detail = message or (f"{resource} not found." if not id else f"{resource} not found: {id}")
        super().__init__(status.HTTP_404_NOT_FOUND, detail)


class AuthenticationError(PortalError):
    """Exception raised when credentials are missing or invalid."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, message)


class AuthorizationError(PortalError):
    """Exception raised when a user is not authorized to access a resource."""

    def __init__(self, message: str = "Not authorized to access this resource"):
        super().__init__(status.HTTP_403_FORBIDDEN, message)


class ValidationError(PortalError):
    """Exception raised when request validation fails."""

    def __init__(self, message: str):
        super().__init__(status.HTTP_400_BAD_REQUEST, message)


class ConflictError(PortalError):
    """Exception raised when a resource conflict occurs (e.g., duplicate)."""

    def __init__(self, message: str):
        super().__init__(status.HTTP_409_CONFLICT, message)


class DocumentGenerationError(PortalError):
    """Exception raised when a document template is missing or fails to render."""

    def __init__(self, message: str = "Failed to render the document template."):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


class RateLimitError(PortalError):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, message: str = "Rate limit exceeded. Please try again later.", retry_after: int = 60):
        super().__init__(status.HTTP_429_TOO_MANY_REQUESTS, message)
        self.headers = {"Retry-After": str(retry_after)}
