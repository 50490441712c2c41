"""
ARPS (Annual Research Performance Score) endpoint.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from backend.api.deps import AsyncSessionDep, CurrentUser
from backend.core.exceptions import AuthorizationError, PortalError
from backend.models import UserRole
from backend.schemas.arps import ArpsResponse
from backend.services.arps import ArpsService
from backend.utils import LocalCalendar

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/arps", tags=["ARPS"])

ARPS_VIEWER_ROLES = {UserRole.ADMIN, UserRole.SUPER_ADMIN, UserRole.CRO}


@router.get("/{user_id}", response_model=ArpsResponse, summary="Calculate a user's ARPS for a year")
async def calculate_arps(
    user_id: UUID,
    db: AsyncSessionDep,
    current_user: CurrentUser,
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Calendar year; defaults to the current one"),
) -> ArpsResponse:
    if current_user.id != user_id and UserRole(current_user.role) not in ARPS_VIEWER_ROLES:
        raise AuthorizationError("You do not have permission to view this ARPS score.")

    target_year = year or LocalCalendar.today().year
    try:
        result = await ArpsService(db).calculate(user_id, target_year)
    except PortalError:
        raise
    except Exception as e:
        logger.exception(f"ARPS calculation failed for {user_id} ({target_year}): {e}")
        raise PortalError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to calculate ARPS score.") from e
    return ArpsResponse(data=result)
