"""
User management endpoints: profile setup, staff lookup, module access and roles.
"""
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query

from backend.api.deps import AdminUser, AsyncSessionDep, CurrentUser, SuperAdminUser
from backend.core.rate_limit import RateLimitAuth
from backend.models import UserRole
from backend.schemas.auth import (
    ModulesUpdate,
    ProfileUpdate,
    RoleUpdate,
    StaffProfile,
    UserExistsResponse,
    UserResponse,
)
from backend.schemas.common import DataResponse, ListResponse, list_response
from backend.services.users import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("", response_model=ListResponse[UserResponse], summary="List users")
async def list_users(
    db: AsyncSessionDep,
    _admin: AdminUser,
    role: Optional[UserRole] = Query(None, description="Only users holding this role"),
) -> dict:
    users = await UserService(db).list_users(role)
    return list_response([UserResponse.model_validate(u) for u in users])


@router.get(
    "/check-exists",
    response_model=UserExistsResponse,
    summary="Check whether an email or MIS id is registered",
)
async def check_exists(
    db: AsyncSessionDep,
    email: Optional[str] = Query(None),
    mis_id: Optional[str] = Query(None),
    _rate_limit: RateLimitAuth = None,
) -> UserExistsResponse:
    return UserExistsResponse(exists=await UserService(db).exists(email=email, mis_id=mis_id))


@router.get("/staff", response_model=DataResponse[StaffProfile], summary="Look up a staff member")
async def find_staff(
    db: AsyncSessionDep,
    _user: CurrentUser,
    email: Optional[str] = Query(None),
    mis_id: Optional[str] = Query(None),
) -> dict:
    staff = await UserService(db).find_staff(email=email, mis_id=mis_id)
    return {"success": True, "data": StaffProfile.model_validate(staff)}


@router.patch("/me/profile", response_model=DataResponse[UserResponse], summary="Complete or edit own profile")
async def update_profile(data: ProfileUpdate, db: AsyncSessionDep, current_user: CurrentUser) -> dict:
    user = await UserService(db).update_profile(current_user, data)
    return {"success": True, "data": UserResponse.model_validate(user)}


@router.put("/{user_id}/modules", response_model=DataResponse[UserResponse], summary="Set a user's modules")
async def update_modules(
    user_id: UUID,
    data: ModulesUpdate,
    db: AsyncSessionDep,
    super_admin: SuperAdminUser,
) -> dict:
    user = await UserService(db).update_modules(user_id, data.allowed_modules)
    logger.info(f"Modules for {user.id} updated by {super_admin.id}")
    return {"success": True, "data": UserResponse.model_validate(user)}


@router.put("/{user_id}/role", response_model=DataResponse[UserResponse], summary="Change a user's role")
async def update_role(
    user_id: UUID,
    data: RoleUpdate,
    db: AsyncSessionDep,
    super_admin: SuperAdminUser,
) -> dict:
    user = await UserService(db).update_role(user_id, data.role)
    logger.info(f"Role for {user.id} set to {data.role.value} by {super_admin.id}")
    return {"success": True, "data": UserResponse.model_validate(user)}
