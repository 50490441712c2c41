"""
User accounts: registration, authentication, profile setup and module access.
"""
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.deps import get_password_hash, verify_password
from backend.core.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from backend.core.permissions import get_default_modules_for_role, unknown_modules
from backend.models import ActivityLevel, User, UserRole
from backend.schemas.auth import ProfileUpdate, UserCreate
from backend.services.activity_log import ActivityLogService
from backend.services.notifications import NotificationService

logger = structlog.get_logger(__name__)

PROFILE_REQUIRED_FIELDS = ("faculty", "institute", "department")


def is_profile_complete(user: User) -> bool:
    return all(getattr(user, field) for field in PROFILE_REQUIRED_FIELDS)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.activity = ActivityLogService(db)

    async def get(self, user_id: Optional[UUID]) -> User:
        if user_id is None:
            raise ValidationError("User ID is required.")
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", message="User not found.")
        return user

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
        return result.scalar_one_or_none()

    async def get_by_mis_id(self, mis_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.mis_id == mis_id.strip()))
        return result.scalars().first()

    async def exists(self, email: Optional[str] = None, mis_id: Optional[str] = None) -> bool:
        """True if any user matches the email or the MIS id."""
        conditions = []
        if email:
            conditions.append(func.lower(User.email) == email.strip().lower())
        if mis_id:
            conditions.append(User.mis_id == mis_id.strip())
        if not conditions:
            return False
        result = await self.db.execute(select(User.id).where(or_(*conditions)).limit(1))
        return result.first() is not None

    async def list_users(self, role: Optional[UserRole] = None) -> list[User]:
        query = select(User)
        if role is not None:
            query = query.where(User.role == role.value)
        result = await self.db.execute(query.order_by(User.name))
        return list(result.scalars().all())

    async def find_staff(self, email: Optional[str] = None, mis_id: Optional[str] = None) -> User:
        user = None
        if email:
            user = await self.get_by_email(email)
        if user is None and mis_id:
            user = await self.get_by_mis_id(mis_id)
        if user is None:
            raise NotFoundError("User", message="Staff member not found.")
        return user

    # =========================================================================
    # Registration and login
    # =========================================================================

    async def register(self, data: UserCreate) -> User:
        if await self.get_by_email(data.email) is not None:
            raise ConflictError("Email already registered")

        user = User(
            email=data.email.lower(),
            password_hash=get_password_hash(data.password),
            name=data.name,
            role=data.role.value,
            designation=data.designation,
            faculty=data.faculty,
            institute=data.institute,
            department=data.department,
            mis_id=data.mis_id,
            phone_number=data.phone_number,
            allowed_modules=get_default_modules_for_role(data.role, data.designation),
        )
        user.profile_complete = is_profile_complete(user)
        self.db.add(user)
        await self.db.flush()

        await NotificationService(self.db).notify_role(
            UserRole.SUPER_ADMIN,
            f"New user registered: {user.name} ({data.role.value})",
        )
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "User registered",
            {"user_id": str(user.id), "role": data.role.value},
        )
        return user

    async def authenticate(self, email: str, password: str) -> User:
        user = await self.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise AuthenticationError("Incorrect email or password")
        return user

    # =========================================================================
    # Profile and access
    # =========================================================================

    async def update_profile(self, user: User, data: ProfileUpdate) -> User:
        """Apply profile setup fields; the profile is complete once affiliation is filled in."""
        changes = data.model_dump(exclude_unset=True, exclude={"bank_details"})
        if changes.get("mis_id") and changes["mis_id"] != user.mis_id:
            other = await self.get_by_mis_id(changes["mis_id"])
            if other is not None and other.id != user.id:
                raise ConflictError("This MIS ID is already registered to another user.")

        for field, value in changes.items():
            setattr(user, field, value)
        if data.bank_details is not None:
            user.bank_details = data.bank_details.model_dump()
        user.profile_complete = is_profile_complete(user)
        await self.db.flush()
        return user

    async def update_modules(self, user_id: Optional[UUID], modules: list[str]) -> User:
        unknown = unknown_modules(modules)
        if unknown:
            raise ValidationError(f"Unknown modules: {', '.join(unknown)}")

        user = await self.get(user_id)
        user.allowed_modules = list(dict.fromkeys(modules))
        await self.db.flush()
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "User modules updated",
            {"user_id": str(user.id), "modules": user.allowed_modules},
        )
        return user

    async def update_role(self, user_id: Optional[UUID], role: UserRole) -> User:
        """Change role and reset module access to the new role's defaults."""
        user = await self.get(user_id)
        user.role = role.value
        user.allowed_modules = get_default_modules_for_role(role, user.designation)
        await self.db.flush()
        await self.activity.log_activity(
            ActivityLevel.INFO,
            "User role updated",
            {"user_id": str(user.id), "role": role.value},
        )
        return user
