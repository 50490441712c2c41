"""
FastAPI Dependencies
Shared dependencies for authentication, authorization and database access.
"""
import hmac
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.core.config import settings
from backend.core.exceptions import AuthenticationError, AuthorizationError
from backend.core.permissions import has_module
from backend.database import get_db
from backend.models import User, UserRole
from backend.schemas.auth import TokenData

# =============================================================================
# Password Hashing
# =============================================================================

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password for storage."""
    return pwd_context.hash(password)


# =============================================================================
# JWT Token Management
# =============================================================================

ALGORITHM = "HS256"

security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> TokenData:
    """Decode and validate a JWT token. Raises JWTError when invalid or expired."""
    payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    user_id = payload.get("sub")
    if user_id is None:
        raise JWTError("Token missing subject")
    return TokenData(
        user_id=UUID(user_id),
        email=payload.get("email"),
        exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
    )


# =============================================================================
# Database Dependency
# =============================================================================

AsyncSessionDep = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# Authentication Dependencies
# =============================================================================


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: AsyncSessionDep,
) -> User:
    """
    Get the current authenticated user from JWT token.

    Raises AuthenticationError (401) if not authenticated.
    """
    if credentials is None:
        raise AuthenticationError("Could not validate credentials")

    try:
        token_data = decode_token(credentials.credentials)
    except (JWTError, ValueError):
        raise AuthenticationError("Could not validate credentials")

    result = await db.execute(select(User).where(User.id == token_data.user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthenticationError("Could not validate credentials")

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


# =============================================================================
# Authorization Dependencies
# =============================================================================


def require_role(*roles: UserRole):
    """Dependency factory: the current user must hold one of ``roles``."""
    allowed = {UserRole(role) for role in roles}

    async def _check(user: CurrentUser) -> User:
        if UserRole(user.role) not in allowed:
            raise AuthorizationError("You do not have permission to perform this action.")
        return user

    return _check


def require_module(module_id: str):
    """Dependency factory: the current user must have ``module_id`` enabled."""

    async def _check(user: CurrentUser) -> User:
        if not has_module(user, module_id):
            raise AuthorizationError(f"Access to '{module_id}' is not enabled for your account.")
        return user

    return _check


AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN, UserRole.SUPER_ADMIN))]
SuperAdminUser = Annotated[User, Depends(require_role(UserRole.SUPER_ADMIN))]


# =============================================================================
# Cron Secret
# =============================================================================


async def verify_cron_secret(request: Request) -> None:
    """
    Gate for the scheduled-job endpoints.

    The shared secret arrives in the ``settings.cron_header_name`` header;
    with no secret configured every call is rejected.
    """
    provided = request.headers.get(settings.cron_header_name)
    expected = settings.cron_secret
    if not expected or not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise AuthenticationError("Unauthorized")
