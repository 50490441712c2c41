"""
Authentication API Endpoints
User registration, login and current-user info.
"""
import logging
from datetime import timedelta

from fastapi import APIRouter, status

from backend.api.deps import AsyncSessionDep, CurrentUser, create_access_token
from backend.core.config import settings
from backend.core.rate_limit import RateLimitAuth
from backend.models import User
from backend.schemas.auth import Token, UserCreate, UserLogin, UserResponse
from backend.services.users import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _token_for(user: User) -> Token:
    access_token = create_access_token(
        data={"sub": str(user.id), "email": user.email},
        expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
    )
    return Token(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.post(
    "/register",
    response_model=Token,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
    description="Create a new portal account; module access is seeded from the role defaults.",
)
async def register(
    user_data: UserCreate,
    db: AsyncSessionDep,
    _rate_limit: RateLimitAuth = None,
) -> Token:
    """
    Register a new user account.

    - **email**: Institutional email address (used for login)
    - **password**: Minimum 8 characters
    - **role**: Faculty, Evaluator, CRO, admin or Super-admin
    """
    user = await UserService(db).register(user_data)
    logger.info(f"User registered: {user.id}")
    return _token_for(user)


@router.post(
    "/login",
    response_model=Token,
    summary="Login user",
    description="Authenticate user and return a JWT access token.",
)
async def login(
    credentials: UserLogin,
    db: AsyncSessionDep,
    _rate_limit: RateLimitAuth = None,
) -> Token:
    user = await UserService(db).authenticate(credentials.email, credentials.password)
    return _token_for(user)


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
)
async def get_me(current_user: CurrentUser) -> UserResponse:
    return UserResponse.model_validate(current_user)
