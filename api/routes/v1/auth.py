"""
Authentication endpoints.

Provides:
- Email/password login returning a bearer access token
- Current user lookup
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, EmailStr

from api.dependencies import require_active_user
from core.config import settings
from core.security import create_access_token, verify_password
from database.engine import get_db
from database.models.users import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


# ==================== Request/Response Models ==================== #

class LoginRequest(BaseModel):
    """User login request."""
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    """Authentication response."""
    access_token: str
    token_type: str
    expires_in: int
    user: dict


def user_to_dict(user: User) -> dict:
    """Convert user model to dictionary."""
    return {
        "id": str(user.id),
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role.value,
        "is_verified": user.is_verified,
        "is_active": user.is_active,
    }


# ==================== Endpoints ==================== #

@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login",
    description="Exchange email and password for a bearer access token.",
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User).where(User.email == payload.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not verify_password(payload.password, user.password_hash):
        logger.info("Failed login attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    token = create_access_token(user.id, user.role.value)
    logger.info(f"User {user.id} logged in")
    return AuthResponse(
        access_token=token,
        token_type="bearer",
        expires_in=settings.access_token_expire_minutes * 60,
        user=user_to_dict(user),
    )


@router.get(
    "/me",
    summary="Current User",
    description="Get the authenticated user.",
)
async def get_me(current_user: User = Depends(require_active_user)):
    return user_to_dict(current_user)
