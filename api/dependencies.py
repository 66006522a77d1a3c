"""FastAPI dependencies for dependency injection."""

from typing import Optional
import uuid

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from api.services import Services
from api.services.candidates import RequestMeta
from core.middleware.logging import get_client_ip
from core.security import InvalidTokenError, decode_access_token
from database.engine import get_db
from database.models.users import User


security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Authentication required") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    Get current authenticated user from the bearer token.
    This is optional - returns None if no token was sent.

    Raises:
        HTTPException: 401 if a token was sent but is invalid
    """
    if credentials is None:
        return None

    try:
        payload = decode_access_token(credentials.credentials)
        user_id = uuid.UUID(str(payload["sub"]))
    except (InvalidTokenError, ValueError):
        raise _unauthorized("Invalid or expired token")

    user = await db.get(User, user_id)
    if user is None:
        raise _unauthorized("Invalid or expired token")
    return user


async def require_authenticated_user(
    current_user: Optional[User] = Depends(get_current_user),
) -> User:
    """Require user to be authenticated."""
    if not current_user:
        raise _unauthorized()
    return current_user


async def require_active_user(
    current_user: User = Depends(require_authenticated_user),
) -> User:
    """Require user to be active."""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account",
        )
    return current_user


def get_services(request: Request) -> Services:
    """Get the service collaborators built at start-up."""
    return request.app.state.services


def get_request_meta(request: Request) -> RequestMeta:
    """Client address and user agent, as stored on profile views."""
    return RequestMeta(
        ip_address=get_client_ip(request, mask=False),
        user_agent=request.headers.get("user-agent"),
    )

