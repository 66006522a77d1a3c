"""
Security utilities: password hashing, access tokens and invitation tokens.
"""

import logging
import secrets
import uuid
from datetime import timedelta
from typing import Any, Optional

import bcrypt
import jwt

from core.config import settings
from core.utils.datetime import now

logger = logging.getLogger(__name__)

INVITATION_TOKEN_BYTES = 32


class InvalidTokenError(Exception):
    """Raised when an access token cannot be decoded or has expired."""


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a password against a bcrypt hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(
    user_id: uuid.UUID,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed JWT access token.

    Args:
        user_id: Subject of the token
        role: User role, carried for clients
        expires_delta: Lifetime (defaults to the configured expiry)

    Returns:
        Encoded JWT
    """
    issued_at = now()
    expires_at = issued_at + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": issued_at,
        "exp": expires_at,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Raises:
        InvalidTokenError: If the token is malformed, badly signed or expired
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except jwt.PyJWTError as e:
        logger.info(f"Rejected access token: {e}")
        raise InvalidTokenError(str(e))
    if "sub" not in payload:
        raise InvalidTokenError("Token has no subject")
    return payload


def generate_invitation_token() -> str:
    """Generate a random 64-character hex invitation token."""
    return secrets.token_hex(INVITATION_TOKEN_BYTES)
