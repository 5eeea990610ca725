"""Authentication utilities."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, Request
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from storefront.config import (
    AUTH_COOKIE_NAME,
    BCRYPT_ROUNDS,
    JWT_ALGORITHM,
    JWT_SECRET,
    TOKEN_EXPIRE_MINUTES,
)
from storefront.errors import AccessDenied, Unauthorized
from storefront.models import Role
from storefront.monitoring import auth_attempts_counter, auth_failures_counter

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


class Identity(BaseModel):
    """Identity carried by a verified session token."""
    id: int
    email: str
    role: str = Role.CUSTOMER.value

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(identity: Identity, expires_minutes: int = TOKEN_EXPIRE_MINUTES) -> str:
    """
    Issue a signed session token for a verified identity.

    Args:
        identity: The authenticated user
        expires_minutes: Token lifetime, one day by default

    Returns:
        Encoded JWT
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    claims = {
        "id": identity.id,
        "email": identity.email,
        "role": identity.role,
        "exp": expire
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Identity:
    """
    Verify a session token and return its identity.

    Raises:
        AccessDenied: If the token is forged, malformed or expired
    """
    try:
        claims = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return Identity(id=claims["id"], email=claims["email"], role=claims.get("role", Role.CUSTOMER.value))
    except (JWTError, KeyError, ValueError):
        raise AccessDenied("Invalid token")


def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None)
) -> Identity:
    """
    Resolve the caller's identity from the session cookie or bearer header.

    Raises:
        Unauthorized: If no token is presented
        AccessDenied: If the token is invalid
    """
    auth_attempts_counter.add(1, {"type": "session_token"})

    token = request.cookies.get(AUTH_COOKIE_NAME)
    if not token and authorization:
        parts = authorization.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            token = parts[1]

    if not token:
        auth_failures_counter.add(1, {"reason": "missing_token"})
        logger.warning("Authentication failed: Missing token", extra={
            "path": request.url.path
        })
        raise Unauthorized("Access denied")

    try:
        identity = decode_access_token(token)
    except AccessDenied:
        auth_failures_counter.add(1, {"reason": "invalid_token"})
        logger.warning("Authentication failed: Invalid token", extra={
            "token_prefix": token[:8] + "..." if len(token) > 8 else token
        })
        raise

    request.state.user_id = identity.id
    return identity


def require_admin(identity: Identity = Depends(get_current_user)) -> Identity:
    """Dependency that only lets administrative identities through."""
    if not identity.is_admin:
        logger.warning("Admin access denied", extra={"user_id": identity.id})
        raise AccessDenied("Admin access required")
    return identity
