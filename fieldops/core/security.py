"""JWT authentication, password hashing and request authorization dependencies."""

import secrets
import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from fieldops.core.config import settings
from fieldops.core.exceptions import AuthenticationError
from fieldops.core.policy import AuthorizationContext, Requirement, enforce
from fieldops.db.session import get_db
from fieldops.models.user import User

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    pwd_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(pwd_bytes, hashed_bytes)


def generate_random_code(nbytes: Optional[int] = None) -> str:
    """Unguessable hex code, used for invitation codes."""
    return secrets.token_hex(nbytes or settings.INVITE_CODE_BYTES)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(data: dict) -> str:
    """Create a JWT refresh token. `jti` keeps two tokens issued in the same second distinct."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS)
    to_encode.update({"exp": expire, "type": "refresh", "jti": secrets.token_hex(8)})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, expected_type: str = "access") -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")
    if payload.get("type") != expected_type:
        raise AuthenticationError("Invalid token type")
    return payload


def verify_token(token: str) -> int:
    """Credential verifier: bearer token -> subject id."""
    payload = decode_token(token)
    subject = payload.get("sub")
    if subject is None:
        raise AuthenticationError("Invalid token payload")
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token payload")


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> int:
    """Extract user_id from the JWT Bearer token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    return verify_token(credentials.credentials)


def load_context(db: Session, user_id: int) -> AuthorizationContext:
    """Resolve team, team role and global role from the User row, never from the token."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AuthenticationError("User not found")
    return AuthorizationContext.from_user(user)


async def get_auth_context(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
) -> AuthorizationContext:
    return load_context(db, user_id)


class Require:
    """Dependency that gates a route on a policy requirement and yields the context."""

    def __init__(self, requirement: Requirement):
        self.requirement = requirement

    async def __call__(
        self,
        context: AuthorizationContext = Depends(get_auth_context),
    ) -> AuthorizationContext:
        return enforce(context, self.requirement)


# Convenience dependency instances
require_user = Require(Requirement.none())
require_team_member = Require(Requirement.membership())
require_team_manager = Require(Requirement.team_manager())
require_team_owner = Require(Requirement.team_owner())
