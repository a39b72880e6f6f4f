"""Auth service — signup, JWT login, refresh, logout, password changes."""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
import hashlib
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from fieldops.models.user import User, GlobalRole
from fieldops.models.refresh_token import RefreshToken
from fieldops.core.security import (
    hash_password, verify_password,
    create_access_token, create_refresh_token, decode_token,
)
from fieldops.core.exceptions import (
    AuthenticationError,
    ResourceConflictError,
    ResourceNotFoundError,
)
from fieldops.db.session import transaction

logger = logging.getLogger("fieldops.auth")


def _token_hash(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class AuthService:
    """Handles accounts and the credential lifecycle."""

    @staticmethod
    def _token_data(user: User) -> Dict[str, Any]:
        # only `sub` is trusted downstream; team state is always read from the row
        return {"sub": str(user.id), "role": user.role.value}

    @staticmethod
    def _revoke_all(db: Session, user_id: int) -> int:
        return db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id,
            RefreshToken.revoked_at.is_(None),
        ).update({"revoked_at": datetime.now(timezone.utc)}, synchronize_session=False)

    @staticmethod
    def create_account(
        db: Session,
        username: str,
        password: str,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        role: GlobalRole = GlobalRole.user,
    ) -> User:
        """Add a team-less account to the session. The caller commits."""
        username = username.strip().lower()
        email = email.strip().lower() if email else None
        if db.query(User.id).filter(func.lower(User.username) == username).first():
            raise ResourceConflictError("Username already exists")
        if email and db.query(User.id).filter(func.lower(User.email) == email).first():
            raise ResourceConflictError("Email already exists")

        user = User(
            username=username,
            hashed_password=hash_password(password),
            name=name,
            email=email,
            phone=phone,
            role=role,
        )
        db.add(user)
        db.flush()
        return user

    @staticmethod
    def signup(
        db: Session,
        username: str,
        password: str,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> User:
        """Register a new global `user` account that belongs to no team."""
        with transaction(db):
            user = AuthService.create_account(db, username, password, name, email, phone)
        db.refresh(user)
        logger.info("User %s signed up", user.id)
        return user

    @staticmethod
    def authenticate(db: Session, username: str, password: str) -> Dict[str, Any]:
        """Authenticate user and return JWT tokens.

        Raises:
            AuthenticationError: If credentials are invalid.
        """
        user = db.query(User).filter(func.lower(User.username) == username.strip().lower()).first()
        if not user or not verify_password(password, user.hashed_password):
            raise AuthenticationError("Invalid username or password")

        token_data = AuthService._token_data(user)
        access_token = create_access_token(token_data)
        refresh_token_str = create_refresh_token(token_data)

        # Store refresh token hash
        with transaction(db):
            db.add(RefreshToken(
                user_id=user.id,
                token_hash=_token_hash(refresh_token_str),
                expires_at=datetime.fromtimestamp(
                    decode_token(refresh_token_str, "refresh")["exp"], tz=timezone.utc
                ),
            ))

        return {
            "access_token": access_token,
            "refresh_token": refresh_token_str,
            "token_type": "bearer",
            "user": user,
        }

    @staticmethod
    def refresh_access_token(db: Session, refresh_token: str) -> Dict[str, Any]:
        """Refresh access token using a valid, unrevoked refresh token."""
        payload = decode_token(refresh_token, "refresh")

        stored = db.query(RefreshToken).filter(
            RefreshToken.token_hash == _token_hash(refresh_token),
            RefreshToken.revoked_at.is_(None),
        ).first()
        if not stored:
            raise AuthenticationError("Invalid refresh token")

        user = db.query(User).filter(User.id == int(payload["sub"])).first()
        if not user:
            raise AuthenticationError("User not found")

        return {
            "access_token": create_access_token(AuthService._token_data(user)),
            "token_type": "bearer",
        }

    @staticmethod
    def logout(db: Session, refresh_token: str) -> None:
        """Revoke a single refresh token. Unknown tokens are ignored."""
        with transaction(db):
            db.query(RefreshToken).filter(
                RefreshToken.token_hash == _token_hash(refresh_token),
                RefreshToken.revoked_at.is_(None),
            ).update({"revoked_at": datetime.now(timezone.utc)}, synchronize_session=False)

    @staticmethod
    def logout_all(db: Session, user_id: int) -> int:
        """Revoke all refresh tokens for a user."""
        with transaction(db):
            count = AuthService._revoke_all(db, user_id)
        logger.info("Revoked %s refresh tokens for user %s", count, user_id)
        return count

    @staticmethod
    def change_password(db: Session, user_id: int, old_password: str, new_password: str) -> None:
        with transaction(db):
            user = AuthService.get_self(db, user_id)
            if not verify_password(old_password, user.hashed_password):
                raise AuthenticationError("Current password is incorrect")
            user.hashed_password = hash_password(new_password)
            AuthService._revoke_all(db, user_id)
        logger.info("User %s changed password", user_id)

    @staticmethod
    def set_password(db: Session, user: User, new_password: str) -> None:
        """Replace a password without the old one and sign the account out everywhere."""
        user.hashed_password = hash_password(new_password)
        AuthService._revoke_all(db, user.id)

    @staticmethod
    def get_self(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError("User not found")
        return user

    @staticmethod
    def create_admin(db: Session, username: str, password: str, name: str = "Administrator") -> User:
        """Create a global admin account, or return the existing one."""
        existing = db.query(User).filter(func.lower(User.username) == username.strip().lower()).first()
        if existing:
            return existing
        with transaction(db):
            user = AuthService.create_account(db, username, password, name, role=GlobalRole.admin)
        db.refresh(user)
        logger.info("Admin account %s created", user.username)
        return user


auth_service = AuthService()
