"""Auth API router — signup, login, refresh, logout, me."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fieldops.db.session import get_db
from fieldops.schemas.schemas import (
    SignupRequest, LoginRequest, RefreshRequest, ChangePasswordRequest,
    TokenResponse, UserOut, MessageResponse,
)
from fieldops.services.auth_service import auth_service
from fieldops.core.security import get_current_user_id

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=UserOut, status_code=201)
async def signup(body: SignupRequest, db: Session = Depends(get_db)):
    """Register a new team-less account."""
    return auth_service.signup(db, body.username, body.password, body.name, body.email, body.phone)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate and return JWT tokens."""
    return auth_service.authenticate(db, body.username, body.password)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    """Refresh access token."""
    return auth_service.refresh_access_token(db, body.refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(body: RefreshRequest, db: Session = Depends(get_db)):
    """Revoke one refresh token."""
    auth_service.logout(db, body.refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=MessageResponse)
async def logout_all(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Revoke all refresh tokens."""
    auth_service.logout_all(db, user_id)
    return MessageResponse(message="Logged out from all sessions")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    auth_service.change_password(db, user_id, body.old_password, body.new_password)
    return MessageResponse(message="Password changed")


@router.get("/me", response_model=UserOut)
async def get_me(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Get current user profile."""
    return auth_service.get_self(db, user_id)
