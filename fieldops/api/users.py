"""Users API router — owners/admins manage accounts inside their team."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fieldops.db.session import get_db
from fieldops.schemas.schemas import (
    TeamMemberCreate, TeamMemberUpdate, UserOut, UserPage, MessageResponse,
)
from fieldops.services.user_service import user_service
from fieldops.core.policy import AuthorizationContext
from fieldops.core.security import require_team_member, require_team_manager

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/", response_model=UserOut, status_code=201)
async def create_team_member(
    body: TeamMemberCreate,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_manager),
):
    """Create an account directly inside the caller's team."""
    return user_service.create_team_member(db, context, body.model_dump())


@router.get("/", response_model=UserPage)
async def list_team_members(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_member),
):
    return user_service.list_team_members(db, context, limit, offset)


@router.get("/{member_id}", response_model=UserOut)
async def get_team_member(
    member_id: int,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_member),
):
    return user_service.get_team_member(db, context, member_id)


@router.patch("/{member_id}", response_model=UserOut)
async def update_team_member(
    member_id: int,
    body: TeamMemberUpdate,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_member),
):
    return user_service.update_team_member(db, context, member_id, body.model_dump(exclude_unset=True))


@router.delete("/{member_id}", response_model=MessageResponse)
async def remove_team_member(
    member_id: int,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_member),
):
    user_service.remove_team_member(db, context, member_id)
    return MessageResponse(message="Member removed")
