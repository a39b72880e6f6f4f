"""Teams API router — team lifecycle, invitations and membership."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fieldops.db.session import get_db
from fieldops.schemas.schemas import (
    TeamCreate, TeamUpdate, TeamOut, TeamDetail, UserOut,
    MemberRoleUpdate, TransferOwnershipRequest,
    InvitationCreate, InvitationCodeRequest, InvitationOut, InvitationForUser,
    MessageResponse,
)
from fieldops.services.team_service import team_service
from fieldops.services.invitation_service import invitation_service
from fieldops.core.security import get_current_user_id
from fieldops.core.exceptions import NotTeamMemberError

router = APIRouter(prefix="/teams", tags=["teams"])


@router.post("/", response_model=TeamDetail, status_code=201)
async def create_team(
    body: TeamCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Create a team; the caller becomes its owner."""
    return team_service.create_team(db, user_id, body.name, body.slug, body.description)


@router.get("/my-team", response_model=Optional[TeamDetail])
async def get_my_team(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """The caller's current team, or null when team-less."""
    return team_service.get_user_team(db, user_id)


@router.get("/my-invitations", response_model=List[InvitationForUser])
async def list_my_invitations(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return invitation_service.list_for_user(db, user_id)


@router.post("/invitations/accept", response_model=TeamDetail)
async def accept_invitation(
    body: InvitationCodeRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return invitation_service.accept(db, user_id, body.code)


@router.post("/invitations/decline", response_model=MessageResponse)
async def decline_invitation(
    body: InvitationCodeRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    invitation_service.decline(db, user_id, body.code)
    return MessageResponse(message="Invitation declined")


@router.get("/slug/{slug}", response_model=TeamOut)
async def get_team_by_slug(
    slug: str,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return team_service.get_team_by_slug(db, slug)


@router.get("/{team_id}", response_model=TeamDetail)
async def get_team(
    team_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    team = team_service.get_team_by_id(db, team_id)
    if not team_service.verify_team_access(db, user_id, team_id):
        raise NotTeamMemberError("You are not a member of this team")
    return team


@router.patch("/{team_id}", response_model=TeamOut)
async def update_team(
    team_id: int,
    body: TeamUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Partial update; only fields sent in the body change."""
    return team_service.update_team(db, team_id, user_id, body.model_dump(exclude_unset=True))


@router.delete("/{team_id}", response_model=MessageResponse)
async def delete_team(
    team_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    team_service.delete_team(db, team_id, user_id)
    return MessageResponse(message="Team deleted")


@router.get("/{team_id}/members", response_model=List[UserOut])
async def list_members(
    team_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return team_service.list_members(db, team_id, user_id)


@router.post("/{team_id}/invitations", response_model=InvitationOut, status_code=201)
async def invite_member(
    team_id: int,
    body: InvitationCreate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return invitation_service.invite(db, team_id, user_id, body.email, body.role)


@router.get("/{team_id}/invitations", response_model=List[InvitationOut])
async def list_invitations(
    team_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return invitation_service.list_for_team(db, team_id, user_id)


@router.delete("/{team_id}/invitations/{invitation_id}", response_model=MessageResponse)
async def cancel_invitation(
    team_id: int,
    invitation_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    invitation_service.cancel(db, team_id, invitation_id, user_id)
    return MessageResponse(message="Invitation cancelled")


@router.patch("/{team_id}/members/{member_id}/role", response_model=UserOut)
async def update_member_role(
    team_id: int,
    member_id: int,
    body: MemberRoleUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return team_service.update_member_role(db, team_id, member_id, user_id, body.role)


@router.delete("/{team_id}/members/{member_id}", response_model=MessageResponse)
async def remove_member(
    team_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    team_service.remove_member(db, team_id, user_id, member_id)
    return MessageResponse(message="Member removed")


@router.post("/{team_id}/leave", response_model=MessageResponse)
async def leave_team(
    team_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    team_service.leave_team(db, team_id, user_id)
    return MessageResponse(message="You have left the team")


@router.post("/{team_id}/transfer-ownership", response_model=TeamDetail)
async def transfer_ownership(
    team_id: int,
    body: TransferOwnershipRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    return team_service.transfer_ownership(db, team_id, user_id, body.new_owner_id)
