"""Sites API router."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fieldops.db.session import get_db
from fieldops.schemas.schemas import (
    SiteCreate, SiteUpdate, SiteOut, SitePage, UserBrief, MessageResponse,
)
from fieldops.services.site_service import site_service
from fieldops.core.policy import AuthorizationContext
from fieldops.core.security import require_team_member, require_team_manager

router = APIRouter(prefix="/sites", tags=["sites"])


@router.get("/", response_model=SitePage)
async def list_sites(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_manager),
):
    return site_service.list_sites(db, context, limit, offset)


@router.get("/assigned", response_model=List[SiteOut])
async def list_assigned_sites(
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_member),
):
    """Sites assigned to the caller."""
    return site_service.list_assigned(db, context)


@router.post("/", response_model=SiteOut, status_code=201)
async def create_site(
    body: SiteCreate,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_manager),
):
    return site_service.create_site(db, context, body.model_dump())


@router.get("/{site_id}", response_model=SiteOut)
async def get_site(
    site_id: int,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_member),
):
    return site_service.get_site(db, context, site_id)


@router.get("/{site_id}/assignee", response_model=Optional[UserBrief])
async def get_site_assignee(
    site_id: int,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_member),
):
    return site_service.get_assignee(db, context, site_id)


@router.patch("/{site_id}", response_model=SiteOut)
async def update_site(
    site_id: int,
    body: SiteUpdate,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_manager),
):
    """Partial update; send `assignee_id: null` to unassign."""
    return site_service.update_site(db, context, site_id, body.model_dump(exclude_unset=True))


@router.delete("/{site_id}", response_model=MessageResponse)
async def delete_site(
    site_id: int,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_manager),
):
    site_service.delete_site(db, context, site_id)
    return MessageResponse(message="Site deleted")
