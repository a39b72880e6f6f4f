"""Reports API router — reports are sent as multipart: a JSON `payload` field plus image files."""

from typing import List

from fastapi import APIRouter, Depends, UploadFile, File, Form, Query
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from fieldops.db.session import get_db
from fieldops.schemas.schemas import (
    ReportCreate, ReportUpdate, ReportOut, ReportPage, SubmitterReportPage,
    MediaOut, MessageResponse,
)
from fieldops.services.report_service import report_service
from fieldops.services.storage_service import MediaFile
from fieldops.core.policy import AuthorizationContext
from fieldops.core.security import require_team_member, require_team_manager
from fieldops.core.exceptions import ValidationError

router = APIRouter(prefix="/reports", tags=["reports"])


def _parse(schema, payload: str):
    try:
        return schema.model_validate_json(payload)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid report payload: {e.errors(include_url=False)}")


async def _read_files(files: List[UploadFile]) -> List[MediaFile]:
    return [
        MediaFile(filename=f.filename or "", content_type=f.content_type or "", data=await f.read())
        for f in files
    ]


@router.get("/", response_model=ReportPage)
async def list_reports(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_manager),
):
    return report_service.list_reports(db, context, limit, offset)


@router.post("/", response_model=ReportOut, status_code=201)
async def create_report(
    payload: str = Form(...),
    files: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_member),
):
    """File a report for a site, with optional images."""
    body = _parse(ReportCreate, payload)
    media = await _read_files(files)
    return report_service.create_report(db, context, body.model_dump(), media)


@router.get("/site/{site_id}", response_model=ReportPage)
async def list_reports_by_site(
    site_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_manager),
):
    return report_service.list_by_site(db, context, site_id, limit, offset)


@router.get("/user/{user_id}", response_model=SubmitterReportPage)
async def list_reports_by_submitter(
    user_id: int,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_member),
):
    """Reports filed by one member, with this month's count."""
    return report_service.list_by_submitter(db, context, user_id, limit, offset)


@router.delete("/media/{media_id}", response_model=MessageResponse)
async def delete_media(
    media_id: int,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_manager),
):
    report_service.delete_media(db, context, media_id)
    return MessageResponse(message="Media deleted")


@router.get("/{report_id}", response_model=ReportOut)
async def get_report(
    report_id: int,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_member),
):
    return report_service.get_report(db, context, report_id)


@router.get("/{report_id}/media", response_model=List[MediaOut])
async def list_report_media(
    report_id: int,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_member),
):
    return report_service.list_media(db, context, report_id)


@router.patch("/{report_id}", response_model=ReportOut)
async def update_report(
    report_id: int,
    payload: str = Form("{}"),
    files: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_member),
):
    """Edit a report. Members get a limited number of edits."""
    body = _parse(ReportUpdate, payload)
    media = await _read_files(files)
    patch = body.model_dump(exclude_unset=True, exclude={"remove_media_ids"})
    return report_service.update_report(
        db, context, report_id, patch, media, body.remove_media_ids
    )


@router.delete("/{report_id}", response_model=MessageResponse)
async def delete_report(
    report_id: int,
    db: Session = Depends(get_db),
    context: AuthorizationContext = Depends(require_team_manager),
):
    report_service.delete_report(db, context, report_id)
    return MessageResponse(message="Report deleted")
