"""Report service — tenant-scoped inspection reports, edit quota and media."""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from fieldops.core.config import settings
from fieldops.core.exceptions import (
    NotTeamMemberError,
    QuotaExceededError,
    ResourceNotFoundError,
    ValidationError,
)
from fieldops.core.policy import AuthorizationContext, Requirement, enforce
from fieldops.core.tenancy import TenantScope
from fieldops.db.session import transaction
from fieldops.models.report import Report, ReportMedia
from fieldops.models.site import Site
from fieldops.models.team import TeamRole
from fieldops.models.user import User
from fieldops.services.storage_service import MediaFile, get_media_storage

logger = logging.getLogger("fieldops.reports")

REPORT_FIELDS = (
    "raw_water_tds", "permeate_water_tds", "raw_water_ph", "permeate_water_ph",
    "product_water_tds", "product_water_flow", "product_water_ph", "reject_water_flow",
    "membrane_inlet_pressure", "membrane_outlet_pressure", "raw_water_inlet_pressure",
    "volts_amperes",
    "multimedia_backwash", "carbon_backwash", "membrane_cleaning", "arsenic_media_backwash",
    "cip", "chemical_refill_litres", "cartridge_filter_replacement", "membrane_replacement",
)


def is_quota_exempt(context: AuthorizationContext) -> bool:
    """Global admins and team owners/admins edit without limit."""
    return context.is_global_admin or context.team_role in (TeamRole.owner, TeamRole.admin)


def _month_window(now: datetime):
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


class ReportService:
    """Reports belong to a site of the caller's team and carry object-storage media."""

    @staticmethod
    def _paginate(query, limit: int, offset: int) -> Dict[str, Any]:
        total = query.count()
        rows = (
            query.order_by(Report.created_at.desc(), Report.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {"data": rows, "total": total, "limit": limit, "offset": offset}

    @staticmethod
    def _upload_all(team_id: int, files: List[MediaFile]) -> List[tuple]:
        """Upload every file; on a failure, remove the ones already stored."""
        storage = get_media_storage()
        uploaded = []
        try:
            for media in files:
                uploaded.append(storage.upload(media, prefix=f"teams/{team_id}/reports"))
        except Exception:
            storage.remove_many([key for key, _ in uploaded])
            raise
        return uploaded

    @staticmethod
    def _check_media_count(current: int, adding: int) -> None:
        if current + adding > settings.MEDIA_MAX_FILES:
            raise ValidationError(f"A report can hold at most {settings.MEDIA_MAX_FILES} media files")

    # ---- Reads ----

    @staticmethod
    def list_reports(
        db: Session,
        context: AuthorizationContext,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        enforce(context, Requirement.team_manager(), "Only team owners and admins can list all reports")
        return ReportService._paginate(TenantScope(context).query(db, Report), limit, offset)

    @staticmethod
    def get_report(db: Session, context: AuthorizationContext, report_id: int) -> Report:
        enforce(context, Requirement.membership())
        return TenantScope(context).get(db, Report, report_id, "Report")

    @staticmethod
    def list_by_site(
        db: Session,
        context: AuthorizationContext,
        site_id: int,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        enforce(context, Requirement.team_manager(), "Only team owners and admins can list site reports")
        scope = TenantScope(context)
        scope.get(db, Site, site_id, "Site")
        return ReportService._paginate(
            scope.query(db, Report).filter(Report.site_id == site_id), limit, offset
        )

    @staticmethod
    def list_by_submitter(
        db: Session,
        context: AuthorizationContext,
        user_id: int,
        limit: int = 50,
        offset: int = 0,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Reports submitted by one member, plus how many of them fall in the current month."""
        if user_id == context.user_id:
            enforce(context, Requirement.membership())
        else:
            enforce(context, Requirement.team_manager(), "You can only view your own reports")
        scope = TenantScope(context)
        query = scope.query(db, Report).filter(Report.submitted_by_id == user_id)
        result = ReportService._paginate(query, limit, offset)

        # created_at is stored as naive UTC
        now = (now or datetime.now(timezone.utc)).replace(tzinfo=None)
        start, end = _month_window(now)
        result["this_month"] = query.filter(
            Report.created_at >= start, Report.created_at < end
        ).count()
        return result

    @staticmethod
    def list_media(db: Session, context: AuthorizationContext, report_id: int) -> List[ReportMedia]:
        report = ReportService.get_report(db, context, report_id)
        return list(report.media)

    # ---- Writes ----

    @staticmethod
    def create_report(
        db: Session,
        context: AuthorizationContext,
        data: Dict[str, Any],
        files: Optional[List[MediaFile]] = None,
    ) -> Report:
        """Any member may file a report; only owners/admins may file one for someone else."""
        enforce(context, Requirement.membership())
        scope = TenantScope(context)
        files = files or []
        ReportService._check_media_count(0, len(files))

        submitter_id = data.get("submitted_by_id") or context.user_id
        if submitter_id != context.user_id:
            enforce(
                context, Requirement.team_manager(),
                "Only team owners and admins can submit reports for other members",
            )

        uploaded = ReportService._upload_all(scope.team_id, files)
        try:
            with transaction(db):
                site = scope.get(db, Site, data["site_id"], "Site")
                submitter = (
                    db.query(User)
                    .filter(User.id == submitter_id, User.team_id == scope.team_id)
                    .first()
                )
                if not submitter:
                    raise NotTeamMemberError("Submitter must be a member of the team")

                report = Report(**{key: data[key] for key in REPORT_FIELDS if key in data})
                report.site_id = site.id
                report.submitted_by_id = submitter.id
                report.edit_count = 0
                scope.stamp(report)
                report.media = [ReportMedia(object_key=key, url=url) for key, url in uploaded]
                db.add(report)
        except Exception:
            get_media_storage().remove_many([key for key, _ in uploaded])
            raise

        db.refresh(report)
        logger.info("Report %s filed for site %s by %s", report.id, report.site_id, submitter_id)
        return report

    @staticmethod
    def update_report(
        db: Session,
        context: AuthorizationContext,
        report_id: int,
        patch: Dict[str, Any],
        files: Optional[List[MediaFile]] = None,
        remove_media_ids: Optional[List[int]] = None,
    ) -> Report:
        """Apply a partial update, detach/attach media and count the edit against the quota."""
        enforce(context, Requirement.membership())
        scope = TenantScope(context)
        files = files or []
        remove_media_ids = set(remove_media_ids or [])

        uploaded = ReportService._upload_all(scope.team_id, files)
        removed_keys: List[str] = []
        try:
            with transaction(db):
                report = (
                    scope.query(db, Report)
                    .filter(Report.id == report_id)
                    .populate_existing()
                    .with_for_update()
                    .first()
                )
                if not report:
                    raise ResourceNotFoundError("Report not found")

                if not is_quota_exempt(context):
                    if report.edit_count >= settings.REPORT_FREE_EDITS:
                        raise QuotaExceededError("This report can only be edited twice.")
                    report.edit_count += 1

                for key in REPORT_FIELDS:
                    if key in patch and patch[key] is not None:
                        setattr(report, key, patch[key])

                kept = []
                for media in report.media:
                    if media.id in remove_media_ids:
                        removed_keys.append(media.object_key)
                    else:
                        kept.append(media)
                ReportService._check_media_count(len(kept), len(uploaded))
                report.media = kept + [ReportMedia(object_key=key, url=url) for key, url in uploaded]
        except Exception:
            get_media_storage().remove_many([key for key, _ in uploaded])
            raise

        get_media_storage().remove_many(removed_keys)
        db.refresh(report)
        logger.info("Report %s updated by %s (edit %s)", report.id, context.user_id, report.edit_count)
        return report

    @staticmethod
    def delete_report(db: Session, context: AuthorizationContext, report_id: int) -> None:
        enforce(context, Requirement.team_manager(), "Only team owners and admins can delete reports")
        scope = TenantScope(context)
        with transaction(db):
            report = scope.get(db, Report, report_id, "Report")
            keys = [media.object_key for media in report.media]
            db.delete(report)
        get_media_storage().remove_many(keys)
        logger.info("Report %s deleted by %s", report_id, context.user_id)

    @staticmethod
    def delete_media(db: Session, context: AuthorizationContext, media_id: int) -> None:
        """Detach one media file; the report must belong to the caller's team."""
        enforce(context, Requirement.team_manager(), "Only team owners and admins can delete media")
        scope = TenantScope(context)
        with transaction(db):
            media = (
                db.query(ReportMedia)
                .join(Report, Report.id == ReportMedia.report_id)
                .filter(ReportMedia.id == media_id, Report.team_id == scope.team_id)
                .first()
            )
            if not media:
                raise ResourceNotFoundError("Media not found")
            key = media.object_key
            db.delete(media)
        get_media_storage().remove_many([key])


report_service = ReportService()
