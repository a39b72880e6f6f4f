"""Site service — tenant-scoped CRUD for field sites."""

import logging
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from fieldops.core.exceptions import ResourceConflictError, ValidationError
from fieldops.core.policy import AuthorizationContext, Requirement, enforce
from fieldops.core.tenancy import TenantScope
from fieldops.db.session import transaction
from fieldops.models.report import Report
from fieldops.models.site import Site
from fieldops.models.user import User

logger = logging.getLogger("fieldops.sites")

SITE_FIELDS = ("address", "lat", "lng", "district", "site_type", "capacity")


def _clean_district(value: str) -> str:
    return value.strip().lower()


class SiteService:
    """Every query runs through a TenantScope bound to the caller's team."""

    @staticmethod
    def _check_assignee(db: Session, scope: TenantScope, assignee_id: Optional[int]) -> None:
        if assignee_id is None:
            return
        member = (
            db.query(User.id)
            .filter(User.id == assignee_id, User.team_id == scope.team_id)
            .first()
        )
        if not member:
            raise ValidationError("Assignee must be a member of your team")

    @staticmethod
    def list_sites(
        db: Session,
        context: AuthorizationContext,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        enforce(context, Requirement.team_manager(), "Only team owners and admins can list all sites")
        query = TenantScope(context).query(db, Site)
        total = query.count()
        rows = query.order_by(Site.created_at.desc(), Site.id.desc()).offset(offset).limit(limit).all()
        return {"data": rows, "total": total, "limit": limit, "offset": offset}

    @staticmethod
    def list_assigned(db: Session, context: AuthorizationContext) -> List[Site]:
        """Sites assigned to the caller."""
        enforce(context, Requirement.membership())
        return (
            TenantScope(context)
            .query(db, Site)
            .filter(Site.assignee_id == context.user_id)
            .order_by(Site.id.desc())
            .all()
        )

    @staticmethod
    def get_site(db: Session, context: AuthorizationContext, site_id: int) -> Site:
        enforce(context, Requirement.membership())
        return TenantScope(context).get(db, Site, site_id, "Site")

    @staticmethod
    def get_assignee(db: Session, context: AuthorizationContext, site_id: int) -> Optional[User]:
        site = SiteService.get_site(db, context, site_id)
        return site.assignee

    @staticmethod
    def create_site(db: Session, context: AuthorizationContext, data: Dict[str, Any]) -> Site:
        enforce(context, Requirement.team_manager(), "Only team owners and admins can create sites")
        scope = TenantScope(context)
        with transaction(db):
            SiteService._check_assignee(db, scope, data.get("assignee_id"))
            site = Site(**{key: data.get(key) for key in SITE_FIELDS})
            site.district = _clean_district(site.district)
            site.assignee_id = data.get("assignee_id")
            scope.stamp(site)
            db.add(site)
        db.refresh(site)
        logger.info("Site %s created in team %s", site.id, scope.team_id)
        return site

    @staticmethod
    def update_site(
        db: Session,
        context: AuthorizationContext,
        site_id: int,
        patch: Dict[str, Any],
    ) -> Site:
        """Partial update. An explicit `assignee_id: None` unassigns the site."""
        enforce(context, Requirement.team_manager(), "Only team owners and admins can update sites")
        scope = TenantScope(context)
        with transaction(db):
            site = scope.get(db, Site, site_id, "Site")
            for key in SITE_FIELDS:
                if key in patch and patch[key] is not None:
                    setattr(site, key, patch[key])
            if "district" in patch and patch["district"] is not None:
                site.district = _clean_district(patch["district"])
            if "assignee_id" in patch:
                SiteService._check_assignee(db, scope, patch["assignee_id"])
                site.assignee_id = patch["assignee_id"]
        db.refresh(site)
        return site

    @staticmethod
    def delete_site(db: Session, context: AuthorizationContext, site_id: int) -> None:
        enforce(context, Requirement.team_manager(), "Only team owners and admins can delete sites")
        scope = TenantScope(context)
        with transaction(db):
            site = scope.get(db, Site, site_id, "Site")
            if db.query(Report.id).filter(Report.site_id == site.id).first():
                raise ResourceConflictError("Cannot delete a site that has reports")
            db.delete(site)
        logger.info("Site %s deleted from team %s", site_id, scope.team_id)


site_service = SiteService()
