"""Models package — import all models so metadata.create_all can discover them."""

from fieldops.models.team import Team, TeamRole
from fieldops.models.user import User, GlobalRole
from fieldops.models.team_invitation import TeamInvitation, InvitationStatus
from fieldops.models.site import Site, SiteType
from fieldops.models.report import Report, ReportMedia, MaintenanceStatus
from fieldops.models.refresh_token import RefreshToken

__all__ = [
    "Team", "TeamRole", "User", "GlobalRole",
    "TeamInvitation", "InvitationStatus",
    "Site", "SiteType", "Report", "ReportMedia", "MaintenanceStatus",
    "RefreshToken",
]
