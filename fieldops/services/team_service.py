"""Team lifecycle service — create, update, transfer, remove, delete.

Every multi-row transition runs inside one `transaction` and takes row
locks team-first, so concurrent transfers, removals and deletions of the
same team are serialized and never leave it with zero or two owners.
"""

import logging
from typing import Optional, Dict, Any, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from fieldops.core.exceptions import (
    AlreadyInTeamError,
    CannotRemoveOwnerError,
    InsufficientRoleError,
    NotTeamMemberError,
    OwnerMustTransferError,
    ResourceNotFoundError,
    SlugTakenError,
)
from fieldops.core.policy import AuthorizationContext, Requirement, enforce
from fieldops.db.session import transaction
from fieldops.models.report import Report, ReportMedia
from fieldops.models.site import Site
from fieldops.models.team import Team, TeamRole
from fieldops.models.team_invitation import TeamInvitation
from fieldops.models.user import User
from fieldops.services.membership_service import membership_service
from fieldops.services.storage_service import get_media_storage

logger = logging.getLogger("fieldops.teams")

UPDATABLE_TEAM_FIELDS = ("name", "description", "logo_url", "is_active")


def check_removal(caller_role: TeamRole, target_role: TeamRole, is_self: bool) -> None:
    """Removal matrix shared by the team and user-management paths.

    Non-owners may always leave. Otherwise the caller must strictly outrank
    the target; the owner can never be removed by someone else.
    """
    if is_self:
        if target_role == TeamRole.owner:
            raise OwnerMustTransferError(
                "As the owner, you must transfer ownership before leaving the team"
            )
        return
    if target_role == TeamRole.owner:
        raise CannotRemoveOwnerError("Cannot remove the team owner")
    if caller_role == TeamRole.member:
        raise InsufficientRoleError("You do not have permission to remove members")
    if not caller_role.outranks(target_role):
        raise InsufficientRoleError(
            f"Only a role above {target_role.value} can remove this member"
        )


class TeamService:
    """Owns the team state machine on top of the membership store."""

    @staticmethod
    def authorize(
        caller: Optional[User],
        team_id: int,
        requirement: Requirement,
        message: Optional[str] = None,
    ) -> AuthorizationContext:
        """The caller must belong to `team_id` and satisfy `requirement`."""
        if caller is None:
            raise ResourceNotFoundError("User not found")
        context = AuthorizationContext.from_user(caller)
        if context.team_id != team_id:
            raise NotTeamMemberError("You are not a member of this team")
        return enforce(context, requirement, message)

    @staticmethod
    def _lock_users(db: Session, *user_ids: int) -> Dict[int, Optional[User]]:
        # ascending id order keeps lock acquisition consistent across requests
        return {uid: membership_service.lock_user(db, uid) for uid in sorted(set(user_ids))}

    # ---- Reads ----

    @staticmethod
    def get_team_by_id(db: Session, team_id: int) -> Team:
        team = db.query(Team).filter(Team.id == team_id).first()
        if not team:
            raise ResourceNotFoundError("Team not found")
        return team

    @staticmethod
    def get_team_by_slug(db: Session, slug: str) -> Team:
        team = db.query(Team).filter(func.lower(Team.slug) == slug.strip().lower()).first()
        if not team:
            raise ResourceNotFoundError("Team not found")
        return team

    @staticmethod
    def get_user_team(db: Session, user_id: int) -> Optional[Team]:
        user = db.query(User).filter(User.id == user_id).first()
        if not user or user.team_id is None:
            return None
        return db.query(Team).filter(Team.id == user.team_id).first()

    @staticmethod
    def verify_team_access(db: Session, user_id: int, team_id: int) -> bool:
        """True when the user is currently a member of the team."""
        user = db.query(User).filter(User.id == user_id).first()
        return user is not None and user.team_id == team_id

    @staticmethod
    def list_members(db: Session, team_id: int, caller_id: int) -> List[User]:
        caller = db.query(User).filter(User.id == caller_id).first()
        TeamService.authorize(caller, team_id, Requirement.membership())
        return (
            db.query(User)
            .filter(User.team_id == team_id)
            .order_by(User.created_at.desc(), User.id.desc())
            .all()
        )

    # ---- Transitions ----

    @staticmethod
    def create_team(
        db: Session,
        user_id: int,
        name: str,
        slug: str,
        description: Optional[str] = None,
    ) -> Team:
        """Create a team; the team-less creator atomically becomes its owner."""
        slug = slug.strip().lower()
        with transaction(db):
            user = membership_service.lock_user(db, user_id)
            if not user:
                raise ResourceNotFoundError("User not found")
            if user.team_id is not None:
                raise AlreadyInTeamError("You already belong to a team. Leave your current team first.")
            if db.query(Team.id).filter(func.lower(Team.slug) == slug).first():
                raise SlugTakenError("Team slug already exists")

            team = Team(name=name, slug=slug, description=description, owner_id=user.id)
            db.add(team)
            db.flush()
            membership_service.assign_owner(db, user, team)
            team_id = team.id

        logger.info("Team %s (%s) created by user %s", team_id, slug, user_id)
        return TeamService.get_team_by_id(db, team_id)

    @staticmethod
    def update_team(db: Session, team_id: int, user_id: int, patch: Dict[str, Any]) -> Team:
        """Apply a partial update; only fields present in `patch` change."""
        with transaction(db):
            team = membership_service.lock_team(db, team_id)
            caller = db.query(User).filter(User.id == user_id).first()
            TeamService.authorize(
                caller, team_id, Requirement.team_manager(),
                "Only team owners and admins can update team settings",
            )
            for key in UPDATABLE_TEAM_FIELDS:
                if key in patch:
                    setattr(team, key, patch[key])
        db.refresh(team)
        return team

    @staticmethod
    def transfer_ownership(db: Session, team_id: int, caller_id: int, new_owner_id: int) -> Team:
        with transaction(db):
            team = membership_service.lock_team(db, team_id)
            users = TeamService._lock_users(db, caller_id, new_owner_id)
            caller = users[caller_id]
            TeamService.authorize(
                caller, team_id, Requirement.team_owner(),
                "Only the current owner can transfer ownership",
            )
            new_owner = users[new_owner_id]
            if new_owner is None or new_owner.team_id != team_id:
                raise NotTeamMemberError("New owner must be a member of the team")
            membership_service.transfer_owner(db, team, caller, new_owner)

        return TeamService.get_team_by_id(db, team_id)

    @staticmethod
    def change_role_locked(
        db: Session,
        team_id: int,
        member_id: int,
        caller_id: int,
        new_role: TeamRole,
    ) -> User:
        """Role change for use inside an open `transaction`; takes the team and user locks."""
        membership_service.lock_team(db, team_id)
        users = TeamService._lock_users(db, caller_id, member_id)
        TeamService.authorize(
            users[caller_id], team_id, Requirement.team_owner(),
            "Only the team owner can change member roles",
        )
        member = users[member_id]
        if member is None or member.team_id != team_id:
            raise ResourceNotFoundError("Member not found in this team")
        membership_service.change_role(db, member, new_role)
        return member

    @staticmethod
    def update_member_role(
        db: Session,
        team_id: int,
        member_id: int,
        caller_id: int,
        new_role: TeamRole,
    ) -> User:
        """Owner-only: switch a member between ADMIN and MEMBER."""
        with transaction(db):
            member = TeamService.change_role_locked(db, team_id, member_id, caller_id, new_role)

        db.refresh(member)
        logger.info("User %s role in team %s set to %s", member_id, team_id, new_role.value)
        return member

    @staticmethod
    def remove_member(db: Session, team_id: int, caller_id: int, target_id: int) -> None:
        with transaction(db):
            membership_service.lock_team(db, team_id)
            users = TeamService._lock_users(db, caller_id, target_id)
            context = TeamService.authorize(users[caller_id], team_id, Requirement.membership())
            target = users[target_id]
            if target is None or target.team_id != team_id:
                raise ResourceNotFoundError("Member not found in this team")
            is_self = caller_id == target_id
            if not is_self and target.team_role != TeamRole.owner:
                enforce(
                    context, Requirement.team_manager(),
                    "You do not have permission to remove members",
                )
            check_removal(context.team_role, target.team_role, is_self)
            membership_service.detach(db, target)

        logger.info("User %s removed from team %s by %s", target_id, team_id, caller_id)

    @staticmethod
    def leave_team(db: Session, team_id: int, user_id: int) -> None:
        TeamService.remove_member(db, team_id, user_id, user_id)

    @staticmethod
    def delete_team(db: Session, team_id: int, caller_id: int) -> None:
        """Owner-only. Detaches every member, drops invitations, resources and the team."""
        with transaction(db):
            team = membership_service.lock_team(db, team_id)
            caller = membership_service.lock_user(db, caller_id)
            TeamService.authorize(
                caller, team_id, Requirement.team_owner(),
                "Only the team owner can delete the team",
            )
            report_ids = select(Report.id).where(Report.team_id == team_id)
            media_keys = [
                key for (key,) in
                db.query(ReportMedia.object_key).filter(ReportMedia.report_id.in_(report_ids)).all()
            ]
            db.query(ReportMedia).filter(ReportMedia.report_id.in_(report_ids)).delete(
                synchronize_session=False
            )
            db.query(Report).filter(Report.team_id == team_id).delete(synchronize_session=False)
            db.query(Site).filter(Site.team_id == team_id).delete(synchronize_session=False)
            db.query(TeamInvitation).filter(TeamInvitation.team_id == team_id).delete(
                synchronize_session=False
            )
            detached = membership_service.detach_all(db, team)
            db.delete(team)

        logger.info("Team %s deleted by %s (%s members detached)", team_id, caller_id, detached)
        get_media_storage().remove_many(media_keys)


team_service = TeamService()
