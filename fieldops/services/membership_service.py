"""Membership store — the single writer of User.team_id/team_role and Team.owner_id.

Nothing else in the code base assigns those columns. Methods here flush but
never commit: callers wrap them in `fieldops.db.session.transaction` so each
multi-row transition lands as one atomic unit.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from fieldops.core.exceptions import (
    AlreadyInTeamError,
    InvalidRoleChangeError,
    NotTeamMemberError,
    OwnerMustTransferError,
    ResourceNotFoundError,
)
from fieldops.models.team import Team, TeamRole
from fieldops.models.user import User

logger = logging.getLogger("fieldops.membership")


class MembershipService:
    """Atomic membership transitions that keep one team per user and one owner per team."""

    # ---- Row locks ----
    # Lock order is always team first, then users, then invitations.

    @staticmethod
    def lock_team(db: Session, team_id: int) -> Team:
        """SELECT ... FOR UPDATE the team row, refreshing any cached state."""
        team = (
            db.query(Team)
            .filter(Team.id == team_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if not team:
            raise ResourceNotFoundError("Team not found")
        return team

    @staticmethod
    def lock_user(db: Session, user_id: int) -> Optional[User]:
        return (
            db.query(User)
            .filter(User.id == user_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    # ---- Transitions ----

    @staticmethod
    def assign_owner(db: Session, user: User, team: Team) -> None:
        """Make a team-less user the owner of a freshly created team."""
        if user.team_id is not None:
            raise AlreadyInTeamError("You already belong to a team. Leave your current team first.")
        team.owner_id = user.id
        user.team_id = team.id
        user.team_role = TeamRole.owner
        db.flush()
        db.expire(team, ["owner", "members"])
        logger.info("User %s is now owner of team %s", user.id, team.id)

    @staticmethod
    def assign_member(db: Session, user: User, team: Team, role: TeamRole = TeamRole.member) -> None:
        """Attach a team-less user to a team as ADMIN or MEMBER."""
        if user.team_id is not None:
            raise AlreadyInTeamError("User already belongs to a team")
        if role == TeamRole.owner:
            raise InvalidRoleChangeError("Ownership can only be obtained through a transfer")
        user.team_id = team.id
        user.team_role = role
        db.flush()
        db.expire(team, ["members"])
        logger.info("User %s joined team %s as %s", user.id, team.id, role.value)

    @staticmethod
    def detach(db: Session, user: User) -> None:
        """Make a user team-less. The owner cannot be detached while the team exists."""
        if user.team_id is None:
            raise NotTeamMemberError("User is not a member of a team")
        if user.team_role == TeamRole.owner:
            raise OwnerMustTransferError(
                "As the owner, you must transfer ownership before leaving the team"
            )
        team_id = user.team_id
        user.team_id = None
        user.team_role = None
        db.flush()
        logger.info("User %s left team %s", user.id, team_id)

    @staticmethod
    def change_role(db: Session, user: User, new_role: TeamRole) -> None:
        if user.team_id is None:
            raise NotTeamMemberError("User is not a member of a team")
        if user.team_role == TeamRole.owner:
            raise InvalidRoleChangeError("Cannot change the owner's role")
        if new_role == TeamRole.owner:
            raise InvalidRoleChangeError("Ownership can only be obtained through a transfer")
        user.team_role = new_role
        db.flush()

    @staticmethod
    def transfer_owner(db: Session, team: Team, current_owner: User, new_owner: User) -> None:
        """Swap the OWNER slot in one flush: the old owner becomes ADMIN."""
        if current_owner.team_id != team.id or current_owner.team_role != TeamRole.owner:
            raise InvalidRoleChangeError("Only the current owner can hand over ownership")
        if new_owner.team_id != team.id:
            raise NotTeamMemberError("New owner must be a member of the team")
        if new_owner.id == current_owner.id:
            raise InvalidRoleChangeError("You already own this team")
        team.owner_id = new_owner.id
        current_owner.team_role = TeamRole.admin
        new_owner.team_role = TeamRole.owner
        db.flush()
        db.expire(team, ["owner"])
        logger.info(
            "Team %s ownership transferred from %s to %s",
            team.id, current_owner.id, new_owner.id,
        )

    @staticmethod
    def detach_all(db: Session, team: Team) -> int:
        """Reset every member of a team being deleted, owner included."""
        count = (
            db.query(User)
            .filter(User.team_id == team.id)
            .update({User.team_id: None, User.team_role: None}, synchronize_session="fetch")
        )
        db.flush()
        return count


membership_service = MembershipService()
