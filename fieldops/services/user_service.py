"""Team member management — owners/admins manage accounts inside their own team."""

import logging
from typing import Optional, Dict, Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from fieldops.core.exceptions import (
    InsufficientRoleError,
    InvalidRoleChangeError,
    ResourceConflictError,
)
from fieldops.core.policy import AuthorizationContext, Requirement, enforce
from fieldops.core.tenancy import TenantScope
from fieldops.db.session import transaction
from fieldops.models.team import TeamRole
from fieldops.models.user import User
from fieldops.services.auth_service import auth_service
from fieldops.services.membership_service import membership_service
from fieldops.services.team_service import team_service

logger = logging.getLogger("fieldops.users")

PROFILE_FIELDS = ("name", "phone")


class UserService:

    @staticmethod
    def create_team_member(db: Session, context: AuthorizationContext, data: Dict[str, Any]) -> User:
        """Create an account directly inside the caller's team as ADMIN or MEMBER."""
        enforce(context, Requirement.team_manager(), "Only team owners and admins can add members")
        role = data.get("team_role") or TeamRole.member
        if role == TeamRole.owner:
            raise InvalidRoleChangeError("Ownership can only be obtained through a transfer")
        if role == TeamRole.admin and not context.team_role.outranks(TeamRole.admin):
            raise InsufficientRoleError("Only the team owner can create admins")

        scope = TenantScope(context)
        with transaction(db):
            team = membership_service.lock_team(db, scope.team_id)
            user = auth_service.create_account(
                db,
                username=data["username"],
                password=data["password"],
                name=data["name"],
                email=data.get("email"),
                phone=data.get("phone"),
            )
            membership_service.assign_member(db, user, team, role)
        db.refresh(user)
        logger.info("User %s created in team %s by %s", user.id, scope.team_id, context.user_id)
        return user

    @staticmethod
    def list_team_members(
        db: Session,
        context: AuthorizationContext,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        enforce(context, Requirement.membership())
        query = db.query(User).filter(User.team_id == TenantScope(context).team_id)
        total = query.count()
        rows = query.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(limit).all()
        return {"data": rows, "total": total, "limit": limit, "offset": offset}

    @staticmethod
    def get_team_member(db: Session, context: AuthorizationContext, member_id: int) -> User:
        enforce(context, Requirement.membership())
        return TenantScope(context).get(db, User, member_id, "Member")

    @staticmethod
    def update_team_member(
        db: Session,
        context: AuthorizationContext,
        member_id: int,
        patch: Dict[str, Any],
    ) -> User:
        """Profile, email and password edits; a role change follows the owner-only rule."""
        scope = TenantScope(context)
        if member_id != context.user_id:
            enforce(context, Requirement.team_manager(), "You can only edit your own profile")

        new_role = patch.get("team_role")
        with transaction(db):
            if new_role is not None:
                team_service.change_role_locked(
                    db, scope.team_id, member_id, context.user_id, new_role
                )
            member = scope.get(db, User, member_id, "Member")
            if member_id != context.user_id and not context.team_role.outranks(member.team_role):
                raise InsufficientRoleError("You cannot edit a member at or above your role")
            for key in PROFILE_FIELDS:
                if patch.get(key) is not None:
                    setattr(member, key, patch[key])
            if patch.get("email") is not None:
                email = patch["email"].strip().lower()
                taken = (
                    db.query(User.id)
                    .filter(func.lower(User.email) == email, User.id != member.id)
                    .first()
                )
                if taken:
                    raise ResourceConflictError("Email already exists")
                member.email = email
            if patch.get("password"):
                auth_service.set_password(db, member, patch["password"])
        db.refresh(member)
        if new_role is not None:
            logger.info("User %s role in team %s set to %s", member_id, scope.team_id, new_role.value)
        return member

    @staticmethod
    def remove_team_member(db: Session, context: AuthorizationContext, member_id: int) -> None:
        scope = TenantScope(context)
        team_service.remove_member(db, scope.team_id, context.user_id, member_id)


user_service = UserService()
