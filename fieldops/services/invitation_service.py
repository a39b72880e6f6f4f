"""Invitation ledger — invite, accept, decline, cancel and list team invitations."""

import logging
from datetime import timedelta
from typing import List

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldops.core.config import settings
from fieldops.core.exceptions import (
    AlreadyInTeamError,
    EmailMismatchError,
    InvalidStateError,
    InvitationExpiredError,
    ResourceConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from fieldops.core.policy import Requirement
from fieldops.core.security import generate_random_code
from fieldops.db.session import transaction
from fieldops.models.team import Team, TeamRole
from fieldops.models.team_invitation import (
    InvitationStatus,
    TeamInvitation,
    pending_key_for,
    utcnow,
)
from fieldops.models.user import User
from fieldops.services.membership_service import membership_service
from fieldops.services.team_service import team_service

logger = logging.getLogger("fieldops.invitations")

INVITABLE_ROLES = (TeamRole.admin, TeamRole.member)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class InvitationService:
    """Pending invitations keyed by an unguessable code, expired lazily on use."""

    @staticmethod
    def _find_by_code(db: Session, code: str) -> TeamInvitation:
        invitation = db.query(TeamInvitation).filter(TeamInvitation.invite_code == code).first()
        if not invitation:
            raise ResourceNotFoundError("Invalid invitation code")
        return invitation

    @staticmethod
    def _lock_invitation(db: Session, invitation_id: int) -> TeamInvitation:
        return (
            db.query(TeamInvitation)
            .filter(TeamInvitation.id == invitation_id)
            .populate_existing()
            .with_for_update()
            .one()
        )

    @staticmethod
    def invite(
        db: Session,
        team_id: int,
        inviter_id: int,
        email: str,
        role: TeamRole = TeamRole.member,
    ) -> TeamInvitation:
        """Create a PENDING invitation valid for INVITATION_TTL_DAYS."""
        if role not in INVITABLE_ROLES:
            raise ValidationError("Invitations can only grant the admin or member role")
        email = normalize_email(email)
        now = utcnow()

        with transaction(db):
            membership_service.lock_team(db, team_id)
            inviter = db.query(User).filter(User.id == inviter_id).first()
            team_service.authorize(
                inviter, team_id, Requirement.team_manager(),
                "Only team owners and admins can invite members",
            )

            existing = (
                db.query(TeamInvitation)
                .filter(
                    TeamInvitation.team_id == team_id,
                    TeamInvitation.email == email,
                    TeamInvitation.status == InvitationStatus.pending,
                )
                .with_for_update()
                .first()
            )
            if existing:
                if not existing.is_expired(now):
                    raise ResourceConflictError("An invitation is already pending for this email")
                existing.close(InvitationStatus.expired)
                db.flush()
                logger.info("Invitation %s expired on re-invite", existing.id)

            already_member = (
                db.query(User.id)
                .filter(func.lower(User.email) == email, User.team_id == team_id)
                .first()
            )
            if already_member:
                raise ResourceConflictError("This user is already a member of the team")

            invitation = TeamInvitation(
                team_id=team_id,
                email=email,
                invite_code=generate_random_code(),
                role=role,
                invited_by_id=inviter_id,
                status=InvitationStatus.pending,
                pending_key=pending_key_for(team_id, email),
                expires_at=now + timedelta(days=settings.INVITATION_TTL_DAYS),
                created_at=now,
            )
            db.add(invitation)
            try:
                db.flush()
            except IntegrityError as e:
                # a concurrent invite took the pending slot for this email
                raise ResourceConflictError("An invitation is already pending for this email") from e
            invitation_id = invitation.id

        logger.info("Invitation %s created for team %s by %s", invitation_id, team_id, inviter_id)
        return db.query(TeamInvitation).filter(TeamInvitation.id == invitation_id).one()

    @staticmethod
    def accept(db: Session, user_id: int, code: str) -> Team:
        """Redeem a code: attach the caller to the team and mark the invitation ACCEPTED."""
        now = utcnow()
        invitation = InvitationService._find_by_code(db, code)
        team_id = invitation.team_id
        expired = False

        with transaction(db):
            team = membership_service.lock_team(db, team_id)
            user = membership_service.lock_user(db, user_id)
            invitation = InvitationService._lock_invitation(db, invitation.id)
            if user is None:
                raise ResourceNotFoundError("User not found")
            if user.team_id is not None:
                raise AlreadyInTeamError("You already belong to a team. Leave your current team first.")
            if not invitation.is_pending:
                raise InvalidStateError("This invitation has already been used or expired")

            if invitation.is_expired(now):
                invitation.close(InvitationStatus.expired)
                expired = True
            else:
                if normalize_email(user.email or "") != invitation.email:
                    raise EmailMismatchError("This invitation was sent to a different email address")
                role = invitation.role if settings.INVITATION_GRANTS_INVITED_ROLE else TeamRole.member
                membership_service.assign_member(db, user, team, role)
                invitation.close(InvitationStatus.accepted)

        if expired:
            logger.info("Invitation %s expired at redemption", invitation.id)
            raise InvitationExpiredError("This invitation has expired")

        logger.info("Invitation %s accepted by user %s", invitation.id, user_id)
        return team_service.get_team_by_id(db, team_id)

    @staticmethod
    def decline(db: Session, user_id: int, code: str) -> TeamInvitation:
        """The invitee turns a PENDING invitation down."""
        now = utcnow()
        invitation = InvitationService._find_by_code(db, code)
        expired = False

        with transaction(db):
            user = membership_service.lock_user(db, user_id)
            invitation = InvitationService._lock_invitation(db, invitation.id)
            if user is None:
                raise ResourceNotFoundError("User not found")
            if not invitation.is_pending:
                raise InvalidStateError("This invitation has already been used or expired")
            if normalize_email(user.email or "") != invitation.email:
                raise EmailMismatchError("This invitation was sent to a different email address")
            if invitation.is_expired(now):
                invitation.close(InvitationStatus.expired)
                expired = True
            else:
                invitation.close(InvitationStatus.declined)

        if expired:
            raise InvitationExpiredError("This invitation has expired")
        logger.info("Invitation %s declined by user %s", invitation.id, user_id)
        db.refresh(invitation)
        return invitation

    @staticmethod
    def cancel(db: Session, team_id: int, invitation_id: int, caller_id: int) -> None:
        """Delete a still-PENDING invitation."""
        with transaction(db):
            membership_service.lock_team(db, team_id)
            caller = db.query(User).filter(User.id == caller_id).first()
            team_service.authorize(
                caller, team_id, Requirement.team_manager(),
                "Only team owners and admins can cancel invitations",
            )
            deleted = (
                db.query(TeamInvitation)
                .filter(
                    TeamInvitation.id == invitation_id,
                    TeamInvitation.team_id == team_id,
                    TeamInvitation.status == InvitationStatus.pending,
                )
                .delete(synchronize_session=False)
            )
            if deleted == 0:
                raise ResourceNotFoundError("Invitation not found or already processed")

        logger.info("Invitation %s cancelled by %s", invitation_id, caller_id)

    @staticmethod
    def list_for_team(db: Session, team_id: int, caller_id: int) -> List[TeamInvitation]:
        caller = db.query(User).filter(User.id == caller_id).first()
        team_service.authorize(
            caller, team_id, Requirement.team_manager(),
            "Only team owners and admins can view invitations",
        )
        return (
            db.query(TeamInvitation)
            .filter(
                TeamInvitation.team_id == team_id,
                TeamInvitation.status == InvitationStatus.pending,
            )
            .order_by(TeamInvitation.created_at.desc(), TeamInvitation.id.desc())
            .all()
        )

    @staticmethod
    def list_for_user(db: Session, user_id: int) -> List[TeamInvitation]:
        """Pending invitations addressed to the caller's own email."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user or not user.email:
            return []
        return (
            db.query(TeamInvitation)
            .filter(
                TeamInvitation.email == normalize_email(user.email),
                TeamInvitation.status == InvitationStatus.pending,
            )
            .order_by(TeamInvitation.created_at.desc(), TeamInvitation.id.desc())
            .all()
        )


invitation_service = InvitationService()
