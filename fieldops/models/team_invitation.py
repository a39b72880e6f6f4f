"""TeamInvitation model."""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship

from fieldops.db.base import Base
from fieldops.models.team import TeamRole


class InvitationStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    expired = "expired"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def pending_key_for(team_id: int, email: str) -> str:
    return f"{team_id}:{email}"


class TeamInvitation(Base):
    """Time-limited, single-use offer for one email to join one team.

    `pending_key` is set while the invitation is pending and cleared on any
    transition, so the unique index allows one pending row per (team, email)
    while keeping any number of terminal rows.
    """
    __tablename__ = "team_invitations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)  # case-folded
    invite_code = Column(String(128), unique=True, nullable=False, index=True)
    role = Column(Enum(TeamRole), default=TeamRole.member, nullable=False)
    invited_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status = Column(Enum(InvitationStatus), default=InvitationStatus.pending, nullable=False)
    pending_key = Column(String(300), unique=True, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    team = relationship("Team", lazy="joined")
    invited_by = relationship("User", foreign_keys=[invited_by_id], lazy="joined")

    @property
    def is_pending(self) -> bool:
        return self.status == InvitationStatus.pending

    def is_expired(self, now: datetime) -> bool:
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            # SQLite hands back naive values
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now > expires_at

    def close(self, status: InvitationStatus) -> None:
        """Move out of PENDING into a terminal status."""
        self.status = status
        self.pending_key = None
