"""User model."""

import enum

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Enum, CheckConstraint, func,
)
from sqlalchemy.orm import relationship

from fieldops.db.base import Base
from fieldops.models.team import TeamRole


class GlobalRole(str, enum.Enum):
    admin = "admin"
    user = "user"


class User(Base):
    """Platform account. Belongs to at most one team."""
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "(team_id IS NULL) = (team_role IS NULL)",
            name="ck_users_team_role_pairing",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False, index=True)  # stored lower-cased
    email = Column(String(255), unique=True, nullable=True, index=True)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    role = Column(Enum(GlobalRole), default=GlobalRole.user, nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True)
    team_role = Column(Enum(TeamRole), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    team = relationship("Team", foreign_keys=[team_id], viewonly=True)
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
