"""Team model and the team-role privilege ladder."""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship

from fieldops.db.base import Base


class TeamRole(str, enum.Enum):
    owner = "owner"
    admin = "admin"
    member = "member"

    def outranks(self, other: "TeamRole") -> bool:
        """True when this role carries strictly more privilege than `other`.

        Used only where order matters (role-change and removal gating);
        plain membership checks compare roles by identity.
        """
        return _PRIVILEGE[self] > _PRIVILEGE[other]


_PRIVILEGE = {
    TeamRole.owner: 3,
    TeamRole.admin: 2,
    TeamRole.member: 1,
}


class Team(Base):
    """A tenant: a named group of users sharing ownership of resources.

    `owner_id` and the members' `team_id`/`team_role` columns are written only
    by `fieldops.services.membership_service`; the relationships below are
    read-only views.
    """
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)
    logo_url = Column(String(255), nullable=True)
    owner_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT", use_alter=True, name="fk_teams_owner_id"),
        nullable=False,
    )
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    owner = relationship("User", foreign_keys=[owner_id], viewonly=True, lazy="joined")
    members = relationship(
        "User",
        primaryjoin="Team.id == User.team_id",
        viewonly=True,
        lazy="selectin",
        order_by="User.id",
    )
