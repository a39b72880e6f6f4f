"""Site model: a field installation owned by a team."""

import enum

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum, func
from sqlalchemy.orm import relationship

from fieldops.db.base import Base


class SiteType(str, enum.Enum):
    uf = "uf"
    ro = "ro"


class Site(Base):
    """Water-treatment site. Always belongs to a team; optionally assigned to one member."""
    __tablename__ = "sites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    assignee_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    address = Column(String(500), nullable=False)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    district = Column(String(255), nullable=False)
    site_type = Column(Enum(SiteType), nullable=False)
    capacity = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    assignee = relationship("User", foreign_keys=[assignee_id], lazy="joined")
