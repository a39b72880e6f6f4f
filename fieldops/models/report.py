"""Inspection report and report media models."""

import enum

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Enum,
    CheckConstraint, func,
)
from sqlalchemy.orm import relationship

from fieldops.db.base import Base


class MaintenanceStatus(str, enum.Enum):
    done = "done"
    not_done = "not_done"
    not_required = "not_required"


class Report(Base):
    """Inspection report submitted by a team member for one site."""
    __tablename__ = "reports"
    __table_args__ = (
        CheckConstraint(
            "cartridge_filter_replacement BETWEEN 0 AND 2",
            name="ck_reports_cartridge_filter_replacement",
        ),
        CheckConstraint(
            "membrane_replacement BETWEEN 0 AND 8",
            name="ck_reports_membrane_replacement",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="RESTRICT"), nullable=False, index=True)
    submitted_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Water quality
    raw_water_tds = Column(Float, nullable=False)
    permeate_water_tds = Column(Float, nullable=False)
    raw_water_ph = Column(Float, nullable=False)
    permeate_water_ph = Column(Float, nullable=False)
    product_water_tds = Column(Float, nullable=False)
    product_water_flow = Column(Float, nullable=False)
    product_water_ph = Column(Float, nullable=False)
    reject_water_flow = Column(Float, nullable=False)

    # Pressure & power
    membrane_inlet_pressure = Column(Float, nullable=False)
    membrane_outlet_pressure = Column(Float, nullable=False)
    raw_water_inlet_pressure = Column(Float, nullable=False)
    volts_amperes = Column(Float, nullable=False)

    # Maintenance
    multimedia_backwash = Column(Enum(MaintenanceStatus), nullable=False)
    carbon_backwash = Column(Enum(MaintenanceStatus), nullable=False)
    membrane_cleaning = Column(Enum(MaintenanceStatus), nullable=False)
    arsenic_media_backwash = Column(Enum(MaintenanceStatus), nullable=False)
    cip = Column(Boolean, nullable=False, default=False)
    chemical_refill_litres = Column(Float, nullable=False)
    cartridge_filter_replacement = Column(Float, nullable=False)
    membrane_replacement = Column(Float, nullable=False)

    edit_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    site = relationship("Site", lazy="joined")
    submitted_by = relationship("User", foreign_keys=[submitted_by_id], lazy="joined")
    media = relationship(
        "ReportMedia",
        back_populates="report",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReportMedia.id.desc()",
    )


class ReportMedia(Base):
    """Image attached to a report; the bytes live in object storage."""
    __tablename__ = "report_media"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    object_key = Column(String(500), nullable=False)
    url = Column(String(1000), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    report = relationship("Report", back_populates="media")
