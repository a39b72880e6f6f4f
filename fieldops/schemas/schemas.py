"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime

from fieldops.models.team import TeamRole
from fieldops.models.user import GlobalRole
from fieldops.models.team_invitation import InvitationStatus
from fieldops.models.site import SiteType
from fieldops.models.report import MaintenanceStatus

PHONE_PATTERN = r"^\+?[0-9][0-9 \-]{6,19}$"


# ---- Auth ----
class SignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)

class LoginRequest(BaseModel):
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=4)

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user: Optional["UserOut"] = None

class RefreshRequest(BaseModel):
    refresh_token: str

class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=6)


# ---- User ----
class UserOut(BaseModel):
    id: int
    username: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: GlobalRole
    team_id: Optional[int] = None
    team_role: Optional[TeamRole] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class UserBrief(BaseModel):
    id: int
    username: str
    name: str

    class Config:
        from_attributes = True

class TeamMemberCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    team_role: TeamRole = TeamRole.member

class TeamMemberUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    password: Optional[str] = Field(None, min_length=6)
    team_role: Optional[TeamRole] = None

class UserPage(BaseModel):
    data: List[UserOut]
    total: int
    limit: int
    offset: int


# ---- Team ----
class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: str = Field(..., min_length=2, max_length=50, pattern=r"^[A-Za-z0-9][A-Za-z0-9\-]*$")
    description: Optional[str] = Field(None, max_length=500)

class TeamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    logo_url: Optional[str] = Field(None, max_length=255)
    is_active: Optional[bool] = None

class TeamOut(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    owner_id: int
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class TeamDetail(TeamOut):
    owner: Optional[UserBrief] = None
    members: List[UserOut] = []

class MemberRoleUpdate(BaseModel):
    role: TeamRole

class TransferOwnershipRequest(BaseModel):
    new_owner_id: int


# ---- Invitation ----
class InvitationCreate(BaseModel):
    email: EmailStr
    role: TeamRole = TeamRole.member

class InvitationCodeRequest(BaseModel):
    code: str = Field(..., min_length=1)

class InvitationOut(BaseModel):
    id: int
    team_id: int
    email: str
    invite_code: str
    role: TeamRole
    status: InvitationStatus
    invited_by_id: Optional[int] = None
    expires_at: datetime
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class InvitationForUser(BaseModel):
    """What an invitee sees: the team, but not who else was invited."""
    id: int
    invite_code: str
    role: TeamRole
    status: InvitationStatus
    expires_at: datetime
    team: TeamOut
    invited_by: Optional[UserBrief] = None

    class Config:
        from_attributes = True


# ---- Site ----
class SiteCreate(BaseModel):
    address: str = Field(..., min_length=1, max_length=500)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    district: str = Field(..., min_length=1, max_length=255)
    site_type: SiteType
    capacity: int = Field(..., gt=0)
    assignee_id: Optional[int] = None

class SiteUpdate(BaseModel):
    address: Optional[str] = Field(None, min_length=1, max_length=500)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    district: Optional[str] = Field(None, min_length=1, max_length=255)
    site_type: Optional[SiteType] = None
    capacity: Optional[int] = Field(None, gt=0)
    assignee_id: Optional[int] = None

class SiteOut(BaseModel):
    id: int
    team_id: int
    address: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    district: str
    site_type: SiteType
    capacity: int
    assignee_id: Optional[int] = None
    assignee: Optional[UserBrief] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class SitePage(BaseModel):
    data: List[SiteOut]
    total: int
    limit: int
    offset: int


# ---- Report ----
class ReportFields(BaseModel):
    raw_water_tds: float = Field(..., ge=0)
    permeate_water_tds: float = Field(..., ge=0)
    raw_water_ph: float = Field(..., ge=0, le=14)
    permeate_water_ph: float = Field(..., ge=0, le=14)
    product_water_tds: float = Field(..., ge=0)
    product_water_flow: float = Field(..., ge=0)
    product_water_ph: float = Field(..., ge=0, le=14)
    reject_water_flow: float = Field(..., ge=0)
    membrane_inlet_pressure: float = Field(..., ge=0)
    membrane_outlet_pressure: float = Field(..., ge=0)
    raw_water_inlet_pressure: float = Field(..., ge=0)
    volts_amperes: float = Field(..., ge=0)
    multimedia_backwash: MaintenanceStatus
    carbon_backwash: MaintenanceStatus
    membrane_cleaning: MaintenanceStatus
    arsenic_media_backwash: MaintenanceStatus
    cip: bool = False
    chemical_refill_litres: float = Field(..., ge=0)
    cartridge_filter_replacement: float = Field(..., ge=0, le=2)
    membrane_replacement: float = Field(..., ge=0, le=8)

class ReportCreate(ReportFields):
    site_id: int
    submitted_by_id: Optional[int] = None

class ReportUpdate(BaseModel):
    raw_water_tds: Optional[float] = Field(None, ge=0)
    permeate_water_tds: Optional[float] = Field(None, ge=0)
    raw_water_ph: Optional[float] = Field(None, ge=0, le=14)
    permeate_water_ph: Optional[float] = Field(None, ge=0, le=14)
    product_water_tds: Optional[float] = Field(None, ge=0)
    product_water_flow: Optional[float] = Field(None, ge=0)
    product_water_ph: Optional[float] = Field(None, ge=0, le=14)
    reject_water_flow: Optional[float] = Field(None, ge=0)
    membrane_inlet_pressure: Optional[float] = Field(None, ge=0)
    membrane_outlet_pressure: Optional[float] = Field(None, ge=0)
    raw_water_inlet_pressure: Optional[float] = Field(None, ge=0)
    volts_amperes: Optional[float] = Field(None, ge=0)
    multimedia_backwash: Optional[MaintenanceStatus] = None
    carbon_backwash: Optional[MaintenanceStatus] = None
    membrane_cleaning: Optional[MaintenanceStatus] = None
    arsenic_media_backwash: Optional[MaintenanceStatus] = None
    cip: Optional[bool] = None
    chemical_refill_litres: Optional[float] = Field(None, ge=0)
    cartridge_filter_replacement: Optional[float] = Field(None, ge=0, le=2)
    membrane_replacement: Optional[float] = Field(None, ge=0, le=8)
    remove_media_ids: List[int] = []

class MediaOut(BaseModel):
    id: int
    url: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ReportOut(ReportFields):
    id: int
    team_id: int
    site_id: int
    submitted_by_id: Optional[int] = None
    submitted_by: Optional[UserBrief] = None
    edit_count: int
    media: List[MediaOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ReportPage(BaseModel):
    data: List[ReportOut]
    total: int
    limit: int
    offset: int

class SubmitterReportPage(ReportPage):
    this_month: int


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
    success: bool = True

TokenResponse.model_rebuild()
