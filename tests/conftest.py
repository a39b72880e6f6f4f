"""
Shared fixtures: an in-memory SQLite store, user/team factories, a fake
media storage and a FastAPI TestClient wired to the same session.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DEBUG", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import fieldops.models  # noqa: F401
from fieldops.core.security import hash_password
from fieldops.db.base import Base
from fieldops.db.session import get_db, transaction
from fieldops.models.team import Team, TeamRole
from fieldops.models.team_invitation import InvitationStatus, TeamInvitation
from fieldops.models.user import GlobalRole, User
from fieldops.services.membership_service import membership_service
from fieldops.services.storage_service import MediaFile, MediaStorage, set_media_storage
from fieldops.services.team_service import team_service

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


# =============================================================================
# Fakes
# =============================================================================


class FakeMediaStorage(MediaStorage):
    """Keeps objects in a dict instead of a MinIO bucket."""

    def __init__(self):
        self.bucket = "test-media"
        self.objects = {}
        self.counter = 0

    def ensure_bucket(self) -> None:
        pass

    def upload(self, media: MediaFile, prefix: str):
        self.counter += 1
        key = f"{prefix}/{self.counter}-{media.filename}"
        self.objects[key] = media.data
        return key, self.object_url(key)

    def remove(self, key: str) -> None:
        self.objects.pop(key, None)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def storage():
    fake = FakeMediaStorage()
    set_media_storage(fake)
    yield fake
    set_media_storage(None)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_user(db):
    """Create a team-less account. Email defaults to <username>@acme.io."""

    def _make(username, email=None, role=GlobalRole.user, name=None):
        user = User(
            username=username.lower(),
            email=email if email is not None else f"{username.lower()}@acme.io",
            hashed_password=PASSWORD_HASH,
            name=name or username.title(),
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_team(db):
    def _make(owner, slug="acme", name=None):
        return team_service.create_team(db, owner.id, name or slug.title(), slug)

    return _make


@pytest.fixture
def add_member(db):
    """Attach a team-less user to a team without going through an invitation."""

    def _add(team, user, role=TeamRole.member):
        with transaction(db):
            locked_team = membership_service.lock_team(db, team.id)
            locked_user = membership_service.lock_user(db, user.id)
            membership_service.assign_member(db, locked_user, locked_team, role)
        db.refresh(user)
        return user

    return _add


@pytest.fixture
def team_setup(make_user, make_team, add_member):
    """One team: owner, admin, member, plus a team-less outsider."""
    owner = make_user("olivia")
    team = make_team(owner)
    admin = add_member(team, make_user("adam"), TeamRole.admin)
    member = add_member(team, make_user("mia"))
    outsider = make_user("otto")
    return {"team": team, "owner": owner, "admin": admin, "member": member, "outsider": outsider}


# =============================================================================
# Invariants
# =============================================================================


def assert_membership_invariants(db):
    """Pairing, single-owner and single-pending-invitation rules over the whole store."""
    db.expire_all()
    for user in db.query(User).all():
        assert (user.team_id is None) == (user.team_role is None), user.username

    for team in db.query(Team).all():
        owners = db.query(User).filter(User.team_id == team.id, User.team_role == TeamRole.owner).all()
        assert len(owners) == 1, team.slug
        assert owners[0].id == team.owner_id

    pending = db.query(TeamInvitation).filter(TeamInvitation.status == InvitationStatus.pending).all()
    pairs = [(inv.team_id, inv.email) for inv in pending]
    assert len(pairs) == len(set(pairs))


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
def client(db):
    from fieldops.main import app

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Log a user in over HTTP and return Authorization headers."""

    def _login(username, password=PASSWORD):
        resp = client.post("/api/auth/login", json={"username": username, "password": password})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _login


# =============================================================================
# Sample payloads
# =============================================================================


READINGS = {
    "raw_water_tds": 850.0,
    "permeate_water_tds": 40.0,
    "raw_water_ph": 7.4,
    "permeate_water_ph": 6.9,
    "product_water_tds": 60.0,
    "product_water_flow": 1.2,
    "product_water_ph": 7.1,
    "reject_water_flow": 0.6,
    "membrane_inlet_pressure": 12.5,
    "membrane_outlet_pressure": 11.0,
    "raw_water_inlet_pressure": 2.0,
    "volts_amperes": 230.0,
    "multimedia_backwash": "done",
    "carbon_backwash": "not_done",
    "membrane_cleaning": "not_required",
    "arsenic_media_backwash": "done",
    "cip": False,
    "chemical_refill_litres": 5.0,
    "cartridge_filter_replacement": 1,
    "membrane_replacement": 0,
}
