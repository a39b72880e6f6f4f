"""Tests for the membership store and the transaction unit around it."""

import pytest
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from fieldops.core.exceptions import (
    AlreadyInTeamError,
    InvalidRoleChangeError,
    NotTeamMemberError,
    OwnerMustTransferError,
    ResourceNotFoundError,
    TransactionFailedError,
)
from fieldops.db.session import transaction
from fieldops.models.team import TeamRole
from fieldops.models.user import User
from fieldops.services.membership_service import membership_service

from conftest import assert_membership_invariants


class TestMembershipStore:
    def test_lock_missing_team(self, db):
        with pytest.raises(ResourceNotFoundError):
            membership_service.lock_team(db, 123)

    def test_assign_member_requires_teamless_user(self, db, team_setup):
        team = team_setup["team"]
        with pytest.raises(AlreadyInTeamError):
            membership_service.assign_member(db, team_setup["member"], team)
        db.rollback()

    def test_assign_member_never_grants_owner(self, db, team_setup):
        with pytest.raises(InvalidRoleChangeError):
            membership_service.assign_member(db, team_setup["outsider"], team_setup["team"], TeamRole.owner)
        db.rollback()

    def test_detach_teamless_user(self, db, team_setup):
        with pytest.raises(NotTeamMemberError):
            membership_service.detach(db, team_setup["outsider"])

    def test_detach_owner(self, db, team_setup):
        with pytest.raises(OwnerMustTransferError):
            membership_service.detach(db, team_setup["owner"])

    def test_change_role_on_owner(self, db, team_setup):
        with pytest.raises(InvalidRoleChangeError):
            membership_service.change_role(db, team_setup["owner"], TeamRole.member)

    def test_detach_all_clears_whole_team(self, db, team_setup):
        team = membership_service.lock_team(db, team_setup["team"].id)
        assert membership_service.detach_all(db, team) == 3
        assert db.query(User).filter(User.team_id.isnot(None)).count() == 0
        db.rollback()
        assert_membership_invariants(db)


class TestTransaction:
    def test_domain_error_rolls_back(self, db, team_setup):
        member = team_setup["member"]
        with pytest.raises(OwnerMustTransferError):
            with transaction(db):
                membership_service.detach(db, member)
                membership_service.detach(db, team_setup["owner"])

        db.refresh(member)
        assert member.team_id == team_setup["team"].id
        assert member.team_role == TeamRole.member

    def test_store_error_becomes_transaction_failed(self, db, team_setup):
        with pytest.raises(TransactionFailedError) as excinfo:
            with transaction(db):
                db.add(User(username="olivia", hashed_password="x", name="Dup"))
                db.flush()
        assert isinstance(excinfo.value.__cause__, SQLAlchemyError)
        assert db.query(User).count() == 4

    def test_pairing_check_constraint(self, db, team_setup):
        outsider = team_setup["outsider"]
        outsider.team_role = TeamRole.member
        with pytest.raises(IntegrityError):
            db.flush()
        db.rollback()
