"""Tests for accounts and in-team member management."""

import pytest

from fieldops.core.exceptions import (
    AuthenticationError,
    CannotRemoveOwnerError,
    InsufficientRoleError,
    InvalidRoleChangeError,
    ResourceConflictError,
    ResourceNotFoundError,
)
from fieldops.core.policy import AuthorizationContext
from fieldops.core.security import verify_token
from fieldops.models.refresh_token import RefreshToken
from fieldops.models.team import TeamRole
from fieldops.models.user import GlobalRole, User
from fieldops.services.auth_service import auth_service
from fieldops.services.user_service import user_service

from conftest import PASSWORD, assert_membership_invariants


def context_for(db, user):
    db.refresh(user)
    return AuthorizationContext.from_user(user)


NEW_MEMBER = {"username": "Nina", "password": "pass1234", "name": "Nina", "email": "Nina@Acme.io"}


# =============================================================================
# Accounts
# =============================================================================


class TestAccounts:
    def test_signup_is_teamless_user(self, db):
        user = auth_service.signup(db, "Bob", "pass1234", "Bob", "Bob@X.com")
        assert user.username == "bob"
        assert user.email == "bob@x.com"
        assert user.role == GlobalRole.user
        assert user.team_id is None and user.team_role is None

    def test_username_is_case_insensitive_unique(self, db):
        auth_service.signup(db, "bob", "pass1234", "Bob")
        with pytest.raises(ResourceConflictError):
            auth_service.signup(db, "BOB", "pass1234", "Bobby")

    def test_email_is_unique(self, db):
        auth_service.signup(db, "bob", "pass1234", "Bob", "bob@x.com")
        with pytest.raises(ResourceConflictError):
            auth_service.signup(db, "robert", "pass1234", "Robert", "BOB@x.com")

    def test_login_issues_tokens(self, db, make_user):
        user = make_user("bob")
        result = auth_service.authenticate(db, "BOB", PASSWORD)
        assert verify_token(result["access_token"]) == user.id
        assert db.query(RefreshToken).filter(RefreshToken.user_id == user.id).count() == 1

    def test_bad_password(self, db, make_user):
        make_user("bob")
        with pytest.raises(AuthenticationError):
            auth_service.authenticate(db, "bob", "wrong-password")

    def test_refresh_and_logout(self, db, make_user):
        make_user("bob")
        tokens = auth_service.authenticate(db, "bob", PASSWORD)
        assert auth_service.refresh_access_token(db, tokens["refresh_token"])["access_token"]

        auth_service.logout(db, tokens["refresh_token"])
        with pytest.raises(AuthenticationError):
            auth_service.refresh_access_token(db, tokens["refresh_token"])

    def test_access_token_cannot_refresh(self, db, make_user):
        make_user("bob")
        tokens = auth_service.authenticate(db, "bob", PASSWORD)
        with pytest.raises(AuthenticationError):
            auth_service.refresh_access_token(db, tokens["access_token"])

    def test_logout_all(self, db, make_user):
        user = make_user("bob")
        first = auth_service.authenticate(db, "bob", PASSWORD)
        second = auth_service.authenticate(db, "bob", PASSWORD)
        assert auth_service.logout_all(db, user.id) == 2
        for tokens in (first, second):
            with pytest.raises(AuthenticationError):
                auth_service.refresh_access_token(db, tokens["refresh_token"])

    def test_change_password_revokes_sessions(self, db, make_user):
        user = make_user("bob")
        tokens = auth_service.authenticate(db, "bob", PASSWORD)
        with pytest.raises(AuthenticationError):
            auth_service.change_password(db, user.id, "not-it", "newpass123")

        auth_service.change_password(db, user.id, PASSWORD, "newpass123")
        with pytest.raises(AuthenticationError):
            auth_service.refresh_access_token(db, tokens["refresh_token"])
        assert auth_service.authenticate(db, "bob", "newpass123")["access_token"]

    def test_create_admin_is_idempotent(self, db):
        admin = auth_service.create_admin(db, "root", "rootpass1")
        assert admin.role == GlobalRole.admin
        assert auth_service.create_admin(db, "ROOT", "other").id == admin.id

    def test_verify_rejects_garbage(self):
        with pytest.raises(AuthenticationError):
            verify_token("not-a-jwt")


# =============================================================================
# Team member management
# =============================================================================


class TestCreateTeamMember:
    def test_owner_creates_admin(self, db, team_setup):
        user = user_service.create_team_member(
            db, context_for(db, team_setup["owner"]), {**NEW_MEMBER, "team_role": TeamRole.admin}
        )
        assert user.team_id == team_setup["team"].id
        assert user.team_role == TeamRole.admin
        assert user.role == GlobalRole.user
        assert_membership_invariants(db)

    def test_admin_creates_member(self, db, team_setup):
        user = user_service.create_team_member(db, context_for(db, team_setup["admin"]), dict(NEW_MEMBER))
        assert user.team_role == TeamRole.member
        assert user.username == "nina"

    def test_admin_cannot_create_admin(self, db, team_setup):
        with pytest.raises(InsufficientRoleError):
            user_service.create_team_member(
                db, context_for(db, team_setup["admin"]), {**NEW_MEMBER, "team_role": TeamRole.admin}
            )

    def test_nobody_creates_owner(self, db, team_setup):
        with pytest.raises(InvalidRoleChangeError):
            user_service.create_team_member(
                db, context_for(db, team_setup["owner"]), {**NEW_MEMBER, "team_role": TeamRole.owner}
            )

    def test_member_cannot_create(self, db, team_setup):
        with pytest.raises(InsufficientRoleError):
            user_service.create_team_member(db, context_for(db, team_setup["member"]), dict(NEW_MEMBER))

    def test_duplicate_username(self, db, team_setup):
        with pytest.raises(ResourceConflictError):
            user_service.create_team_member(
                db, context_for(db, team_setup["owner"]), {**NEW_MEMBER, "username": "MIA"}
            )


class TestManageTeamMembers:
    def test_list_and_get(self, db, team_setup):
        ctx = context_for(db, team_setup["member"])
        page = user_service.list_team_members(db, ctx, limit=2)
        assert page["total"] == 3
        assert len(page["data"]) == 2
        assert user_service.get_team_member(db, ctx, team_setup["owner"].id).id == team_setup["owner"].id
        with pytest.raises(ResourceNotFoundError):
            user_service.get_team_member(db, ctx, team_setup["outsider"].id)

    def test_admin_edits_member_profile(self, db, team_setup):
        member = user_service.update_team_member(
            db, context_for(db, team_setup["admin"]), team_setup["member"].id,
            {"name": "Mia Field", "phone": "+15550001111"},
        )
        assert member.name == "Mia Field"
        assert member.phone == "+15550001111"

    def test_admin_cannot_edit_owner(self, db, team_setup):
        with pytest.raises(InsufficientRoleError):
            user_service.update_team_member(
                db, context_for(db, team_setup["admin"]), team_setup["owner"].id, {"name": "Nope"}
            )

    def test_member_edits_self_only(self, db, team_setup):
        ctx = context_for(db, team_setup["member"])
        assert user_service.update_team_member(db, ctx, team_setup["member"].id, {"name": "Me"}).name == "Me"
        with pytest.raises(InsufficientRoleError):
            user_service.update_team_member(db, ctx, team_setup["admin"].id, {"name": "You"})

    def test_email_conflict(self, db, team_setup):
        with pytest.raises(ResourceConflictError):
            user_service.update_team_member(
                db, context_for(db, team_setup["owner"]), team_setup["member"].id,
                {"email": team_setup["admin"].email},
            )

    def test_role_change_goes_through_owner_rule(self, db, team_setup):
        member_id = team_setup["member"].id
        with pytest.raises(InsufficientRoleError):
            user_service.update_team_member(
                db, context_for(db, team_setup["admin"]), member_id, {"team_role": TeamRole.admin}
            )
        member = user_service.update_team_member(
            db, context_for(db, team_setup["owner"]), member_id, {"team_role": TeamRole.admin}
        )
        assert member.team_role == TeamRole.admin

    def test_failed_edit_keeps_role_unchanged(self, db, team_setup):
        member_id = team_setup["member"].id
        with pytest.raises(ResourceConflictError):
            user_service.update_team_member(
                db, context_for(db, team_setup["owner"]), member_id,
                {"team_role": TeamRole.admin, "email": team_setup["admin"].email},
            )
        db.expire_all()
        member = db.get(User, member_id)
        assert member.team_role == TeamRole.member
        assert member.email == "mia@acme.io"
        assert_membership_invariants(db)

    def test_password_reset_revokes_tokens(self, db, team_setup):
        tokens = auth_service.authenticate(db, "mia", PASSWORD)
        user_service.update_team_member(
            db, context_for(db, team_setup["owner"]), team_setup["member"].id, {"password": "reset1234"}
        )
        with pytest.raises(AuthenticationError):
            auth_service.refresh_access_token(db, tokens["refresh_token"])

    def test_remove_uses_same_matrix(self, db, team_setup):
        with pytest.raises(CannotRemoveOwnerError):
            user_service.remove_team_member(db, context_for(db, team_setup["admin"]), team_setup["owner"].id)

        user_service.remove_team_member(db, context_for(db, team_setup["admin"]), team_setup["member"].id)
        db.refresh(team_setup["member"])
        assert team_setup["member"].team_id is None
        assert_membership_invariants(db)
