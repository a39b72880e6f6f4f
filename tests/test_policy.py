"""
Tests for the authorization policy engine.

`decide` is pure: every case is a (context, requirement) -> outcome row.
"""

import pytest

from fieldops.core.exceptions import (
    AuthenticationError,
    InsufficientGlobalRoleError,
    InsufficientRoleError,
    NotTeamMemberError,
)
from fieldops.core.policy import (
    AuthorizationContext,
    DenyReason,
    Requirement,
    decide,
    enforce,
)
from fieldops.models.team import TeamRole
from fieldops.models.user import GlobalRole


def ctx(team_role=None, global_role=GlobalRole.user, team_id=1):
    if team_role is None:
        team_id = None
    return AuthorizationContext(user_id=7, global_role=global_role, team_id=team_id, team_role=team_role)


TEAMLESS = ctx()
OWNER = ctx(TeamRole.owner)
ADMIN = ctx(TeamRole.admin)
MEMBER = ctx(TeamRole.member)
GLOBAL_ADMIN = ctx(global_role=GlobalRole.admin)


# =============================================================================
# decide() table
# =============================================================================


DECISION_TABLE = [
    # unauthenticated always loses, whatever the requirement
    (None, Requirement.none(), DenyReason.unauthenticated),
    (None, Requirement.membership(), DenyReason.unauthenticated),
    (None, Requirement.global_role_in(GlobalRole.user), DenyReason.unauthenticated),
    # no restriction
    (TEAMLESS, Requirement.none(), None),
    (MEMBER, Requirement.none(), None),
    # membership
    (TEAMLESS, Requirement.membership(), DenyReason.not_team_member),
    (MEMBER, Requirement.membership(), None),
    (OWNER, Requirement.membership(), None),
    # team roles
    (TEAMLESS, Requirement.team_role_in(TeamRole.member), DenyReason.insufficient_team_role),
    (MEMBER, Requirement.team_role_in(TeamRole.owner, TeamRole.admin), DenyReason.insufficient_team_role),
    (ADMIN, Requirement.team_role_in(TeamRole.owner, TeamRole.admin), None),
    (ADMIN, Requirement.team_role_in(TeamRole.owner), DenyReason.insufficient_team_role),
    (OWNER, Requirement.team_role_in(TeamRole.owner), None),
    # presets
    (TEAMLESS, Requirement.team_manager(), DenyReason.not_team_member),
    (MEMBER, Requirement.team_manager(), DenyReason.insufficient_team_role),
    (ADMIN, Requirement.team_manager(), None),
    (OWNER, Requirement.team_manager(), None),
    (ADMIN, Requirement.team_owner(), DenyReason.insufficient_team_role),
    (OWNER, Requirement.team_owner(), None),
    # global roles are independent of team roles
    (OWNER, Requirement.global_role_in(GlobalRole.admin), DenyReason.insufficient_global_role),
    (GLOBAL_ADMIN, Requirement.global_role_in(GlobalRole.admin), None),
    (GLOBAL_ADMIN, Requirement.membership(), DenyReason.not_team_member),
    (MEMBER, Requirement.global_role_in(GlobalRole.user, GlobalRole.admin), None),
]


@pytest.mark.parametrize("context,requirement,reason", DECISION_TABLE)
def test_decide_table(context, requirement, reason):
    decision = decide(context, requirement)
    if reason is None:
        assert decision.allowed
        assert decision.reason is None
    else:
        assert not decision.allowed
        assert decision.reason == reason


def test_membership_rule_applies_before_team_role_rule():
    requirement = Requirement(team_membership=True, team_roles=frozenset({TeamRole.owner}))
    assert decide(TEAMLESS, requirement).reason == DenyReason.not_team_member


def test_team_role_rule_applies_before_global_role_rule():
    requirement = Requirement(
        team_roles=frozenset({TeamRole.owner}),
        global_roles=frozenset({GlobalRole.admin}),
    )
    assert decide(MEMBER, requirement).reason == DenyReason.insufficient_team_role


def test_decision_is_truthy_only_when_allowed():
    assert decide(OWNER, Requirement.team_owner())
    assert not decide(MEMBER, Requirement.team_owner())


# =============================================================================
# enforce()
# =============================================================================


class TestEnforce:
    @pytest.mark.parametrize(
        "context,requirement,error",
        [
            (None, Requirement.none(), AuthenticationError),
            (TEAMLESS, Requirement.membership(), NotTeamMemberError),
            (MEMBER, Requirement.team_manager(), InsufficientRoleError),
            (OWNER, Requirement.global_role_in(GlobalRole.admin), InsufficientGlobalRoleError),
        ],
    )
    def test_denial_raises_typed_error(self, context, requirement, error):
        with pytest.raises(error):
            enforce(context, requirement)

    def test_custom_message(self):
        with pytest.raises(InsufficientRoleError, match="owners only"):
            enforce(MEMBER, Requirement.team_owner(), "owners only")

    def test_allow_returns_context(self):
        assert enforce(ADMIN, Requirement.team_manager()) is ADMIN


# =============================================================================
# Role ladder
# =============================================================================


class TestOutranks:
    def test_strict_order(self):
        assert TeamRole.owner.outranks(TeamRole.admin)
        assert TeamRole.admin.outranks(TeamRole.member)
        assert TeamRole.owner.outranks(TeamRole.member)

    def test_not_reflexive(self):
        for role in TeamRole:
            assert not role.outranks(role)

    def test_not_reversed(self):
        assert not TeamRole.member.outranks(TeamRole.admin)
        assert not TeamRole.admin.outranks(TeamRole.owner)
