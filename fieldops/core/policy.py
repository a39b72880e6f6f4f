"""Authorization policy engine.

`decide(context, requirement)` is the single, side-effect free decision
function every resource operation is gated by. Rules are applied in order:

1. no context (unauthenticated)             -> deny UNAUTHENTICATED
2. membership required, context has no team -> deny NOT_TEAM_MEMBER
3. team roles required, role missing/absent -> deny INSUFFICIENT_TEAM_ROLE
4. global roles required, role not in set   -> deny INSUFFICIENT_GLOBAL_ROLE
5. otherwise                                -> allow
"""

import enum
import logging
from dataclasses import dataclass
from typing import FrozenSet, Optional

from fieldops.core.exceptions import (
    AuthenticationError,
    InsufficientGlobalRoleError,
    InsufficientRoleError,
    NotTeamMemberError,
)
from fieldops.models.team import TeamRole
from fieldops.models.user import GlobalRole

logger = logging.getLogger("fieldops.policy")


@dataclass(frozen=True)
class AuthorizationContext:
    """Who is calling, resolved fresh from the User row on every request."""

    user_id: int
    global_role: GlobalRole
    team_id: Optional[int] = None
    team_role: Optional[TeamRole] = None

    @classmethod
    def from_user(cls, user) -> "AuthorizationContext":
        return cls(
            user_id=user.id,
            global_role=user.role,
            team_id=user.team_id,
            team_role=user.team_role,
        )

    @property
    def is_global_admin(self) -> bool:
        return self.global_role == GlobalRole.admin


@dataclass(frozen=True)
class Requirement:
    """What an operation requires of its caller. Empty means authenticated only."""

    team_membership: bool = False
    team_roles: Optional[FrozenSet[TeamRole]] = None
    global_roles: Optional[FrozenSet[GlobalRole]] = None

    @classmethod
    def none(cls) -> "Requirement":
        return cls()

    @classmethod
    def membership(cls) -> "Requirement":
        return cls(team_membership=True)

    @classmethod
    def team_role_in(cls, *roles: TeamRole) -> "Requirement":
        return cls(team_roles=frozenset(roles))

    @classmethod
    def global_role_in(cls, *roles: GlobalRole) -> "Requirement":
        return cls(global_roles=frozenset(roles))

    @classmethod
    def team_manager(cls) -> "Requirement":
        """Member of a team holding OWNER or ADMIN."""
        return cls(team_membership=True, team_roles=frozenset({TeamRole.owner, TeamRole.admin}))

    @classmethod
    def team_owner(cls) -> "Requirement":
        return cls(team_membership=True, team_roles=frozenset({TeamRole.owner}))


class DenyReason(str, enum.Enum):
    unauthenticated = "unauthenticated"
    not_team_member = "not_team_member"
    insufficient_team_role = "insufficient_team_role"
    insufficient_global_role = "insufficient_global_role"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(allowed=True)


def deny(reason: DenyReason) -> Decision:
    return Decision(allowed=False, reason=reason)


def decide(context: Optional[AuthorizationContext], requirement: Requirement) -> Decision:
    if context is None:
        return deny(DenyReason.unauthenticated)
    if requirement.team_membership and context.team_id is None:
        return deny(DenyReason.not_team_member)
    if requirement.team_roles is not None and (
        context.team_role is None or context.team_role not in requirement.team_roles
    ):
        return deny(DenyReason.insufficient_team_role)
    if requirement.global_roles is not None and context.global_role not in requirement.global_roles:
        return deny(DenyReason.insufficient_global_role)
    return ALLOW


_DENIALS = {
    DenyReason.unauthenticated: (AuthenticationError, "Not authenticated"),
    DenyReason.not_team_member: (NotTeamMemberError, "You must be a member of a team to perform this action"),
    DenyReason.insufficient_team_role: (InsufficientRoleError, "Your team role does not allow this action"),
    DenyReason.insufficient_global_role: (InsufficientGlobalRoleError, "Your account role does not allow this action"),
}


def enforce(
    context: Optional[AuthorizationContext],
    requirement: Requirement,
    message: Optional[str] = None,
) -> AuthorizationContext:
    """Run `decide` and raise the matching typed error on denial."""
    decision = decide(context, requirement)
    if not decision:
        exc_class, default_message = _DENIALS[decision.reason]
        logger.debug("Denied %s: %s", context, decision.reason.value)
        raise exc_class(message or default_message)
    return context
