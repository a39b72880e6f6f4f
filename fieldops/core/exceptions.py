"""Domain exception classes for the FieldOps platform.

Every error is recoverable at the caller boundary. Each class carries the
HTTP status the API layer maps it to.
"""


class FieldOpsError(Exception):
    """Base exception for FieldOps."""

    status_code = 400

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)

    @property
    def error(self) -> str:
        return type(self).__name__


class AuthenticationError(FieldOpsError):
    """Raised when authentication fails."""
    status_code = 401


class ResourceNotFoundError(FieldOpsError):
    """Raised when a team, user, invitation or resource is absent."""
    status_code = 404


class ResourceConflictError(FieldOpsError):
    """Raised on a duplicate pending invitation or an existing member."""
    status_code = 409


class AlreadyInTeamError(ResourceConflictError):
    """Raised when a user who already belongs to a team tries to join another."""


class SlugTakenError(ResourceConflictError):
    """Raised when a team slug is already in use."""


class ForbiddenError(FieldOpsError):
    """Raised when a tenant-scoped operation is invoked without a team."""
    status_code = 403


class NotTeamMemberError(ForbiddenError):
    """Raised when the caller (or target) is not a member of the team."""


class InsufficientRoleError(ForbiddenError):
    """Raised when the caller's team role does not permit the action."""


class InsufficientGlobalRoleError(ForbiddenError):
    """Raised when the caller's account role does not permit the action."""


class EmailMismatchError(ForbiddenError):
    """Raised when an invitation is redeemed by a different email address."""


class OwnerMustTransferError(ForbiddenError):
    """Raised when an owner tries to leave without transferring ownership."""


class CannotRemoveOwnerError(ForbiddenError):
    """Raised when someone tries to remove the team owner."""


class InvalidRoleChangeError(ForbiddenError):
    """Raised when an owner's role is altered outside ownership transfer."""


class InvalidStateError(FieldOpsError):
    """Raised when a non-pending invitation is redeemed or cancelled."""


class InvitationExpiredError(FieldOpsError):
    """Raised when an invitation is redeemed past its expiry."""
    status_code = 410


class ValidationError(FieldOpsError):
    """Raised when input validation fails."""
    status_code = 422


class QuotaExceededError(FieldOpsError):
    """Raised when a quota/limit is exceeded."""
    status_code = 403


class StorageError(FieldOpsError):
    """Raised when a MinIO/storage operation fails."""
    status_code = 502


class TransactionFailedError(FieldOpsError):
    """Raised when an atomic unit fails and was rolled back. Safe to retry."""
    status_code = 503
