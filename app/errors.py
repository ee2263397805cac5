"""
Club core errors

Every failure raised by the club/subscription core carries a stable ``kind``,
a human-readable message and the HTTP status the API layer should use.
Store and network failures (postgrest APIError, httpx errors) are not wrapped.
"""
from typing import Any, Dict, Optional


class ClubCoreError(Exception):
    """Base class for club core errors"""

    kind: str = "club_core_error"
    category: str = "internal"
    status_code: int = 400
    default_message: str = "Club operation failed"

    def __init__(self, message: Optional[str] = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload = {"kind": self.kind, "category": self.category, "message": self.message}
        if self.context:
            payload["context"] = self.context
        return payload


# =============================================
# Categories
# =============================================

class ValidationFailure(ClubCoreError):
    """Caller input violates a static constraint (nothing written)"""
    category = "validation"
    status_code = 422


class PolicyViolation(ClubCoreError):
    """Business rule rejected by a pre-check (nothing written)"""
    category = "policy"
    status_code = 409


class AuthorizationFailure(ClubCoreError):
    """Transition not allowed for the caller's role"""
    category = "authorization"
    status_code = 403


class NotFound(ClubCoreError):
    category = "not_found"
    status_code = 404


class ConsistencyFailure(ClubCoreError):
    """Raised only from the multi-step club create"""
    category = "consistency"
    status_code = 500


class StoreWriteFailed(ClubCoreError):
    """The store accepted a write but returned no row"""
    kind = "store_write_failed"
    category = "transport"
    status_code = 502
    default_message = "The database did not return the written row"


# =============================================
# Validation
# =============================================

class InvalidName(ValidationFailure):
    kind = "invalid_name"
    default_message = "Club name is invalid"


class InvalidBio(ValidationFailure):
    kind = "invalid_bio"
    default_message = "Club bio is invalid"


class InvalidTarget(ValidationFailure):
    kind = "invalid_target"
    default_message = "Either user ID or email is required"


class InvalidRole(ValidationFailure):
    kind = "invalid_role"
    default_message = "Role can only be changed between admin and member"


# =============================================
# Policy / quota
# =============================================

class QuotaExceeded(PolicyViolation):
    kind = "quota_exceeded"
    default_message = "You can only create up to 3 clubs"


class NameConflict(PolicyViolation):
    kind = "name_conflict"
    default_message = "Club name is already taken"


class AlreadyMember(PolicyViolation):
    kind = "already_member"
    default_message = "User is already a member of this club"


class AlreadyPending(PolicyViolation):
    kind = "already_pending"
    default_message = "User already has a pending invitation"


class DuplicateInvitation(PolicyViolation):
    kind = "duplicate_invitation"
    default_message = "Invitation already sent to this user"


class OwnerAlreadyAttached(PolicyViolation):
    kind = "owner_already_attached"
    default_message = "Club already has an owner"


class InvitationNotPending(PolicyViolation):
    kind = "invitation_not_pending"
    default_message = "Invitation is no longer valid"


class InvitationExpired(PolicyViolation):
    kind = "invitation_expired"
    default_message = "Invitation has expired"


# =============================================
# Authorization
# =============================================

class OwnerCannotLeave(AuthorizationFailure):
    kind = "owner_cannot_leave"
    default_message = "Club owners cannot leave. Please transfer ownership or delete the club."


class SimulatorNotAllowed(AuthorizationFailure):
    kind = "simulator_not_allowed"
    default_message = "Account simulator is only available for test accounts"


# =============================================
# Not found
# =============================================

class ClubNotFound(NotFound):
    kind = "club_not_found"
    default_message = "Club not found"


class MembershipNotFound(NotFound):
    kind = "membership_not_found"
    default_message = "Membership not found"


class InvitationNotFound(NotFound):
    kind = "invitation_not_found"
    default_message = "Invitation not found"


class ProfileNotFound(NotFound):
    kind = "profile_not_found"
    default_message = "Profile not found"


class UnknownPreset(NotFound):
    kind = "unknown_preset"
    default_message = "Unknown simulator preset"


# =============================================
# Consistency
# =============================================

class RollbackPerformed(ConsistencyFailure):
    """Owner attach failed; the club row was deleted again.

    ``cause`` is the attach error. Neither row exists afterwards.
    """
    kind = "rollback_performed"
    default_message = "Club creation failed and was rolled back"

    def __init__(self, cause: BaseException, club_id: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"{self.default_message}: {cause}", club_id=club_id)
        self.cause = cause
        self.club_id = club_id


class RollbackFailed(ConsistencyFailure):
    """Owner attach failed and the compensating delete failed too.

    An orphan club row without an owner membership is left behind and needs
    operator attention.
    """
    kind = "rollback_failed"
    default_message = "Club creation failed and the rollback did not complete"

    def __init__(self, cause: BaseException, club_id: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"{self.default_message}; orphan club {club_id} needs manual cleanup: {cause}",
            club_id=club_id,
        )
        self.cause = cause
        self.club_id = club_id
