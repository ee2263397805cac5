"""
Club Module

Club lifecycle (create/update/delete with owner attach rollback) and the
membership registry (roles, soft delete, leave rules, invitations).
"""

from .lifecycle import ClubLifecycleManager
from .membership import MembershipRegistry
from .models import (
    ByEmail,
    ByUserId,
    Club,
    ClubRole,
    ClubWithRole,
    Invitation,
    InvitationStatus,
    Membership,
    MembershipStatus,
    invite_target_from_fields,
)

__all__ = [
    "ClubLifecycleManager",
    "MembershipRegistry",
    "ByEmail",
    "ByUserId",
    "Club",
    "ClubRole",
    "ClubWithRole",
    "Invitation",
    "InvitationStatus",
    "Membership",
    "MembershipStatus",
    "invite_target_from_fields",
]
