"""
Club Models

Pydantic models for clubs, memberships and invitations
"""

import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, TypeAdapter, field_validator

from app.errors import InvalidBio, InvalidName, InvalidTarget

CLUB_NAME_PATTERN = re.compile(r"^[A-Za-z0-9 _-]+$")
CLUB_NAME_MIN_LENGTH = 3
CLUB_NAME_MAX_LENGTH = 50
CLUB_BIO_MAX_LENGTH = 200


# =============================================
# Enums
# =============================================

class ClubRole(str, Enum):
    """Role inside a club"""
    owner = "owner"     # set once at creation, never changed
    admin = "admin"
    member = "member"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]


_ROLE_RANK = {ClubRole.owner: 0, ClubRole.admin: 1, ClubRole.member: 2}


class MembershipStatus(str, Enum):
    """Membership state (soft delete = removed)"""
    active = "active"
    pending = "pending"
    removed = "removed"


class InvitationStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"


# =============================================
# Validation
# =============================================

def validate_club_name(name: Optional[str]) -> str:
    """Trim and check a club name; returns the trimmed name"""
    if not name or not name.strip():
        raise InvalidName("Club name is required")

    trimmed = name.strip()
    if len(trimmed) < CLUB_NAME_MIN_LENGTH:
        raise InvalidName(f"Club name must be at least {CLUB_NAME_MIN_LENGTH} characters")
    if len(trimmed) > CLUB_NAME_MAX_LENGTH:
        raise InvalidName(f"Club name must be {CLUB_NAME_MAX_LENGTH} characters or less")
    if not CLUB_NAME_PATTERN.match(trimmed):
        raise InvalidName("Club name can only contain letters, numbers, spaces, hyphens, and underscores")
    return trimmed


def validate_club_bio(bio: Optional[str]) -> Optional[str]:
    """Trim a bio; empty bios become None"""
    if bio is None:
        return None
    trimmed = bio.strip()
    if len(trimmed) > CLUB_BIO_MAX_LENGTH:
        raise InvalidBio(f"Bio must be {CLUB_BIO_MAX_LENGTH} characters or less")
    return trimmed or None


# =============================================
# Rows
# =============================================

class Club(BaseModel):
    """Row of the clubs table"""
    id: str
    name: str
    bio: Optional[str] = None
    logo_url: Optional[str] = None
    owner_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ClubWithRole(Club):
    """Club as seen by one of its members"""
    user_role: ClubRole


class Membership(BaseModel):
    """Row of the club_memberships table"""
    id: str
    club_id: str
    user_id: str
    role: ClubRole
    status: MembershipStatus
    joined_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == MembershipStatus.active


class Invitation(BaseModel):
    """Row of the club_invitations table"""
    id: str
    club_id: str
    invited_by: str
    invited_user_id: Optional[str] = None
    invited_email: Optional[str] = None
    status: InvitationStatus
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


# =============================================
# Invite target (exactly one identity)
# =============================================

class ByUserId(BaseModel):
    kind: Literal["user_id"] = "user_id"
    user_id: str = Field(..., min_length=1)

    @property
    def column(self) -> str:
        return "invited_user_id"

    @property
    def value(self) -> str:
        return self.user_id


class ByEmail(BaseModel):
    kind: Literal["email"] = "email"
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()

    @property
    def column(self) -> str:
        return "invited_email"

    @property
    def value(self) -> str:
        return self.email


InviteTarget = Annotated[Union[ByUserId, ByEmail], Field(discriminator="kind")]
_invite_target_adapter = TypeAdapter(InviteTarget)


def invite_target_from_fields(
    invited_user_id: Optional[str] = None,
    invited_email: Optional[str] = None
) -> Union[ByUserId, ByEmail]:
    """Build an InviteTarget from the two-optional-field request shape"""
    if bool(invited_user_id) == bool(invited_email):
        raise InvalidTarget("Exactly one of user ID or email is required")
    if invited_user_id:
        return ByUserId(user_id=invited_user_id)
    try:
        return _invite_target_adapter.validate_python({"kind": "email", "email": invited_email})
    except ValueError as e:
        raise InvalidTarget(f"Invalid email address: {invited_email}") from e


# =============================================
# Requests
# =============================================

class ClubCreate(BaseModel):
    """Create club request"""
    name: str
    bio: Optional[str] = None
    logo_url: Optional[str] = None
    owner_id: str


class ClubUpdate(BaseModel):
    """Update club request (only supplied fields change)"""
    name: Optional[str] = None
    bio: Optional[str] = None
    logo_url: Optional[str] = None


class RoleUpdate(BaseModel):
    role: ClubRole


class InviteRequest(BaseModel):
    """Invite request; exactly one of invited_user_id / invited_email"""
    inviter_id: str
    invited_user_id: Optional[str] = None
    invited_email: Optional[str] = None


class LeaveRequest(BaseModel):
    user_id: str


class AcceptInvitationRequest(BaseModel):
    user_id: str
