"""
Membership Registry

Club roles (owner/admin/member), soft-delete, leave rules and invitations.
Every read goes to Supabase; nothing is cached between calls.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional, Union

from loguru import logger
from supabase import Client

from app.config import get_core_settings
from app.errors import (
    AlreadyMember,
    AlreadyPending,
    ClubNotFound,
    DuplicateInvitation,
    InvalidRole,
    InvalidTarget,
    InvitationExpired,
    InvitationNotFound,
    InvitationNotPending,
    MembershipNotFound,
    OwnerAlreadyAttached,
    OwnerCannotLeave,
    StoreWriteFailed,
)
from app.timeutil import as_utc, utcnow
from database.supabase_client import first_row, get_supabase_client

from .models import (
    ByEmail,
    ByUserId,
    ClubRole,
    Invitation,
    InvitationStatus,
    Membership,
    MembershipStatus,
)

MEMBERSHIPS = "club_memberships"
INVITATIONS = "club_invitations"


class MembershipRegistry:
    """Membership and invitation service"""

    def __init__(
        self,
        supabase: Optional[Client] = None,
        invitation_ttl_days: Optional[int] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        self.supabase = supabase or get_supabase_client()
        self.invitation_ttl_days = (
            invitation_ttl_days if invitation_ttl_days is not None
            else get_core_settings().invitation_ttl_days
        )
        self._now = now or utcnow

    # =============================================
    # Lookups
    # =============================================

    async def get_membership(self, membership_id: str) -> Membership:
        response = self.supabase.table(MEMBERSHIPS).select("*").eq(
            "id", membership_id
        ).limit(1).execute()

        row = first_row(response)
        if not row:
            raise MembershipNotFound(membership_id=membership_id)
        return Membership(**row)

    async def get_invitation(self, invitation_id: str) -> Invitation:
        response = self.supabase.table(INVITATIONS).select("*").eq(
            "id", invitation_id
        ).limit(1).execute()

        row = first_row(response)
        if not row:
            raise InvitationNotFound(invitation_id=invitation_id)
        return Invitation(**row)

    async def list_members(self, club_id: str) -> List[Membership]:
        """
        Active members of a club

        Ordered by role rank (owner, admin, member), then by join time.
        """
        response = self.supabase.table(MEMBERSHIPS).select("*").eq(
            "club_id", club_id
        ).eq("status", MembershipStatus.active.value).order("joined_at").execute()

        members = [Membership(**row) for row in (response.data or [])]
        # sort is stable, so join order survives inside each role
        members.sort(key=lambda m: m.role.rank)
        return members

    async def member_count(self, club_id: str) -> int:
        response = self.supabase.table(MEMBERSHIPS).select("id", count="exact").eq(
            "club_id", club_id
        ).eq("status", MembershipStatus.active.value).execute()
        return response.count or 0

    async def get_user_role(self, club_id: str, user_id: str) -> Optional[Membership]:
        """Active membership of a user in a club, or None"""
        response = self.supabase.table(MEMBERSHIPS).select("*").eq(
            "club_id", club_id
        ).eq("user_id", user_id).eq("status", MembershipStatus.active.value).limit(1).execute()

        row = first_row(response)
        return Membership(**row) if row else None

    # =============================================
    # Owner attach / role changes
    # =============================================

    async def attach_owner(self, club_id: str, user_id: str) -> Membership:
        """Insert the active owner membership of a freshly created club"""
        existing = self.supabase.table(MEMBERSHIPS).select("id").eq(
            "club_id", club_id
        ).eq("role", ClubRole.owner.value).eq(
            "status", MembershipStatus.active.value
        ).limit(1).execute()

        if first_row(existing):
            raise OwnerAlreadyAttached(club_id=club_id)

        response = self.supabase.table(MEMBERSHIPS).insert({
            "club_id": club_id,
            "user_id": user_id,
            "role": ClubRole.owner.value,
            "status": MembershipStatus.active.value,
        }).execute()

        row = first_row(response)
        if not row:
            raise StoreWriteFailed(table=MEMBERSHIPS, club_id=club_id)

        logger.info(f"Owner {user_id} attached to club {club_id}")
        return Membership(**row)

    async def update_role(self, membership_id: str, role: Union[ClubRole, str]) -> Membership:
        """Switch a membership between admin and member"""
        try:
            role = ClubRole(role)
        except ValueError as e:
            raise InvalidRole(f"Unknown role: {role}") from e

        if role == ClubRole.owner:
            raise InvalidRole("The owner role cannot be assigned")

        membership = await self.get_membership(membership_id)
        if membership.role == ClubRole.owner:
            raise InvalidRole("The club owner's role cannot be changed")

        response = self.supabase.table(MEMBERSHIPS).update({
            "role": role.value
        }).eq("id", membership_id).execute()

        row = first_row(response)
        if not row:
            raise MembershipNotFound(membership_id=membership_id)

        logger.info(f"Membership {membership_id} role: {membership.role.value} -> {role.value}")
        return Membership(**row)

    # =============================================
    # Removal / leave (soft delete)
    # =============================================

    async def remove(self, membership_id: str) -> None:
        """Soft delete a membership; removing twice is a no-op"""
        membership = await self.get_membership(membership_id)

        if membership.status == MembershipStatus.removed:
            logger.debug(f"Membership {membership_id} already removed")
            return

        if membership.role == ClubRole.owner:
            raise OwnerCannotLeave("The club owner cannot be removed. Delete the club instead.")

        self.supabase.table(MEMBERSHIPS).update({
            "status": MembershipStatus.removed.value
        }).eq("id", membership_id).execute()

        logger.info(f"Membership {membership_id} removed from club {membership.club_id}")

    async def leave(self, club_id: str, user_id: str) -> None:
        """A member leaves a club; the owner never can"""
        club = first_row(
            self.supabase.table("clubs").select("owner_id").eq("id", club_id).limit(1).execute()
        )
        if not club:
            raise ClubNotFound(club_id=club_id)

        if club.get("owner_id") == user_id:
            logger.warning(f"Owner {user_id} tried to leave club {club_id}")
            raise OwnerCannotLeave(club_id=club_id)

        response = self.supabase.table(MEMBERSHIPS).update({
            "status": MembershipStatus.removed.value
        }).eq("club_id", club_id).eq("user_id", user_id).in_(
            "status", [MembershipStatus.active.value, MembershipStatus.pending.value]
        ).execute()

        if not response.data:
            raise MembershipNotFound(f"User {user_id} is not a member of this club")

        logger.info(f"User {user_id} left club {club_id}")

    # =============================================
    # Invitations
    # =============================================

    async def _profile_id_for_email(self, email: str) -> Optional[str]:
        row = first_row(
            self.supabase.table("profiles").select("id").eq("email", email).limit(1).execute()
        )
        return row["id"] if row else None

    async def profile_email(self, user_id: str) -> Optional[str]:
        """Lowercased account email of a profile, or None"""
        row = first_row(
            self.supabase.table("profiles").select("email").eq("id", user_id).limit(1).execute()
        )
        email = row.get("email") if row else None
        return email.strip().lower() if email else None

    async def _check_not_member(self, club_id: str, user_id: str) -> None:
        response = self.supabase.table(MEMBERSHIPS).select("id, status").eq(
            "club_id", club_id
        ).eq("user_id", user_id).neq("status", MembershipStatus.removed.value).execute()

        statuses = {row.get("status") for row in (response.data or [])}
        if MembershipStatus.active.value in statuses:
            raise AlreadyMember(club_id=club_id, user_id=user_id)
        if MembershipStatus.pending.value in statuses:
            raise AlreadyPending(club_id=club_id, user_id=user_id)

    async def invite(
        self,
        club_id: str,
        inviter_id: str,
        target: Union[ByUserId, ByEmail]
    ) -> Invitation:
        """
        Invite a user (by id or email) to a club

        Rejected when the identity already has an active or pending
        membership, or an invitation is already pending.
        """
        if not isinstance(target, (ByUserId, ByEmail)):
            raise InvalidTarget()

        if isinstance(target, ByUserId):
            user_id = target.user_id
            email = await self.profile_email(user_id)
        else:
            # email may belong to an existing account
            user_id = await self._profile_id_for_email(target.email)
            email = target.email

        if user_id:
            await self._check_not_member(club_id, user_id)

        # a pending invitation by either id or email counts
        clauses = []
        if user_id:
            clauses.append(f"invited_user_id.eq.{user_id}")
        if email:
            clauses.append(f"invited_email.eq.{email}")

        existing = self.supabase.table(INVITATIONS).select("id").eq(
            "club_id", club_id
        ).eq("status", InvitationStatus.pending.value).or_(
            ",".join(clauses)
        ).limit(1).execute()

        if first_row(existing):
            raise DuplicateInvitation(club_id=club_id)

        expires_at = self._now() + timedelta(days=self.invitation_ttl_days)
        response = self.supabase.table(INVITATIONS).insert({
            "club_id": club_id,
            "invited_by": inviter_id,
            "invited_user_id": target.user_id if isinstance(target, ByUserId) else None,
            "invited_email": target.email if isinstance(target, ByEmail) else None,
            "status": InvitationStatus.pending.value,
            "expires_at": expires_at.isoformat(),
        }).execute()

        row = first_row(response)
        if not row:
            raise StoreWriteFailed(table=INVITATIONS, club_id=club_id)

        logger.info(f"Invitation {row['id']} sent for club {club_id} ({target.column}={target.value})")
        return Invitation(**row)

    async def accept_invitation(self, invitation_id: str, user_id: str) -> Membership:
        """Accept a pending invitation; reactivates an old membership if one exists"""
        invitation = await self.get_invitation(invitation_id)

        if invitation.status != InvitationStatus.pending:
            raise InvitationNotPending(invitation_id=invitation_id)

        if invitation.expires_at and as_utc(invitation.expires_at) < self._now():
            raise InvitationExpired(invitation_id=invitation_id)

        if invitation.invited_user_id and invitation.invited_user_id != user_id:
            raise InvalidTarget("This invitation was sent to another user")

        if invitation.invited_email:
            email = await self.profile_email(user_id)
            if email != invitation.invited_email.strip().lower():
                logger.warning(f"User {user_id} tried to accept invitation {invitation_id} sent to another email")
                raise InvalidTarget("This invitation was sent to another email")

        response = self.supabase.table(MEMBERSHIPS).select("*").eq(
            "club_id", invitation.club_id
        ).eq("user_id", user_id).order("joined_at", desc=True).execute()

        memberships = [Membership(**row) for row in (response.data or [])]
        if any(m.is_active for m in memberships):
            raise AlreadyMember("You are already a member of this club")

        # pending rows first, then the most recent removed one
        previous = sorted(memberships, key=lambda m: m.status != MembershipStatus.pending)
        previous = previous[0] if previous else None

        # membership first; a failed write leaves the invitation pending for a retry
        values = {
            "role": ClubRole.member.value,
            "status": MembershipStatus.active.value,
            "joined_at": self._now().isoformat(),
        }
        if previous:
            result = self.supabase.table(MEMBERSHIPS).update(values).eq("id", previous.id).execute()
        else:
            result = self.supabase.table(MEMBERSHIPS).insert({
                "club_id": invitation.club_id,
                "user_id": user_id,
                **values,
            }).execute()

        row = first_row(result)
        if not row:
            raise StoreWriteFailed(table=MEMBERSHIPS, club_id=invitation.club_id)

        self.supabase.table(INVITATIONS).update({
            "status": InvitationStatus.accepted.value
        }).eq("id", invitation_id).execute()

        logger.info(f"User {user_id} joined club {invitation.club_id} via invitation {invitation_id}")
        return Membership(**row)

    async def decline_invitation(self, invitation_id: str) -> Invitation:
        invitation = await self.get_invitation(invitation_id)
        if invitation.status != InvitationStatus.pending:
            raise InvitationNotPending(invitation_id=invitation_id)

        response = self.supabase.table(INVITATIONS).update({
            "status": InvitationStatus.declined.value
        }).eq("id", invitation_id).execute()

        row = first_row(response)
        if not row:
            raise InvitationNotFound(invitation_id=invitation_id)
        return Invitation(**row)

    async def cancel_invitation(self, invitation_id: str) -> None:
        """Delete an invitation (club admins)"""
        invitation = await self.get_invitation(invitation_id)
        self.supabase.table(INVITATIONS).delete().eq("id", invitation_id).execute()
        logger.info(f"Invitation {invitation_id} for club {invitation.club_id} cancelled")

    async def list_user_invitations(self, user_id: str, email: Optional[str] = None) -> List[Invitation]:
        """Pending, unexpired invitations addressed to a user id or email"""
        if email is None:
            email = await self.profile_email(user_id)

        clauses = [f"invited_user_id.eq.{user_id}"]
        if email:
            clauses.append(f"invited_email.eq.{email.strip().lower()}")

        response = self.supabase.table(INVITATIONS).select("*").or_(
            ",".join(clauses)
        ).eq("status", InvitationStatus.pending.value).order("created_at", desc=True).execute()

        now = self._now()
        invitations = [Invitation(**row) for row in (response.data or [])]
        return [i for i in invitations if i.expires_at is None or as_utc(i.expires_at) > now]

    async def list_club_invitations(self, club_id: str) -> List[Invitation]:
        response = self.supabase.table(INVITATIONS).select("*").eq(
            "club_id", club_id
        ).order("created_at", desc=True).execute()
        return [Invitation(**row) for row in (response.data or [])]
