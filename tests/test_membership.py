"""
Membership Registry Tests - roles, soft delete, leave rules, invitations
"""
import pytest
import pytest_asyncio
from datetime import timedelta

from postgrest.exceptions import APIError

from app.club.membership import MembershipRegistry
from app.club.models import (
    ByEmail,
    ByUserId,
    ClubRole,
    InvitationStatus,
    MembershipStatus,
    invite_target_from_fields,
)
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
)


@pytest_asyncio.fixture
async def club(manager):
    """Club owned by U1"""
    return await manager.create("Riverside Padel", owner_id="U1")


def add_member(db, club_id, user_id, role="member", status="active"):
    return db.insert_rows("club_memberships", {
        "club_id": club_id,
        "user_id": user_id,
        "role": role,
        "status": status,
    })[0]


def membership_status(db, membership_id):
    return next(r["status"] for r in db.rows("club_memberships") if r["id"] == membership_id)


class TestMembersAndRoles:

    @pytest.mark.asyncio
    async def test_owner_attached_once(self, registry, club):
        with pytest.raises(OwnerAlreadyAttached):
            await registry.attach_owner(club.id, "U9")

    @pytest.mark.asyncio
    async def test_members_ordered_by_role_then_join_time(self, registry, db, club):
        add_member(db, club.id, "M1")
        add_member(db, club.id, "A1", role="admin")
        add_member(db, club.id, "M2")
        add_member(db, club.id, "A2", role="admin")
        add_member(db, club.id, "R1", status="removed")
        add_member(db, club.id, "P1", status="pending")

        members = await registry.list_members(club.id)

        assert [m.user_id for m in members] == ["U1", "A1", "A2", "M1", "M2"]
        assert await registry.member_count(club.id) == 5

    @pytest.mark.asyncio
    async def test_get_user_role(self, registry, db, club):
        add_member(db, club.id, "A1", role="admin")

        assert (await registry.get_user_role(club.id, "A1")).role == ClubRole.admin
        assert await registry.get_user_role(club.id, "nobody") is None

    @pytest.mark.asyncio
    async def test_promote_and_demote(self, registry, db, club):
        row = add_member(db, club.id, "M1")

        promoted = await registry.update_role(row["id"], ClubRole.admin)
        assert promoted.role == ClubRole.admin

        demoted = await registry.update_role(row["id"], "member")
        assert demoted.role == ClubRole.member

    @pytest.mark.asyncio
    async def test_owner_role_never_assigned(self, registry, db, club):
        row = add_member(db, club.id, "M1")

        with pytest.raises(InvalidRole):
            await registry.update_role(row["id"], ClubRole.owner)

        assert all(
            r["role"] != "owner" for r in db.rows("club_memberships") if r["user_id"] == "M1"
        )

    @pytest.mark.asyncio
    async def test_owner_role_never_changed(self, registry, db, club):
        owner = await registry.get_user_role(club.id, "U1")

        with pytest.raises(InvalidRole):
            await registry.update_role(owner.id, ClubRole.admin)

    @pytest.mark.asyncio
    async def test_unknown_role(self, registry, db, club):
        row = add_member(db, club.id, "M1")

        with pytest.raises(InvalidRole):
            await registry.update_role(row["id"], "captain")

    @pytest.mark.asyncio
    async def test_update_role_unknown_membership(self, registry):
        with pytest.raises(MembershipNotFound):
            await registry.update_role("missing", ClubRole.admin)


class TestRemoveAndLeave:

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self, registry, db, club):
        row = add_member(db, club.id, "M1")

        await registry.remove(row["id"])
        await registry.remove(row["id"])

        assert membership_status(db, row["id"]) == MembershipStatus.removed.value

    @pytest.mark.asyncio
    async def test_owner_cannot_be_removed(self, registry, club):
        owner = await registry.get_user_role(club.id, "U1")

        with pytest.raises(OwnerCannotLeave):
            await registry.remove(owner.id)

    @pytest.mark.asyncio
    async def test_member_leaves(self, registry, db, club):
        row = add_member(db, club.id, "M1")

        await registry.leave(club.id, "M1")

        assert membership_status(db, row["id"]) == MembershipStatus.removed.value
        assert await registry.get_user_role(club.id, "M1") is None

    @pytest.mark.asyncio
    async def test_owner_cannot_leave(self, registry, club):
        with pytest.raises(OwnerCannotLeave) as exc_info:
            await registry.leave(club.id, "U1")

        assert "transfer ownership or delete the club" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_owner_cannot_leave_even_without_active_membership(self, registry, db, club):
        for row in db.rows("club_memberships"):
            row["status"] = "removed"

        with pytest.raises(OwnerCannotLeave):
            await registry.leave(club.id, "U1")

    @pytest.mark.asyncio
    async def test_non_member_leave(self, registry, club):
        with pytest.raises(MembershipNotFound):
            await registry.leave(club.id, "stranger")

    @pytest.mark.asyncio
    async def test_leave_unknown_club(self, registry):
        with pytest.raises(ClubNotFound):
            await registry.leave("missing", "M1")


class TestInviteTarget:

    def test_exactly_one_identity(self):
        with pytest.raises(InvalidTarget):
            invite_target_from_fields(None, None)
        with pytest.raises(InvalidTarget):
            invite_target_from_fields("U2", "player@example.com")

    def test_user_id_target(self):
        target = invite_target_from_fields("U2", None)
        assert isinstance(target, ByUserId)
        assert target.column == "invited_user_id"

    def test_email_target_is_normalized(self):
        target = invite_target_from_fields(None, "Player@Example.COM")
        assert isinstance(target, ByEmail)
        assert target.value == "player@example.com"

    def test_bad_email(self):
        with pytest.raises(InvalidTarget):
            invite_target_from_fields(None, "not-an-email")


class TestInvite:

    @pytest.mark.asyncio
    async def test_invite_user(self, registry, club, now):
        invitation = await registry.invite(club.id, "U1", ByUserId(user_id="U2"))

        assert invitation.status == InvitationStatus.pending
        assert invitation.invited_user_id == "U2"
        assert invitation.invited_email is None
        assert invitation.invited_by == "U1"
        assert invitation.expires_at == now + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_invite_active_member(self, registry, db, club):
        add_member(db, club.id, "M1")

        with pytest.raises(AlreadyMember):
            await registry.invite(club.id, "U1", ByUserId(user_id="M1"))

    @pytest.mark.asyncio
    async def test_invite_pending_member(self, registry, db, club):
        add_member(db, club.id, "P1", status="pending")

        with pytest.raises(AlreadyPending):
            await registry.invite(club.id, "U1", ByUserId(user_id="P1"))

    @pytest.mark.asyncio
    async def test_removed_member_can_be_invited_again(self, registry, db, club):
        add_member(db, club.id, "R1", status="removed")

        invitation = await registry.invite(club.id, "U1", ByUserId(user_id="R1"))
        assert invitation.invited_user_id == "R1"

    @pytest.mark.asyncio
    async def test_duplicate_invitation(self, registry, db, club):
        await registry.invite(club.id, "U1", ByUserId(user_id="U2"))

        with pytest.raises(DuplicateInvitation):
            await registry.invite(club.id, "U1", ByUserId(user_id="U2"))

        assert len(db.rows("club_invitations")) == 1

    @pytest.mark.asyncio
    async def test_email_invitation_blocks_user_id_invitation(self, registry, db, club):
        """A pending invitation counts whichever way the account was addressed"""
        db.add_profile("U2", email="u2@example.com")
        await registry.invite(club.id, "U1", ByEmail(email="u2@example.com"))

        with pytest.raises(DuplicateInvitation):
            await registry.invite(club.id, "U1", ByUserId(user_id="U2"))

    @pytest.mark.asyncio
    async def test_user_id_invitation_blocks_email_invitation(self, registry, db, club):
        db.add_profile("U2", email="u2@example.com")
        await registry.invite(club.id, "U1", ByUserId(user_id="U2"))

        with pytest.raises(DuplicateInvitation):
            await registry.invite(club.id, "U1", ByEmail(email="U2@Example.com"))

        assert len(db.rows("club_invitations")) == 1

    @pytest.mark.asyncio
    async def test_invite_by_email(self, registry, club):
        target = invite_target_from_fields(None, "New.Player@Example.com")

        invitation = await registry.invite(club.id, "U1", target)

        assert invitation.invited_email == "new.player@example.com"
        assert invitation.invited_user_id is None

        with pytest.raises(DuplicateInvitation):
            await registry.invite(club.id, "U1", ByEmail(email="new.player@example.com"))

    @pytest.mark.asyncio
    async def test_invite_email_of_existing_member(self, registry, db, club):
        db.add_profile("M1", email="member@example.com")
        add_member(db, club.id, "M1")

        with pytest.raises(AlreadyMember):
            await registry.invite(club.id, "U1", ByEmail(email="member@example.com"))


class TestInvitationResponses:

    @pytest.mark.asyncio
    async def test_accept_creates_membership(self, registry, db, club):
        invitation = await registry.invite(club.id, "U1", ByUserId(user_id="U2"))

        membership = await registry.accept_invitation(invitation.id, "U2")

        assert membership.role == ClubRole.member
        assert membership.is_active
        assert (await registry.get_invitation(invitation.id)).status == InvitationStatus.accepted
        assert await registry.member_count(club.id) == 2

    @pytest.mark.asyncio
    async def test_accept_twice(self, registry, club):
        invitation = await registry.invite(club.id, "U1", ByUserId(user_id="U2"))
        await registry.accept_invitation(invitation.id, "U2")

        with pytest.raises(InvitationNotPending):
            await registry.accept_invitation(invitation.id, "U2")

    @pytest.mark.asyncio
    async def test_accept_reactivates_removed_membership(self, registry, db, club):
        old = add_member(db, club.id, "U2", role="admin", status="removed")
        invitation = await registry.invite(club.id, "U1", ByUserId(user_id="U2"))

        membership = await registry.accept_invitation(invitation.id, "U2")

        assert membership.id == old["id"]
        assert membership.role == ClubRole.member
        assert membership.status == MembershipStatus.active
        assert len([r for r in db.rows("club_memberships") if r["user_id"] == "U2"]) == 1

    @pytest.mark.asyncio
    async def test_accept_activates_pending_membership(self, registry, db, club, now):
        pending = add_member(db, club.id, "U2", status="pending")
        invitation = db.insert_rows("club_invitations", {
            "club_id": club.id,
            "invited_by": "U1",
            "invited_user_id": "U2",
            "expires_at": (now + timedelta(days=3)).isoformat(),
        })[0]

        membership = await registry.accept_invitation(invitation["id"], "U2")

        assert membership.id == pending["id"]
        assert membership.is_active

    @pytest.mark.asyncio
    async def test_accept_expired(self, db, club, now):
        creator = MembershipRegistry(db, invitation_ttl_days=7, now=lambda: now)
        invitation = await creator.invite(club.id, "U1", ByUserId(user_id="U2"))

        later = MembershipRegistry(db, invitation_ttl_days=7, now=lambda: now + timedelta(days=8))
        with pytest.raises(InvitationExpired):
            await later.accept_invitation(invitation.id, "U2")

    @pytest.mark.asyncio
    async def test_accept_by_another_user(self, registry, club):
        invitation = await registry.invite(club.id, "U1", ByUserId(user_id="U2"))

        with pytest.raises(InvalidTarget):
            await registry.accept_invitation(invitation.id, "U3")

    @pytest.mark.asyncio
    async def test_accept_email_invitation(self, registry, db, club):
        db.add_profile("U2", email="Invitee@Example.com")
        invitation = await registry.invite(club.id, "U1", ByEmail(email="invitee@example.com"))

        membership = await registry.accept_invitation(invitation.id, "U2")

        assert membership.user_id == "U2"
        assert membership.is_active

    @pytest.mark.asyncio
    async def test_email_invitation_refused_for_other_account(self, registry, db, club):
        db.add_profile("STRANGER", email="stranger@example.com")
        invitation = await registry.invite(club.id, "U1", ByEmail(email="invitee@example.com"))

        with pytest.raises(InvalidTarget):
            await registry.accept_invitation(invitation.id, "STRANGER")
        with pytest.raises(InvalidTarget):
            await registry.accept_invitation(invitation.id, "NO_PROFILE")

        assert await registry.get_user_role(club.id, "STRANGER") is None
        assert (await registry.get_invitation(invitation.id)).status == InvitationStatus.pending

    @pytest.mark.asyncio
    async def test_failed_membership_write_keeps_invitation_pending(self, registry, db, club):
        invitation = await registry.invite(club.id, "U1", ByUserId(user_id="U2"))
        db.fail_next("club_memberships", "insert")

        with pytest.raises(APIError):
            await registry.accept_invitation(invitation.id, "U2")

        assert (await registry.get_invitation(invitation.id)).status == InvitationStatus.pending
        assert await registry.get_user_role(club.id, "U2") is None

        membership = await registry.accept_invitation(invitation.id, "U2")
        assert membership.is_active
        assert (await registry.get_invitation(invitation.id)).status == InvitationStatus.accepted

    @pytest.mark.asyncio
    async def test_decline(self, registry, club):
        invitation = await registry.invite(club.id, "U1", ByUserId(user_id="U2"))

        declined = await registry.decline_invitation(invitation.id)
        assert declined.status == InvitationStatus.declined

        with pytest.raises(InvitationNotPending):
            await registry.decline_invitation(invitation.id)

    @pytest.mark.asyncio
    async def test_cancel(self, registry, db, club):
        invitation = await registry.invite(club.id, "U1", ByUserId(user_id="U2"))

        await registry.cancel_invitation(invitation.id)

        assert db.rows("club_invitations") == []
        with pytest.raises(InvitationNotFound):
            await registry.cancel_invitation(invitation.id)


class TestInvitationLists:

    @pytest.mark.asyncio
    async def test_user_invitations_by_id_and_email(self, registry, manager, db, club):
        other = await manager.create("Second Club", owner_id="U9")
        db.add_profile("U2", email="u2@example.com")

        by_id = await registry.invite(club.id, "U1", ByUserId(user_id="U2"))
        by_email = await registry.invite(other.id, "U9", ByEmail(email="u2@example.com"))
        await registry.invite(club.id, "U1", ByUserId(user_id="U3"))
        # pending but already past its expiry
        db.insert_rows("club_invitations", {"club_id": other.id, "invited_by": "U9", "invited_user_id": "U2"})

        invitations = await registry.list_user_invitations("U2")

        assert [i.id for i in invitations] == [by_email.id, by_id.id]

    @pytest.mark.asyncio
    async def test_user_invitations_skip_answered(self, registry, club):
        invitation = await registry.invite(club.id, "U1", ByUserId(user_id="U2"))
        await registry.decline_invitation(invitation.id)

        assert await registry.list_user_invitations("U2", "u2@example.com") == []

    @pytest.mark.asyncio
    async def test_club_invitations(self, registry, club):
        first = await registry.invite(club.id, "U1", ByUserId(user_id="U2"))
        second = await registry.invite(club.id, "U1", ByEmail(email="x@example.com"))

        invitations = await registry.list_club_invitations(club.id)

        assert [i.id for i in invitations] == [second.id, first.id]
