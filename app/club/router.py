"""
Club Router

Club lifecycle, membership and invitation endpoints
- clubs (create / update / delete, owned + joined lists)
- members (roles, soft delete, leave)
- invitations
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.errors import ClubCoreError
from app.subscription.dependencies import get_simulator
from app.subscription.simulator import SimulatorOverlay

from .dependencies import get_lifecycle_manager, get_membership_registry, to_http_exception
from .lifecycle import ClubLifecycleManager
from .membership import MembershipRegistry
from .models import (
    AcceptInvitationRequest,
    Club,
    ClubCreate,
    ClubUpdate,
    ClubWithRole,
    Invitation,
    InviteRequest,
    LeaveRequest,
    Membership,
    RoleUpdate,
    invite_target_from_fields,
)

router = APIRouter(tags=["Clubs"])


# =============================================
# Clubs
# =============================================

@router.post("/clubs", response_model=Club, status_code=201)
async def create_club(
    body: ClubCreate,
    manager: ClubLifecycleManager = Depends(get_lifecycle_manager)
):
    """
    Create a club

    The creator becomes its owner. If attaching the owner fails the club
    row is removed again and the error says whether that cleanup worked.
    """
    try:
        return await manager.create(body.name, body.bio, body.logo_url, owner_id=body.owner_id)
    except ClubCoreError as e:
        raise to_http_exception(e)


@router.get("/clubs/owned/{owner_id}", response_model=List[Club])
async def list_owned_clubs(
    owner_id: str,
    manager: ClubLifecycleManager = Depends(get_lifecycle_manager)
):
    return await manager.list_owned(owner_id)


@router.get("/clubs/user/{user_id}", response_model=List[ClubWithRole])
async def list_user_clubs(
    user_id: str,
    manager: ClubLifecycleManager = Depends(get_lifecycle_manager)
):
    """Clubs the user is an active member of, with their role"""
    return await manager.list_for_user(user_id)


@router.get("/clubs/{club_id}", response_model=Club)
async def get_club(
    club_id: str,
    manager: ClubLifecycleManager = Depends(get_lifecycle_manager)
):
    try:
        return await manager.get(club_id)
    except ClubCoreError as e:
        raise to_http_exception(e)


@router.patch("/clubs/{club_id}", response_model=Club)
async def update_club(
    club_id: str,
    body: ClubUpdate,
    manager: ClubLifecycleManager = Depends(get_lifecycle_manager)
):
    """Update name / bio / logo (only supplied fields change)"""
    try:
        return await manager.update(club_id, body.name, body.bio, body.logo_url)
    except ClubCoreError as e:
        raise to_http_exception(e)


@router.delete("/clubs/{club_id}")
async def delete_club(
    club_id: str,
    manager: ClubLifecycleManager = Depends(get_lifecycle_manager)
):
    """Delete a club (memberships and invitations cascade)"""
    try:
        await manager.delete(club_id)
    except ClubCoreError as e:
        raise to_http_exception(e)
    return {"message": "Club deleted", "club_id": club_id}


# =============================================
# Members
# =============================================

@router.get("/clubs/{club_id}/members", response_model=List[Membership])
async def list_members(
    club_id: str,
    registry: MembershipRegistry = Depends(get_membership_registry)
):
    """Active members, owner first, then admins, then members"""
    return await registry.list_members(club_id)


@router.get("/clubs/{club_id}/members/count")
async def member_count(
    club_id: str,
    registry: MembershipRegistry = Depends(get_membership_registry)
):
    count = await registry.member_count(club_id)
    return {"club_id": club_id, "count": count}


@router.get("/clubs/{club_id}/role/{user_id}")
async def get_user_role(
    club_id: str,
    user_id: str,
    identity: Optional[str] = Query(None, description="Account email, used by the simulator"),
    registry: MembershipRegistry = Depends(get_membership_registry),
    simulator: SimulatorOverlay = Depends(get_simulator)
):
    """
    Role of a user in a club

    An enabled simulator with a club role wins over the stored membership,
    but only for the user's own account email.
    """
    account = simulator.account_identity(await registry.profile_email(user_id), identity)
    simulated = await simulator.resolve_club_role(account, club_id)
    if simulated is not None:
        return {
            "club_id": club_id,
            "user_id": user_id,
            "role": simulated.role,
            "status": simulated.status,
            "simulated": True,
        }

    membership = await registry.get_user_role(club_id, user_id)
    return {
        "club_id": club_id,
        "user_id": user_id,
        "role": membership.role if membership else None,
        "status": membership.status if membership else None,
        "simulated": False,
    }


@router.patch("/memberships/{membership_id}/role", response_model=Membership)
async def update_member_role(
    membership_id: str,
    body: RoleUpdate,
    registry: MembershipRegistry = Depends(get_membership_registry)
):
    """Promote/demote between admin and member (owner is never changed)"""
    try:
        return await registry.update_role(membership_id, body.role)
    except ClubCoreError as e:
        raise to_http_exception(e)


@router.delete("/memberships/{membership_id}")
async def remove_member(
    membership_id: str,
    registry: MembershipRegistry = Depends(get_membership_registry)
):
    """Soft delete a membership"""
    try:
        await registry.remove(membership_id)
    except ClubCoreError as e:
        raise to_http_exception(e)
    return {"message": "Member removed", "membership_id": membership_id}


@router.post("/clubs/{club_id}/leave")
async def leave_club(
    club_id: str,
    body: LeaveRequest,
    registry: MembershipRegistry = Depends(get_membership_registry)
):
    """Leave a club (owners cannot leave)"""
    try:
        await registry.leave(club_id, body.user_id)
    except ClubCoreError as e:
        raise to_http_exception(e)
    return {"message": "Left club", "club_id": club_id}


# =============================================
# Invitations
# =============================================

@router.post("/clubs/{club_id}/invitations", response_model=Invitation, status_code=201)
async def invite_member(
    club_id: str,
    body: InviteRequest,
    registry: MembershipRegistry = Depends(get_membership_registry)
):
    """Invite by user id or by email (exactly one)"""
    try:
        target = invite_target_from_fields(body.invited_user_id, body.invited_email)
        return await registry.invite(club_id, body.inviter_id, target)
    except ClubCoreError as e:
        raise to_http_exception(e)


@router.get("/clubs/{club_id}/invitations", response_model=List[Invitation])
async def list_club_invitations(
    club_id: str,
    registry: MembershipRegistry = Depends(get_membership_registry)
):
    return await registry.list_club_invitations(club_id)


@router.get("/invitations/user/{user_id}", response_model=List[Invitation])
async def list_user_invitations(
    user_id: str,
    email: Optional[str] = Query(None),
    registry: MembershipRegistry = Depends(get_membership_registry)
):
    """Pending, unexpired invitations addressed to the user id or email"""
    return await registry.list_user_invitations(user_id, email)


@router.post("/invitations/{invitation_id}/accept", response_model=Membership)
async def accept_invitation(
    invitation_id: str,
    body: AcceptInvitationRequest,
    registry: MembershipRegistry = Depends(get_membership_registry)
):
    try:
        return await registry.accept_invitation(invitation_id, body.user_id)
    except ClubCoreError as e:
        raise to_http_exception(e)


@router.post("/invitations/{invitation_id}/decline", response_model=Invitation)
async def decline_invitation(
    invitation_id: str,
    registry: MembershipRegistry = Depends(get_membership_registry)
):
    try:
        return await registry.decline_invitation(invitation_id)
    except ClubCoreError as e:
        raise to_http_exception(e)


@router.delete("/invitations/{invitation_id}")
async def cancel_invitation(
    invitation_id: str,
    registry: MembershipRegistry = Depends(get_membership_registry)
):
    try:
        await registry.cancel_invitation(invitation_id)
    except ClubCoreError as e:
        raise to_http_exception(e)
    return {"message": "Invitation cancelled", "invitation_id": invitation_id}
