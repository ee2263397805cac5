"""
Club Lifecycle Manager

Create / update / delete clubs.

Creating a club is two independent writes (club row, owner membership). If
the second write fails the club row is deleted again, so callers either see
both rows or neither. The name and quota checks are fast-path rejections
only; the unique index on lower(name) decides races.
"""

from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger
from postgrest.exceptions import APIError
from supabase import Client

from app.config import get_core_settings
from app.errors import (
    ClubNotFound,
    NameConflict,
    QuotaExceeded,
    RollbackFailed,
    RollbackPerformed,
    StoreWriteFailed,
)
from app.timeutil import utcnow
from database.supabase_client import escape_like, first_row, get_supabase_client, is_unique_violation

from .membership import MEMBERSHIPS, MembershipRegistry
from .models import (
    Club,
    ClubWithRole,
    MembershipStatus,
    validate_club_bio,
    validate_club_name,
)

CLUBS = "clubs"


class ClubLifecycleManager:
    """Club create/update/delete service"""

    def __init__(
        self,
        supabase: Optional[Client] = None,
        registry: Optional[MembershipRegistry] = None,
        max_owned_clubs: Optional[int] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        self.supabase = supabase or get_supabase_client()
        self.registry = registry or MembershipRegistry(self.supabase)
        self.max_owned_clubs = (
            max_owned_clubs if max_owned_clubs is not None
            else get_core_settings().max_owned_clubs
        )
        self._now = now or utcnow

    # =============================================
    # Reads
    # =============================================

    async def get(self, club_id: str) -> Club:
        response = self.supabase.table(CLUBS).select("*").eq("id", club_id).limit(1).execute()
        row = first_row(response)
        if not row:
            raise ClubNotFound(club_id=club_id)
        return Club(**row)

    async def count_owned(self, owner_id: str) -> int:
        response = self.supabase.table(CLUBS).select("id", count="exact").eq(
            "owner_id", owner_id
        ).execute()
        return response.count or 0

    async def list_owned(self, owner_id: str) -> List[Club]:
        """Clubs owned by a user, newest first"""
        response = self.supabase.table(CLUBS).select("*").eq(
            "owner_id", owner_id
        ).order("created_at", desc=True).execute()
        return [Club(**row) for row in (response.data or [])]

    async def list_for_user(self, user_id: str) -> List[ClubWithRole]:
        """Clubs where the user is an active member, most recently joined first"""
        memberships = self.supabase.table(MEMBERSHIPS).select("club_id, role").eq(
            "user_id", user_id
        ).eq("status", MembershipStatus.active.value).order("joined_at", desc=True).execute()

        rows = memberships.data or []
        if not rows:
            return []

        clubs = self.supabase.table(CLUBS).select("*").in_(
            "id", [row["club_id"] for row in rows]
        ).execute()
        by_id = {club["id"]: club for club in (clubs.data or [])}

        return [
            ClubWithRole(**by_id[row["club_id"]], user_role=row["role"])
            for row in rows
            if row["club_id"] in by_id
        ]

    async def name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        """Case-insensitive name lookup across all clubs"""
        query = self.supabase.table(CLUBS).select("id").ilike("name", escape_like(name))
        if exclude_id:
            query = query.neq("id", exclude_id)
        return first_row(query.limit(1).execute()) is not None

    # =============================================
    # Create (two-step with compensating delete)
    # =============================================

    async def create(
        self,
        name: str,
        bio: Optional[str] = None,
        logo_url: Optional[str] = None,
        *,
        owner_id: str
    ) -> Club:
        """
        Create a club and attach its owner

        1. validate input
        2. owned-club quota
        3. case-insensitive name check
        4. insert club row
        5. attach owner membership, deleting the club row again on failure
        """
        name = validate_club_name(name)
        bio = validate_club_bio(bio)

        owned = await self.count_owned(owner_id)
        logger.debug(f"Club count check for {owner_id}: {owned}/{self.max_owned_clubs}")
        if owned >= self.max_owned_clubs:
            logger.warning(f"Club limit reached for {owner_id} ({owned})")
            raise QuotaExceeded(
                f"You can only create up to {self.max_owned_clubs} clubs",
                owner_id=owner_id,
            )

        if await self.name_taken(name):
            logger.warning(f"Club name already taken: {name}")
            raise NameConflict(name=name)

        try:
            response = self.supabase.table(CLUBS).insert({
                "name": name,
                "bio": bio,
                "logo_url": logo_url or None,
                "owner_id": owner_id,
            }).execute()
        except APIError as e:
            if is_unique_violation(e):
                logger.warning(f"Club name lost a create race: {name}")
                raise NameConflict(name=name) from e
            logger.error(f"Club insert failed for {owner_id}: {e}")
            raise

        row = first_row(response)
        if not row:
            raise StoreWriteFailed(table=CLUBS, name=name)
        club = Club(**row)

        try:
            await self.registry.attach_owner(club.id, owner_id)
        except Exception as attach_error:
            logger.error(f"Owner membership failed for club {club.id}, rolling back: {attach_error}")
            await self._undo_create(club, attach_error)

        logger.info(f"Club created: {club.name} ({club.id}) by {owner_id}")
        return club

    async def _undo_create(self, club: Club, cause: Exception) -> None:
        """Delete the club row of a failed create; always raises"""
        try:
            self.supabase.table(CLUBS).delete().eq("id", club.id).execute()
        except Exception as delete_error:
            logger.critical(
                f"Rollback of club {club.id} ({club.name}) failed, orphan club left without owner: "
                f"{delete_error} (original error: {cause})"
            )
            raise RollbackFailed(cause, club.id) from delete_error

        logger.warning(f"Club {club.id} ({club.name}) rolled back")
        raise RollbackPerformed(cause, club.id) from cause

    # =============================================
    # Update / delete
    # =============================================

    async def update(
        self,
        club_id: str,
        name: Optional[str] = None,
        bio: Optional[str] = None,
        logo_url: Optional[str] = None
    ) -> Club:
        """Update name/bio/logo; a new name must not be used by another club"""
        updates = {}

        if name is not None:
            name = validate_club_name(name)
            if await self.name_taken(name, exclude_id=club_id):
                raise NameConflict(name=name)
            updates["name"] = name

        if bio is not None:
            updates["bio"] = validate_club_bio(bio)

        if logo_url is not None:
            updates["logo_url"] = logo_url or None

        updates["updated_at"] = self._now().isoformat()

        try:
            response = self.supabase.table(CLUBS).update(updates).eq("id", club_id).execute()
        except APIError as e:
            if is_unique_violation(e):
                raise NameConflict(name=name) from e
            raise

        row = first_row(response)
        if not row:
            raise ClubNotFound(club_id=club_id)

        logger.info(f"Club {club_id} updated: {sorted(k for k in updates if k != 'updated_at')}")
        return Club(**row)

    async def delete(self, club_id: str) -> None:
        """Delete a club; memberships go with it through the foreign key cascade"""
        response = self.supabase.table(CLUBS).delete().eq("id", club_id).execute()
        if not response.data:
            raise ClubNotFound(club_id=club_id)
        logger.info(f"Club {club_id} deleted")
