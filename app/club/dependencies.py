"""
Club Dependencies

FastAPI providers for the club services and error translation
"""

from fastapi import Depends, HTTPException
from supabase import Client

from app.errors import ClubCoreError
from database.supabase_client import get_supabase_client

from .lifecycle import ClubLifecycleManager
from .membership import MembershipRegistry


def get_db() -> Client:
    return get_supabase_client()


def get_membership_registry(db: Client = Depends(get_db)) -> MembershipRegistry:
    return MembershipRegistry(db)


def get_lifecycle_manager(
    db: Client = Depends(get_db),
    registry: MembershipRegistry = Depends(get_membership_registry)
) -> ClubLifecycleManager:
    return ClubLifecycleManager(db, registry)


def to_http_exception(error: ClubCoreError) -> HTTPException:
    """validation 422, policy 409, authorization 403, not found 404, consistency 500"""
    return HTTPException(status_code=error.status_code, detail=error.to_dict())
