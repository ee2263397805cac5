"""
Subscription Dependencies
"""

from functools import lru_cache

from fastapi import Depends
from supabase import Client

from app.club.dependencies import get_db
from app.config import get_core_settings
from database.local_store import JsonFileStore

from .policy import SubscriptionPolicyEngine
from .simulator import SimulatorOverlay


@lru_cache()
def get_simulator() -> SimulatorOverlay:
    """Simulator backed by the local JSON store of this process"""
    return SimulatorOverlay(JsonFileStore(get_core_settings().simulator_store_path))


def get_policy_engine(
    db: Client = Depends(get_db),
    simulator: SimulatorOverlay = Depends(get_simulator)
) -> SubscriptionPolicyEngine:
    return SubscriptionPolicyEngine(db, simulator)
