"""
Subscription Policy Engine

Tier + trial window + monthly usage -> FeatureAccess.

Precedence: an active trial grants paid access whatever the nominal tier;
then personal/club tiers are paid; everything else is the restricted free
profile. Test accounts may have their whole status replaced by the account
simulator.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple, Union

from loguru import logger
from supabase import Client

from app.config import get_core_settings
from app.errors import ProfileNotFound
from app.timeutil import as_utc, utcnow
from database.supabase_client import first_row, get_supabase_client

from .models import (
    FREE_TIER_LIMITS,
    PAID_TIER_LIMITS,
    FeatureAccess,
    ProfileSubscription,
    SubscriptionStatus,
    SubscriptionTier,
)
from .simulator import SimulatorOverlay

PROFILE_COLUMNS = "id, email, current_tier, trial_end_date, session_count_monthly, last_session_count_reset"
INCREMENT_SESSION_RPC = "increment_session_count"


def calculate_subscription_status(
    profile: ProfileSubscription,
    now: datetime,
    free_sessions_per_month: int = FREE_TIER_LIMITS.max_sessions_per_month
) -> SubscriptionStatus:
    now = as_utc(now)
    trial_end = as_utc(profile.trial_end_date) if profile.trial_end_date else None

    is_trial_active = trial_end is not None and trial_end > now
    trial_days_remaining = max(0, (trial_end - now).days) if trial_end else 0

    used = max(0, profile.session_count_monthly)
    return SubscriptionStatus(
        tier=profile.current_tier,
        is_trial_active=is_trial_active,
        trial_days_remaining=trial_days_remaining,
        sessions_used_this_month=used,
        sessions_remaining_this_month=max(0, free_sessions_per_month - used),
    )


def calculate_feature_access(
    status: SubscriptionStatus,
    free_sessions_per_month: int = FREE_TIER_LIMITS.max_sessions_per_month
) -> FeatureAccess:
    paid = status.is_trial_active or status.tier in (SubscriptionTier.personal, SubscriptionTier.club)

    if paid:
        return FeatureAccess(
            max_courts=PAID_TIER_LIMITS.max_courts,
            can_select_multiple_courts=True,
            max_sessions_per_month=PAID_TIER_LIMITS.max_sessions_per_month,
            can_create_session=True,
            can_import_external=PAID_TIER_LIMITS.external_import,
            max_clubs=PAID_TIER_LIMITS.max_clubs,
            can_create_multiple_clubs=True,
            current_tier=status.tier,
            is_trial_active=status.is_trial_active,
        )

    return FeatureAccess(
        max_courts=FREE_TIER_LIMITS.max_courts,
        can_select_multiple_courts=False,
        max_sessions_per_month=free_sessions_per_month,
        can_create_session=status.sessions_remaining_this_month > 0,
        can_import_external=FREE_TIER_LIMITS.external_import,
        max_clubs=FREE_TIER_LIMITS.max_clubs,
        can_create_multiple_clubs=False,
        current_tier=status.tier,
        is_trial_active=False,
    )


class SubscriptionPolicyEngine:
    """Subscription status and feature access for an account"""

    def __init__(
        self,
        supabase: Optional[Client] = None,
        simulator: Optional[SimulatorOverlay] = None,
        free_sessions_per_month: Optional[int] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        self.supabase = supabase or get_supabase_client()
        self.simulator = simulator
        self.free_sessions_per_month = (
            free_sessions_per_month if free_sessions_per_month is not None
            else get_core_settings().free_sessions_per_month
        )
        self._now = now or utcnow

    def get_status(self, profile: Union[ProfileSubscription, Dict[str, Any]]) -> SubscriptionStatus:
        if not isinstance(profile, ProfileSubscription):
            profile = ProfileSubscription(**profile)
        return calculate_subscription_status(profile, self._now(), self.free_sessions_per_month)

    def get_feature_access(self, status: SubscriptionStatus) -> FeatureAccess:
        return calculate_feature_access(status, self.free_sessions_per_month)

    async def fetch_profile(self, profile_id: str) -> ProfileSubscription:
        response = self.supabase.table("profiles").select(PROFILE_COLUMNS).eq(
            "id", profile_id
        ).limit(1).execute()

        row = first_row(response)
        if not row:
            raise ProfileNotFound(profile_id=profile_id)
        return ProfileSubscription(**row)

    async def resolve_status_with_source(
        self,
        profile_id: str,
        identity: Optional[str] = None
    ) -> Tuple[SubscriptionStatus, bool]:
        """
        Status for an account and whether it came from the simulator

        The simulator is keyed by the profile's own email; `identity` only
        has to agree with it.
        """
        profile = await self.fetch_profile(profile_id)

        if self.simulator is not None:
            account = self.simulator.account_identity(profile.email, identity)
            simulated = await self.simulator.resolve(account)
            if simulated is not None:
                logger.debug(f"Using simulated subscription for {account}")
                return simulated.to_subscription_status(self.free_sessions_per_month), True

        return self.get_status(profile), False

    async def resolve_status(self, profile_id: str, identity: Optional[str] = None) -> SubscriptionStatus:
        status, _ = await self.resolve_status_with_source(profile_id, identity)
        return status

    async def resolve_feature_access(self, profile_id: str, identity: Optional[str] = None) -> FeatureAccess:
        return self.get_feature_access(await self.resolve_status(profile_id, identity))

    async def increment_session_usage(self, profile_id: str) -> None:
        """Atomic +1 on the monthly session counter (done inside the database function)"""
        self.supabase.rpc(INCREMENT_SESSION_RPC, {"user_id": profile_id}).execute()
        logger.debug(f"Session count incremented for {profile_id}")
