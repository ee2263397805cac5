"""
Subscription Models
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SubscriptionTier(str, Enum):
    """Subscription level"""
    free = "free"
    personal = "personal"
    club = "club"


UNLIMITED = -1


class TierLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_sessions_per_month: int
    max_courts: int
    max_clubs: int
    external_import: bool


FREE_TIER_LIMITS = TierLimits(
    max_sessions_per_month=4,
    max_courts=1,
    max_clubs=1,
    external_import=False,
)

PAID_TIER_LIMITS = TierLimits(
    max_sessions_per_month=UNLIMITED,
    max_courts=UNLIMITED,
    max_clubs=UNLIMITED,
    external_import=True,
)


class ProfileSubscription(BaseModel):
    """Subscription columns of the profiles table"""
    id: str
    email: Optional[str] = None
    current_tier: SubscriptionTier = SubscriptionTier.free
    trial_end_date: Optional[datetime] = None
    session_count_monthly: int = 0
    last_session_count_reset: Optional[datetime] = None

    @field_validator("current_tier", mode="before")
    @classmethod
    def default_tier(cls, v):
        return v or SubscriptionTier.free

    @field_validator("session_count_monthly", mode="before")
    @classmethod
    def default_count(cls, v):
        return v or 0


class SubscriptionStatus(BaseModel):
    """Tier, trial window and monthly usage of one account"""
    tier: SubscriptionTier
    is_trial_active: bool = False
    trial_days_remaining: int = Field(default=0, ge=0)
    sessions_used_this_month: int = Field(default=0, ge=0)
    # only meaningful on the free tier, always computed
    sessions_remaining_this_month: int = Field(default=0, ge=0)


class FeatureAccess(BaseModel):
    """What an account may do right now (-1 = unlimited)"""
    model_config = ConfigDict(frozen=True)

    max_courts: int
    can_select_multiple_courts: bool
    max_sessions_per_month: int
    can_create_session: bool
    can_import_external: bool
    max_clubs: int
    can_create_multiple_clubs: bool

    current_tier: SubscriptionTier
    is_trial_active: bool


class SubscriptionOverview(BaseModel):
    """API response: status plus derived access"""
    profile_id: str
    simulated: bool = False
    status: SubscriptionStatus
    access: FeatureAccess
