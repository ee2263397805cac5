"""
Account Simulator

Lets whitelisted test accounts pretend to be on another subscription tier,
trial state or club role without touching the shared database. State lives
in a client-local key-value store, one entry per test account, so enabling
the simulator for one identity never affects another.

Only identities on the allow-list can read or change simulated state.
"""

import json
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.club.models import ClubRole, MembershipStatus
from app.config import get_core_settings
from app.errors import SimulatorNotAllowed, UnknownPreset
from app.timeutil import utcnow
from database.local_store import KeyValueStore

from .models import FREE_TIER_LIMITS, SubscriptionStatus, SubscriptionTier


# =============================================
# State
# =============================================

class SimulatorPaymentStatus(str, Enum):
    active = "active"
    expired = "expired"
    expiring_soon = "expiring_soon"     # expires within 7 days
    cancelled = "cancelled"             # access until period end
    billing_issue = "billing_issue"
    grace_period = "grace_period"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SimulatorSubscriptionState(_CamelModel):
    tier: SubscriptionTier = SubscriptionTier.free
    is_trial_active: bool = False
    trial_days_remaining: int = Field(default=0, ge=0)
    sessions_used_this_month: int = Field(default=0, ge=0)
    # display only, never changes feature access
    payment_status: SimulatorPaymentStatus = SimulatorPaymentStatus.active
    subscription_expires_at: Optional[datetime] = None
    will_renew: bool = True
    billing_issue_detected_at: Optional[datetime] = None


class SimulatorClubRoleState(_CamelModel):
    club_id: Optional[str] = None
    role: Optional[ClubRole] = None
    status: MembershipStatus = MembershipStatus.active


class SimulatorState(_CamelModel):
    enabled: bool = False
    subscription: SimulatorSubscriptionState = Field(default_factory=SimulatorSubscriptionState)
    club_role: SimulatorClubRoleState = Field(default_factory=SimulatorClubRoleState)

    def to_subscription_status(
        self,
        free_sessions_per_month: int = FREE_TIER_LIMITS.max_sessions_per_month
    ) -> SubscriptionStatus:
        sub = self.subscription
        return SubscriptionStatus(
            tier=sub.tier,
            is_trial_active=sub.is_trial_active,
            trial_days_remaining=sub.trial_days_remaining,
            sessions_used_this_month=sub.sessions_used_this_month,
            sessions_remaining_this_month=max(0, free_sessions_per_month - sub.sessions_used_this_month),
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


# =============================================
# Presets
# =============================================

class SimulatorPreset(str, Enum):
    new_free_user = "new_free_user"
    free_limit_reached = "free_limit_reached"
    personal_trial_ending = "personal_trial_ending"
    personal_active = "personal_active"
    personal_expiring_soon = "personal_expiring_soon"
    personal_expired = "personal_expired"
    personal_cancelled = "personal_cancelled"
    personal_billing_issue = "personal_billing_issue"
    club_owner = "club_owner"
    club_member = "club_member"


PRESET_LABELS = {
    SimulatorPreset.new_free_user: "New Free User",
    SimulatorPreset.free_limit_reached: "Free Limit Reached",
    SimulatorPreset.personal_trial_ending: "Personal Trial Ending",
    SimulatorPreset.personal_active: "Personal Active",
    SimulatorPreset.personal_expiring_soon: "Personal Expiring Soon",
    SimulatorPreset.personal_expired: "Personal Expired",
    SimulatorPreset.personal_cancelled: "Personal Cancelled",
    SimulatorPreset.personal_billing_issue: "Personal Billing Issue",
    SimulatorPreset.club_owner: "Club Owner",
    SimulatorPreset.club_member: "Club Member",
}

PRESET_DESCRIPTIONS = {
    SimulatorPreset.new_free_user: "Free tier with 14-day trial, 0 sessions used",
    SimulatorPreset.free_limit_reached: "Free tier, no trial, 4/4 sessions used",
    SimulatorPreset.personal_trial_ending: "Personal tier with 2 days of trial left",
    SimulatorPreset.personal_active: "Personal tier, active subscription, renews in 25 days",
    SimulatorPreset.personal_expiring_soon: "Personal tier, expires in 5 days, will auto-renew",
    SimulatorPreset.personal_expired: "Subscription expired 3 days ago, reverted to free tier",
    SimulatorPreset.personal_cancelled: "User cancelled, 12 days of access remaining",
    SimulatorPreset.personal_billing_issue: "Payment failed 2 days ago, 3 days grace period left",
    SimulatorPreset.club_owner: "Club tier, owner role in simulated club",
    SimulatorPreset.club_member: "Personal tier, member role in simulated club",
}

SIMULATED_CLUB_ID = "simulated-club-id"


def _subscription(tier, trial=False, trial_days=0, used=0, payment="active",
                  expires_at=None, will_renew=True, billing_issue_at=None) -> Dict[str, Any]:
    return {
        "tier": tier,
        "is_trial_active": trial,
        "trial_days_remaining": trial_days,
        "sessions_used_this_month": used,
        "payment_status": payment,
        "subscription_expires_at": expires_at,
        "will_renew": will_renew,
        "billing_issue_detected_at": billing_issue_at,
    }


def _club_role(role=None) -> Dict[str, Any]:
    return {
        "club_id": SIMULATED_CLUB_ID if role else None,
        "role": role,
        "status": "active",
    }


def build_presets(now: datetime) -> Dict[SimulatorPreset, Dict[str, Any]]:
    """Preset table; expiry dates are relative to ``now``"""
    def days(n: int) -> datetime:
        return now + timedelta(days=n)

    return {
        SimulatorPreset.new_free_user: {
            "subscription": _subscription("free", trial=True, trial_days=14),
            "club_role": _club_role(),
        },
        SimulatorPreset.free_limit_reached: {
            "subscription": _subscription("free", used=4),
            "club_role": _club_role(),
        },
        SimulatorPreset.personal_trial_ending: {
            "subscription": _subscription("personal", trial=True, trial_days=2, expires_at=days(2)),
            "club_role": _club_role(),
        },
        SimulatorPreset.personal_active: {
            "subscription": _subscription("personal", expires_at=days(25)),
            "club_role": _club_role(),
        },
        SimulatorPreset.personal_expiring_soon: {
            "subscription": _subscription("personal", used=2, payment="expiring_soon", expires_at=days(5)),
            "club_role": _club_role(),
        },
        SimulatorPreset.personal_expired: {
            "subscription": _subscription("free", used=1, payment="expired", expires_at=days(-3),
                                          will_renew=False),
            "club_role": _club_role(),
        },
        SimulatorPreset.personal_cancelled: {
            "subscription": _subscription("personal", used=3, payment="cancelled", expires_at=days(12),
                                          will_renew=False),
            "club_role": _club_role(),
        },
        SimulatorPreset.personal_billing_issue: {
            "subscription": _subscription("personal", used=2, payment="billing_issue", expires_at=days(3),
                                          billing_issue_at=days(-2)),
            "club_role": _club_role(),
        },
        SimulatorPreset.club_owner: {
            "subscription": _subscription("club", expires_at=days(20)),
            "club_role": _club_role("owner"),
        },
        SimulatorPreset.club_member: {
            "subscription": _subscription("personal", expires_at=days(15)),
            "club_role": _club_role("member"),
        },
    }


# =============================================
# Overlay service
# =============================================

class SimulatorOverlay:
    """Identity-scoped simulated subscription/club-role state"""

    def __init__(
        self,
        store: KeyValueStore,
        allowed_identities: Optional[Iterable[str]] = None,
        namespace: Optional[str] = None,
        now: Optional[Callable[[], datetime]] = None
    ):
        settings = get_core_settings()
        self.store = store
        if allowed_identities is None:
            allowed_identities = settings.simulator_allowed_emails
        self.allowed = frozenset(i.strip().lower() for i in allowed_identities if i)
        self.namespace = namespace or settings.simulator_storage_key
        self._now = now or utcnow

    def is_allowed(self, identity: Optional[str]) -> bool:
        if not identity:
            return False
        return identity.strip().lower() in self.allowed

    def account_identity(self, account_email: Optional[str], claimed: Optional[str] = None) -> Optional[str]:
        """
        Identity to simulate for an account

        Always the account's own email. A claimed identity that is not that
        email is dropped, so a test account's state can never be read for
        somebody else's profile.
        """
        if not account_email:
            return None
        if claimed and claimed.strip().lower() != account_email.strip().lower():
            logger.warning(f"Simulator identity {claimed!r} does not match the account, using real data")
            return None
        return account_email

    def _key(self, identity: str) -> str:
        return f"{self.namespace}:{identity.strip().lower()}"

    def _require_allowed(self, identity: Optional[str]) -> str:
        if not self.is_allowed(identity):
            logger.warning(f"Account simulator refused for {identity!r}")
            raise SimulatorNotAllowed(identity=identity)
        return identity

    # ----- persistence -----

    async def load(self, identity: str) -> SimulatorState:
        """Stored state merged onto defaults (defaults when absent or unreadable)"""
        identity = self._require_allowed(identity)
        raw = await self.store.get(self._key(identity))
        if not raw:
            return SimulatorState()

        try:
            stored = json.loads(raw)
            if not isinstance(stored, dict):
                raise ValueError("stored simulator state is not an object")
            defaults = SimulatorState().model_dump(by_alias=True, mode="json")
            merged = {
                **defaults,
                **stored,
                "subscription": {**defaults["subscription"], **(stored.get("subscription") or {})},
                "clubRole": {**defaults["clubRole"], **(stored.get("clubRole") or {})},
            }
            return SimulatorState.model_validate(merged)
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Account simulator failed to load state for {identity}: {e}")
            return SimulatorState()

    async def save(self, identity: str, state: SimulatorState) -> SimulatorState:
        identity = self._require_allowed(identity)
        await self.store.set(self._key(identity), state.to_json())
        return state

    async def reset(self, identity: str) -> SimulatorState:
        """Drop stored state; the identity is back to real data"""
        identity = self._require_allowed(identity)
        await self.store.remove(self._key(identity))
        logger.info(f"Account simulator reset for {identity}")
        return SimulatorState()

    # ----- reads -----

    async def resolve(self, identity: Optional[str]) -> Optional[SimulatorState]:
        """Simulated state if this identity is allowed and enabled, else None"""
        if not self.is_allowed(identity):
            return None

        state = await self.load(identity)
        return state if state.enabled else None

    async def resolve_club_role(self, identity: Optional[str], club_id: str) -> Optional[SimulatorClubRoleState]:
        """Simulated role for a club (a role without club id applies to any club)"""
        state = await self.resolve(identity)
        if state is None or state.club_role.role is None:
            return None
        if state.club_role.club_id not in (None, SIMULATED_CLUB_ID, club_id):
            return None
        return state.club_role

    # ----- mutations -----

    async def apply_preset(self, identity: str, preset: str) -> SimulatorState:
        """Merge a preset onto the current state, enable it and persist"""
        try:
            preset = SimulatorPreset(preset)
        except ValueError as e:
            raise UnknownPreset(f"Unknown simulator preset: {preset}") from e

        current = await self.load(identity)
        config = build_presets(self._now())[preset]

        state = SimulatorState(
            enabled=True,
            subscription=SimulatorSubscriptionState.model_validate(
                {**current.subscription.model_dump(), **config.get("subscription", {})}
            ),
            club_role=SimulatorClubRoleState.model_validate(
                {**current.club_role.model_dump(), **config.get("club_role", {})}
            ),
        )
        await self.save(identity, state)
        logger.info(f"Account simulator preset {preset.value} applied for {identity}")
        return state

    async def toggle(self, identity: str, enabled: bool) -> SimulatorState:
        current = await self.load(identity)
        return await self.save(identity, current.model_copy(update={"enabled": enabled}))

    async def update_subscription(self, identity: str, **fields: Any) -> SimulatorState:
        current = await self.load(identity)
        subscription = SimulatorSubscriptionState.model_validate(
            {**current.subscription.model_dump(), **fields}
        )
        return await self.save(identity, current.model_copy(update={"subscription": subscription}))

    async def update_club_role(self, identity: str, **fields: Any) -> SimulatorState:
        current = await self.load(identity)
        club_role = SimulatorClubRoleState.model_validate(
            {**current.club_role.model_dump(), **fields}
        )
        return await self.save(identity, current.model_copy(update={"club_role": club_role}))

    # ----- preset metadata -----

    @staticmethod
    def available_presets() -> List[Dict[str, str]]:
        return [
            {
                "name": preset.value,
                "label": PRESET_LABELS[preset],
                "description": PRESET_DESCRIPTIONS[preset],
            }
            for preset in SimulatorPreset
        ]
