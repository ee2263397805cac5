"""
Subscription Module

Tier/trial/usage policy engine and the test-account simulator overlay.
"""
from .models import FeatureAccess, ProfileSubscription, SubscriptionStatus, SubscriptionTier
from .policy import SubscriptionPolicyEngine, calculate_feature_access, calculate_subscription_status
from .simulator import SimulatorOverlay, SimulatorPreset, SimulatorState

__all__ = [
    "FeatureAccess",
    "ProfileSubscription",
    "SubscriptionStatus",
    "SubscriptionTier",
    "SubscriptionPolicyEngine",
    "calculate_feature_access",
    "calculate_subscription_status",
    "SimulatorOverlay",
    "SimulatorPreset",
    "SimulatorState",
]
