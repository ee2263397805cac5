"""
Pytest configuration and fixtures for the club core tests
"""

import pytest
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.club.lifecycle import ClubLifecycleManager
from app.club.membership import MembershipRegistry
from app.subscription.policy import SubscriptionPolicyEngine
from app.subscription.simulator import SimulatorOverlay
from database.local_store import MemoryKeyValueStore
from fakes import FakeSupabase

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
TEST_ACCOUNTS = ["test@courtster.app", "test2@courtster.app"]


@pytest.fixture
def now():
    """Fixed clock used by every service fixture"""
    return NOW


@pytest.fixture
def db():
    """Empty in-memory database"""
    fake = FakeSupabase()
    fake.now = lambda: NOW
    return fake


@pytest.fixture
def registry(db):
    return MembershipRegistry(db, invitation_ttl_days=7, now=lambda: NOW)


@pytest.fixture
def manager(db, registry):
    return ClubLifecycleManager(db, registry, max_owned_clubs=3, now=lambda: NOW)


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def simulator(store):
    return SimulatorOverlay(
        store,
        allowed_identities=TEST_ACCOUNTS,
        namespace="@courtster_account_simulator",
        now=lambda: NOW,
    )


@pytest.fixture
def engine(db, simulator):
    return SubscriptionPolicyEngine(db, simulator, free_sessions_per_month=4, now=lambda: NOW)
