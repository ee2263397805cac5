"""
Core settings

Supabase connection, club/subscription quotas and the developer simulator.
"""
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

load_dotenv()


class SupabaseConfig(BaseSettings):
    """Supabase settings"""

    supabase_url: str = Field(default="", description="Supabase Project URL")
    supabase_key: str = Field(default="", description="Supabase anon key")

    class Config:
        env_prefix = ""
        case_sensitive = False
        extra = "ignore"


class CoreSettings(BaseSettings):
    """Club lifecycle and access-policy settings"""

    # Clubs
    max_owned_clubs: int = Field(default=3, description="Clubs a single user may own")

    # Invitations
    invitation_ttl_days: int = Field(default=7, description="Days before a pending invitation expires")

    # Subscription
    free_sessions_per_month: int = Field(default=4, description="Free tier monthly session cap")

    # Account simulator (test accounts only)
    simulator_allowed_emails: List[str] = Field(
        default=["test@courtster.app", "test2@courtster.app"],
        description="Accounts allowed to use simulated subscription state",
    )
    simulator_storage_key: str = "@courtster_account_simulator"
    simulator_store_path: str = Field(default=".courtster/simulator.json", description="Local key-value file")

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    class Config:
        env_prefix = "COURT_"
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_supabase_config() -> SupabaseConfig:
    return SupabaseConfig()


@lru_cache()
def get_core_settings() -> CoreSettings:
    return CoreSettings()
