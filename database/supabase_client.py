"""
Supabase database client
"""
from typing import Any, Dict, Optional

from loguru import logger
from postgrest.exceptions import APIError
from supabase import Client, create_client

from app.config import get_supabase_config

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

# Shared client for the API process
_supabase_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Return the shared Supabase client (created on first use)

    Services take the client as a constructor argument; this is only the
    default used by the API and CLI entry points.
    """
    global _supabase_client
    if _supabase_client is None:
        config = get_supabase_config()
        if not config.supabase_url or not config.supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
        _supabase_client = create_client(config.supabase_url, config.supabase_key)
        logger.debug("Supabase client created")
    return _supabase_client


def first_row(response: Any) -> Optional[Dict[str, Any]]:
    """First row of a PostgREST response, or None"""
    rows = getattr(response, "data", None) or []
    return rows[0] if rows else None


def is_unique_violation(error: BaseException) -> bool:
    return isinstance(error, APIError) and str(error.code) == UNIQUE_VIOLATION


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so ilike() does an exact case-insensitive match"""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
