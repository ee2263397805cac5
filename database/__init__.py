"""
Persistence collaborators: Supabase client and client-local key-value storage
"""
from .local_store import JsonFileStore, KeyValueStore, MemoryKeyValueStore
from .supabase_client import escape_like, first_row, get_supabase_client, is_unique_violation

__all__ = [
    "JsonFileStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "escape_like",
    "first_row",
    "get_supabase_client",
    "is_unique_violation",
]
