"""Sync module for the Supabase remote item store.

Wraps the Supabase REST API and reconciles the local reading lists with
the signed-in user's remote rows.
"""

from .remote import (
    BOOKS_TABLE,
    FetchResult,
    RemoteSyncAdapter,
    SyncAction,
    SyncOutcome,
    item_to_row,
    rows_to_lists,
)
from .supabase import (
    SupabaseClient,
    SupabaseConfigError,
    SupabaseError,
    SupabaseSchemaError,
)

__all__ = [
    # Supabase client
    "SupabaseClient",
    "SupabaseConfigError",
    "SupabaseError",
    "SupabaseSchemaError",
    # Remote sync
    "BOOKS_TABLE",
    "FetchResult",
    "RemoteSyncAdapter",
    "SyncAction",
    "SyncOutcome",
    "item_to_row",
    "rows_to_lists",
]
