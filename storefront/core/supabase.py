"""Supabase client for database operations."""

from functools import lru_cache
from typing import Any

from supabase import Client, create_client

from storefront.core.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Get cached Supabase client for database operations.

    Uses the secret key, which bypasses RLS at the PostgREST level. Orders,
    order items and codes are only ever written server-side, so every
    service shares this client.

    Returns:
        Client: Supabase client instance.
    """
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_secret_key,
    )


async def check_database_connection(client: Client | None = None) -> dict[str, Any]:
    """Check if database connection is healthy.

    Args:
        client: Optional client to check; defaults to the shared client.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        client = client or get_supabase_client()
        client.table("settings").select("key").limit(1).execute()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
