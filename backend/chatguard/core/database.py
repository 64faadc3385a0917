from typing import Optional

from supabase import Client, ClientOptions, create_client

from chatguard.core.config import get_settings

_supabase_client: Optional[Client] = None


def get_supabase() -> Client:
    """Get Supabase client instance.

    PostgREST calls are bounded by store_timeout_seconds so a slow database
    cannot hold a chat message indefinitely.
    """
    global _supabase_client
    if _supabase_client is None:
        settings = get_settings()
        _supabase_client = create_client(
            settings.supabase_url,
            settings.supabase_service_role_key,
            options=ClientOptions(postgrest_client_timeout=settings.store_timeout_seconds),
        )
    return _supabase_client


def reset_supabase() -> None:
    """Reset the Supabase client (for testing)."""
    global _supabase_client
    _supabase_client = None
