from supabase import acreate_client, AsyncClient
from rollcall.core.config import get_settings
from typing import Optional

# Global client instance (lazy initialization)
_supabase_admin_client: Optional[AsyncClient] = None


def _require_settings():
    settings = get_settings()
    if settings is None:
        raise RuntimeError(
            "Settings not initialized. Ensure environment variables are set before using Supabase clients."
        )
    return settings


async def get_supabase_admin_client() -> AsyncClient:
    """Get the shared Supabase admin client with service role key"""
    global _supabase_admin_client
    if _supabase_admin_client is None:
        settings = _require_settings()
        _supabase_admin_client = await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
    return _supabase_admin_client


async def close_supabase_clients() -> None:
    """Drop realtime connections held by the shared client."""
    global _supabase_admin_client
    if _supabase_admin_client is not None:
        await _supabase_admin_client.remove_all_channels()
    _supabase_admin_client = None


async def new_auth_client() -> AsyncClient:
    """A throwaway anon client for password sign-in.

    Signing in mutates the client's auth headers, so the shared client is
    never used for it.
    """
    settings = _require_settings()
    return await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
