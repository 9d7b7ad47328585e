import threading

from supabase import create_client, Client
from supabase.lib.client_options import ClientOptions

from app.core.config import settings

# One client per worker thread; sync routes run in FastAPI's threadpool
_thread_local = threading.local()


def get_supabase_client() -> Client:
    """Get the Supabase client bound to the current thread.

    Clients are not shared across threads, so a stale pooled HTTP/2
    connection in one worker cannot break requests served by another.
    """
    if not settings.supabase_url or not settings.supabase_secret_key:
        raise RuntimeError(
            "Supabase credentials not configured. "
            "Set SUPABASE_URL and SUPABASE_SECRET_KEY environment variables."
        )

    client = getattr(_thread_local, "client", None)
    if client is None:
        client = create_client(
            settings.supabase_url,
            settings.supabase_secret_key,
            options=ClientOptions(
                postgrest_client_timeout=settings.supabase_timeout,
                storage_client_timeout=settings.supabase_timeout,
            ),
        )
        _thread_local.client = client
    return client


def reset_supabase_client() -> None:
    """Drop the current thread's client so the next call reconnects."""
    if hasattr(_thread_local, "client"):
        delattr(_thread_local, "client")
