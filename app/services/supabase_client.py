"""
Shared Supabase client.
Every store (tenants, onboarding sessions, conversations) receives this
instance instead of opening its own connection.
"""

import logging
from typing import Optional

from supabase import Client, create_client

from app.config import Settings

logger = logging.getLogger(__name__)

_client: Optional[Client] = None


def get_supabase(settings: Settings) -> Client:
    """Returns the process-wide Supabase client, creating it on first call."""
    global _client
    if _client is not None:
        return _client

    if not settings.supabase_url or not settings.supabase_token:
        raise RuntimeError("SUPABASE_URL and SUPABASE_TOKEN must be set")

    logger.info("Creating Supabase client for %s", settings.supabase_url)
    _client = create_client(settings.supabase_url, settings.supabase_token)
    return _client


def is_unique_violation(error: Exception) -> bool:
    """True when a PostgREST error is a Postgres unique-constraint violation."""
    return getattr(error, "code", None) == "23505"
