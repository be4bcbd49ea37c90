"""Supabase client for the delivery core."""

import logging

from supabase import AsyncClient, acreate_client

from ..config import settings

_client: AsyncClient | None = None


async def get_supabase_client() -> AsyncClient | None:
    """Get the shared async Supabase client.

    Returns:
        AsyncClient instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    global _client
    if _client is not None:
        return _client
    if not settings.supabase_url or not settings.supabase_key:
        logging.warning("Supabase credentials not configured (missing URL or key)")
        return None

    try:
        _client = await acreate_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logging.error(f"Failed to create Supabase client: {e}")
        return None
    return _client


def reset_supabase_client() -> None:
    global _client
    _client = None


# Each collection maps to a table shaped like:
#
# create table carts (
#   id text primary key,
#   data jsonb not null,
#   updated_at timestamptz not null default now()
# );
# alter publication supabase_realtime add table carts;
#
# Reads and writes then look like:
#
# await client.table("carts").select("id, data").eq("id", user_id).limit(1).execute()
# await client.table("carts").upsert({"id": user_id, "data": {...}}).execute()
# await client.table("carts").delete().eq("id", user_id).execute()
