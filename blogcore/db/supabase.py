"""Supabase client singleton.

Provides ``get_supabase()`` which returns a lazily-initialized, process-wide
async Supabase client using credentials from ``settings``, and
``run_query()`` which executes a PostgREST query with error translation.
"""

import logging
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from blogcore.core.config import settings
from blogcore.core.errors import NotFound, StoreError

logger = logging.getLogger(__name__)

# PostgREST code for "JSON object requested, multiple (or no) rows returned"
NO_ROWS_CODE = "PGRST116"

_client: AsyncClient | None = None


async def get_supabase() -> AsyncClient:
    """Return the singleton Supabase client, creating it on first call."""
    global _client
    if _client is None:
        _client = await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    return _client


async def run_query(query: Any, operation: str, **context: Any) -> list[dict[str, Any]]:
    """Execute a PostgREST *query* and return its rows.

    Translates ``APIError`` and transport failures into ``StoreError``
    (``NotFound`` when PostgREST reports no matching row).  No retries.
    """
    try:
        result = await query.execute()
    except APIError as exc:
        message = exc.message or str(exc)
        logger.error(
            "store_query_failed",
            extra={
                "operation": operation,
                "code": exc.code,
                "error_message": message,
                **context,
            },
        )
        if exc.code == NO_ROWS_CODE:
            raise NotFound(message, code=exc.code) from exc
        raise StoreError(message, code=exc.code) from exc
    except httpx.HTTPError as exc:
        logger.error(
            "store_transport_failed",
            extra={"operation": operation, "error_message": str(exc), **context},
        )
        raise StoreError(str(exc)) from exc
    return result.data or []
