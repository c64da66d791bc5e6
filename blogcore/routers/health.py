"""Health check endpoint.

Returns service status including database connectivity and the state of
the viewed thread.
"""

import logging
from typing import Any

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from blogcore.core.constants import POSTS_TABLE
from blogcore.db.supabase import get_supabase

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request) -> Any:
    """Return health status with a real Supabase connectivity test.

    Returns 200 OK when healthy, 503 when the database is unreachable.
    """
    db_status = "disconnected"

    try:
        client = await get_supabase()
        result = await client.table(POSTS_TABLE).select("id").limit(1).execute()
        if result is not None:
            db_status = "connected"
    except Exception:
        logger.warning("Health check: Supabase connection failed", exc_info=True)

    runtime = getattr(request.app.state, "runtime", None)
    thread_state = runtime.thread.state if runtime is not None else None

    payload: dict[str, str | None] = {
        "status": "ok" if db_status == "connected" else "degraded",
        "database": db_status,
        "thread_post_id": (
            str(thread_state.post_id) if thread_state and thread_state.post_id else None
        ),
        "thread_status": thread_state.status.value if thread_state else None,
    }

    if db_status != "connected":
        return JSONResponse(status_code=503, content=payload)

    return payload
