"""FastAPI application entry point.

Configures CORS, structured logging, lifespan events (Supabase client and
the thread runtime), and router registration.
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from blogcore.core.config import settings
from blogcore.core.logging import setup_logging
from blogcore.db.supabase import get_supabase
from blogcore.routers import health, posts, previews, threads
from blogcore.runtime import build_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: startup and shutdown hooks.

    Builds the runtime around the Supabase client on startup; on exit the
    viewed thread is closed so its subscription and previews are released.
    """
    setup_logging()
    logger.info("Application starting up")
    client = await get_supabase()
    runtime = build_runtime(client)
    application.state.runtime = runtime
    yield
    await runtime.aclose()
    logger.info("Application shutting down")


app = FastAPI(
    title="Blog Thread Core",
    description="Comment thread synchronization and attachment lifecycle over Supabase",
    version="0.1.0",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# CORS Configuration
# ---------------------------------------------------------------------------
_raw_origins = settings.ALLOWED_ORIGINS.strip()
if _raw_origins == "*":
    _allowed_origins: list[str] = ["*"]
else:
    _allowed_origins = [o.strip() for o in _raw_origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Router Registration
# ---------------------------------------------------------------------------
app.include_router(health.router, tags=["Health"])
app.include_router(threads.router, prefix="/api/v1/thread", tags=["Thread"])
app.include_router(posts.router, prefix="/api/v1/posts", tags=["Posts"])
app.include_router(previews.router, prefix="/api/v1/previews", tags=["Previews"])
