"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis, database engine).
Middleware, CORS, routers, and the realtime hub are all set up here.

The hub (presence registry + live connections) is created ONCE per app
and stored on app.state. Nothing else holds presence state.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatify import __version__
from chatify.api import api_router
from chatify.config import settings
from chatify.log import configure_logging
from chatify.realtime.hub import RealtimeHub
from chatify.realtime.presence import PresenceRegistry

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "chatify.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from chatify.redis_client import close_redis, init_redis
    try:
        await init_redis()
        logger.info("chatify.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("chatify.redis_unavailable", error=str(e))
        # Redis is optional — only rate limiting depends on it

    yield

    # Shutdown — presence dies with the process
    logger.info("chatify.shutdown", online_users=len(app.state.hub.registry))

    await close_redis()

    from chatify.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(settings.environment, settings.debug)

    app = FastAPI(
        title="Chatify",
        description="Real-time chat backend — messages, presence, live delivery",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.hub = RealtimeHub(
        PresenceRegistry(), evict_stale=settings.presence_evict_stale
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → RequestId → handler

    from chatify.middleware.rate_limit import RateLimitMiddleware
    from chatify.middleware.request_id import RequestIdMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_url],
        allow_credentials=True,  # the auth cookie
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API routes
    app.include_router(api_router)

    # Mount WebSocket route (presence + live messages)
    from chatify.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: chatify.main:app)
app = create_app()

