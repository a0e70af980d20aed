"""FastAPI application factory.

Learn: App factory pattern — create_app() builds the two long-lived
realtime components (admission controller, connection registry) and the
tender service, hangs them on app.state, and hands the controller to the
rate-limit middleware. Nothing is a module-level global: a test can build
a second app with its own components and a fake clock.

Lifespan manages the background work: the window sweeper starts at
startup, and at shutdown it is stopped and every open connection closed.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tenderhub import __version__
from tenderhub.admission.limiter import AdmissionController
from tenderhub.admission.sweeper import WindowSweeper
from tenderhub.api import api_router
from tenderhub.config import settings
from tenderhub.realtime.registry import ConnectionRegistry
from tenderhub.services.tender_service import TenderService

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown.
    """
    logger.info(
        "tenderhub.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    sweeper = WindowSweeper(
        app.state.admission, interval=settings.rate_limit_sweep_seconds
    )
    sweep_task = asyncio.create_task(sweeper.run_loop())
    app.state.sweeper = sweeper

    yield

    logger.info("tenderhub.shutdown")

    sweeper.stop()
    await sweep_task

    await app.state.registry.close_all()


def create_app(
    admission: Optional[AdmissionController] = None,
    registry: Optional[ConnectionRegistry] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="TenderHub",
        description="Tendering marketplace backend with live bid notifications",
        version=__version__,
        lifespan=lifespan,
    )

    if admission is None:
        admission = AdmissionController(
            limit=settings.bid_rate_limit,
            window=settings.bid_rate_window_seconds,
        )
    if registry is None:
        registry = ConnectionRegistry(
            close_superseded=settings.close_superseded_connections,
            unregister_on_send_failure=settings.unregister_on_send_failure,
        )

    app.state.admission = admission
    app.state.registry = registry
    app.state.tender_service = TenderService(registry)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → BidRateLimit → handler

    from tenderhub.middleware.rate_limit import BidRateLimitMiddleware

    app.add_middleware(BidRateLimitMiddleware, controller=admission)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)

    from tenderhub.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: tenderhub.main:app)
app = create_app()
