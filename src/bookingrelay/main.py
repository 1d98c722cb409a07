"""FastAPI application factory.

Learn: App factory pattern: create_app() builds the relay (hub,
dispatcher, detector, connection handler) and returns a configured
FastAPI instance with the relay on app.state. Lifespan starts the change
detector as a background task and stops it on shutdown.

Tests pass their own AssignmentSource; in production the SQLAlchemy
source over the booking database is used.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from bookingrelay import __version__
from bookingrelay.api import api_router
from bookingrelay.config import settings
from bookingrelay.log import configure_logging
from bookingrelay.relay.service import build_relay
from bookingrelay.relay.source import AssignmentSource

logger = structlog.get_logger()


def _log_detector_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("bookingrelay.detector_crashed", error=str(exc))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. The detector runs for the whole life of the process,
    independent of how many clients are connected.
    """
    relay = app.state.relay
    logger.info(
        "bookingrelay.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
        poll_interval=relay.detector.poll_interval,
    )

    detector_task = asyncio.create_task(relay.detector.run_loop())
    detector_task.add_done_callback(_log_detector_exit)

    yield

    logger.info("bookingrelay.shutdown")

    relay.detector.stop()
    detector_task.cancel()
    await asyncio.gather(detector_task, return_exceptions=True)

    if app.state.owns_engine:
        from bookingrelay.db.engine import engine
        await engine.dispose()


def create_app(
    source: Optional[AssignmentSource] = None,
    poll_interval: Optional[float] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(settings.log_level, json_output=settings.log_json)

    owns_engine = source is None
    if source is None:
        from bookingrelay.db.engine import async_session_factory
        from bookingrelay.relay.source import SqlAssignmentSource
        source = SqlAssignmentSource(async_session_factory)

    app = FastAPI(
        title="Booking Relay",
        description="Real-time driver assignment notifications for bookings",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.relay = build_relay(
        source,
        poll_interval=poll_interval or settings.poll_interval_seconds,
        strict=settings.fail_on_invariant_violation,
    )
    app.state.owns_engine = owns_engine

    from bookingrelay.middleware.request_id import RequestIdMiddleware
    app.add_middleware(RequestIdMiddleware)

    # Mount API routes
    app.include_router(api_router)

    # Mount WebSocket route
    from bookingrelay.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: bookingrelay.main:app)
app = create_app()
