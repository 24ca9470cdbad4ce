"""FastAPI application entry point: wires everything together.

Usage:
    python -m src.main

Serves the customer feedback API plus a health check.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from src.config import settings
from src.db.engine import redis_lifespan
from src.events.audit import audit_on_event
from src.events.bus import emit, start_event_system, stop_event_system, subscribe, unsubscribe
from src.integrations.hoshloop.client import hoshloop_client
from src.schemas.events import EventType, SystemEvent
from src.web.feedback import install_error_handlers, router as feedback_router

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting Hoshloop feedback (env=%s)", settings.environment)

    # 1. Redis (wizard sessions)
    async with redis_lifespan():
        logger.info("Redis connected")

        # 2. Event system + audit subscriber
        subscribe(audit_on_event)
        await start_event_system()
        logger.info("Event system started")
        await emit(SystemEvent(
            event_type=EventType.SYSTEM_STARTUP,
            data={"environment": settings.environment},
            source_module="main",
        ))

        try:
            yield
        finally:
            logger.info("Shutting down Hoshloop feedback...")
            await emit(SystemEvent(event_type=EventType.SYSTEM_SHUTDOWN, source_module="main"))

            await hoshloop_client.close()
            logger.info("Hoshloop API client closed")

            await stop_event_system()
            unsubscribe(audit_on_event)
            logger.info("Event system stopped")

    logger.info("Hoshloop feedback shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="Hoshloop Feedback API",
    description="QR-driven customer feedback and review drafting for restaurants",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(feedback_router)
install_error_handlers(app)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "environment": settings.environment,
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
