"""FastAPI application entry point — wires everything together.

Usage:
    python -m src.main

Serves the data subject request and privacy policy APIs, and runs the
deadline reminder job in the background.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from sqlalchemy import text

from src.api.data_subject_requests import router as dsr_router
from src.api.privacy_policy import router as policy_router
from src.config import settings
from src.db.engine import db_lifespan, engine
from src.events import start_event_system, stop_event_system, subscribe, unsubscribe
from src.security.audit import audit_on_event
from src.security.deadlines import send_deadline_reminders

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


async def _deadline_reminder_loop(interval_hours: int) -> None:
    """Run send_deadline_reminders every interval_hours until cancelled."""
    while True:
        try:
            await send_deadline_reminders()
        except Exception:
            logger.warning("Deadline reminder run failed, next attempt in %dh", interval_hours)
        await asyncio.sleep(interval_hours * 3600)


# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting privacy service (env=%s)", settings.environment)

    # 1. Database
    async with db_lifespan():
        logger.info("Database initialized")

        # 2. Event system
        await start_event_system()

        # 3. Audit logging — always active (global subscriber)
        subscribe(audit_on_event)
        logger.info("Audit logging subscriber registered")

        # 4. Deadline reminders
        reminder_task: asyncio.Task[None] | None = None
        if settings.gdpr.reminder_interval_hours > 0:
            reminder_task = asyncio.create_task(
                _deadline_reminder_loop(settings.gdpr.reminder_interval_hours)
            )
            logger.info("Deadline reminders every %dh", settings.gdpr.reminder_interval_hours)
        else:
            logger.warning("REMINDER_INTERVAL_HOURS=0, deadline reminders disabled")

        try:
            yield
        finally:
            logger.info("Shutting down privacy service...")

            if reminder_task is not None:
                reminder_task.cancel()
                try:
                    await reminder_task
                except asyncio.CancelledError:
                    pass

            await stop_event_system()
            unsubscribe(audit_on_event)

    logger.info("Privacy service shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="Privacy Compliance API",
    description="GDPR data subject requests and privacy policy versions",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(dsr_router)
app.include_router(policy_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Liveness plus a database round-trip."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        database = "ok"
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        database = "unavailable"

    return {
        "status": "ok" if database == "ok" else "degraded",
        "environment": settings.environment,
        "database": database,
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
