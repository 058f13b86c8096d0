"""Background scheduler that persists lapsed voucher and gift card expiries."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from ..core.config import get_settings
from ..core.database import SessionLocal
from ..services.expiry_service import run_expiry_sweep

logger = logging.getLogger(__name__)

_scheduler = AsyncIOScheduler(timezone="UTC")


async def _execute_expiry_sweep() -> None:
    session = SessionLocal()
    try:
        summary = run_expiry_sweep(session, current_time=datetime.now(timezone.utc))
        session.commit()
        logger.info("expiry sweep completed: %s", summary)
    except Exception:  # pragma: no cover - safeguard for background job
        session.rollback()
        logger.exception("expiry sweep job failed")
        raise
    finally:
        session.close()


def register_scheduler(app: FastAPI) -> None:
    """Attach APScheduler lifecycle hooks to the FastAPI app."""

    settings = get_settings()
    if not settings.scheduler_enabled:
        logger.info("expiry sweep scheduler disabled by configuration")
        return

    @app.on_event("startup")
    async def start_scheduler() -> None:
        if not _scheduler.running:
            _scheduler.add_job(
                _execute_expiry_sweep,
                "interval",
                minutes=settings.expiry_sweep_interval_minutes,
                id="expiry_sweep",
                replace_existing=True,
                coalesce=True,
                max_instances=1,
                misfire_grace_time=300,
            )
            _scheduler.start()
            logger.info(
                "expiry sweep scheduler started (every %s minutes)",
                settings.expiry_sweep_interval_minutes,
            )

    @app.on_event("shutdown")
    async def shutdown_scheduler() -> None:
        if _scheduler.running:
            _scheduler.shutdown(wait=False)
            logger.info("expiry sweep scheduler stopped")


def run_sweep_once(current_time: datetime | None = None) -> dict[str, int]:
    """Convenience helper to run the sweep synchronously for operators and tests."""

    session = SessionLocal()
    try:
        summary = run_expiry_sweep(session, current_time=current_time)
        session.commit()
        return summary
    finally:
        session.close()
