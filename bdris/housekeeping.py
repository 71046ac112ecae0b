"""
Background session housekeeping.

A session whose CAPTCHA is never redeemed keeps a Chromium process
alive. When BDRIS_SESSION_IDLE_TTL_SECONDS is set, an APScheduler job
closes such sessions once they exceed the TTL.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from bdris.client import BDRISClient
from bdris.config import settings

logger = logging.getLogger(__name__)


async def sweep_idle_sessions(client: BDRISClient, ttl_seconds: float) -> None:
    """Run one sweep. Never raises, so the job keeps its schedule."""
    try:
        await client.sweep_idle_sessions(ttl_seconds)
    except Exception:
        logger.error("Idle session sweep failed", exc_info=True)


def setup_scheduler(client: BDRISClient) -> AsyncIOScheduler:
    """Configure and return the APScheduler instance."""
    scheduler = AsyncIOScheduler()

    if settings.session_idle_ttl_seconds > 0:
        scheduler.add_job(
            sweep_idle_sessions,
            IntervalTrigger(seconds=settings.session_sweep_interval_seconds),
            args=[client, settings.session_idle_ttl_seconds],
            id="sweep_idle_sessions",
            name="sweep_idle_sessions",
        )
        logger.info(
            "Idle session sweep every %ds (ttl=%ds)",
            settings.session_sweep_interval_seconds, settings.session_idle_ttl_seconds,
        )
    else:
        logger.info("Idle session expiry disabled")

    return scheduler
