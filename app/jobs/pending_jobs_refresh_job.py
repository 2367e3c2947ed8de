"""
Pending Jobs Refresh Background Job - settles tracked contact submissions.

Polls SendGrid for the status of every tracked import job that has not
settled yet and records the result on the pending job list.

Usage:
    python -m app.jobs.worker pending_jobs_refresh
"""

import asyncio

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.services.cache.pending_jobs import PendingJobTracker, pending_job_tracker
from app.services.contacts.contact_service import ContactService, contact_service

logger = get_logger(__name__)


async def run_pending_jobs_refresh(
    tracker: PendingJobTracker | None = None, service: ContactService | None = None
) -> dict:
    tracker = tracker or pending_job_tracker
    before = len(await tracker.pending())
    if before == 0:
        return {"checked": 0, "still_pending": 0}

    jobs = await tracker.refresh_pending(service or contact_service)
    still_pending = sum(1 for job in jobs if job.is_pending())
    logger.info("Pending jobs refreshed", checked=before, still_pending=still_pending)
    return {"checked": before, "still_pending": still_pending}


async def start_pending_jobs_refresh_scheduler():
    interval = settings.PENDING_JOBS_REFRESH_INTERVAL_SECONDS
    logger.info("Starting pending jobs refresh scheduler", interval_seconds=interval)

    while True:
        try:
            await run_pending_jobs_refresh()
            await asyncio.sleep(interval)
        except Exception as e:
            logger.error(
                "Error in pending jobs refresh scheduler",
                error=str(e),
                error_type=type(e).__name__,
            )
            await asyncio.sleep(60)
