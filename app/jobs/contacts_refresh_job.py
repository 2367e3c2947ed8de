"""
Contacts Refresh Background Job - keeps the shared contact cache warm.

Runs the export pipeline on an interval and overwrites the cached contact
list, so web requests are served from cache instead of waiting on an export.
Only useful with a shared (Redis) cache store; with the in-memory store the
worker's cache is invisible to the web process.

Usage:
    python -m app.jobs.worker contacts_refresh
"""

import asyncio
import time

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.services.cache.contact_cache import ContactDirectory, contact_directory
from app.services.errors import ContactDeskError

logger = get_logger(__name__)


class ContactsRefreshJob:
    """Single-flight refresh of the cached contact list."""

    def __init__(self, directory: ContactDirectory | None = None):
        self.directory = directory or contact_directory
        self.is_running = False

    async def run_once(self) -> dict:
        if self.is_running:
            logger.warning("Contacts refresh already running, skipping")
            return {"success": False, "skipped": True}

        self.is_running = True
        start = time.time()
        try:
            cached = await self.directory.refresh()
            result = {
                "success": True,
                "contact_count": len(cached.contacts),
                "duration_ms": round((time.time() - start) * 1000, 1),
            }
            logger.info("Contacts refresh completed", **result)
            return result
        except ContactDeskError as e:
            logger.error("Contacts refresh failed", error_kind=e.kind, error=e.message)
            return {"success": False, "error": e.message, "error_kind": e.kind}
        finally:
            self.is_running = False


contacts_refresh_job = ContactsRefreshJob()


async def run_contacts_refresh_job() -> dict:
    return await contacts_refresh_job.run_once()


async def start_contacts_refresh_scheduler():
    """Refresh the contact cache forever at the configured interval."""
    interval = settings.CONTACTS_REFRESH_INTERVAL_SECONDS
    if not settings.REDIS_URL:
        logger.warning("REDIS_URL not set; refreshed contacts stay in this process only")

    logger.info("Starting contacts refresh scheduler", interval_seconds=interval)

    while True:
        try:
            await run_contacts_refresh_job()
            await asyncio.sleep(interval)
        except Exception as e:
            logger.error(
                "Error in contacts refresh scheduler", error=str(e), error_type=type(e).__name__
            )
            # Back off before retrying to avoid tight error loops
            await asyncio.sleep(60)
