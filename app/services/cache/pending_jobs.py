"""
Pending contact submission jobs.

SendGrid processes upserts asynchronously; submissions are tracked here,
most recent first, until their import job reports a settled status.
"""

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.job_domain import PendingJob
from app.services.cache.store import CacheStore, get_cache_store
from app.services.contacts.contact_service import ContactService, contact_service
from app.services.errors import ContactDeskError

logger = get_logger(__name__)


class PendingJobTracker:
    def __init__(self, store: CacheStore | None = None, limit: int | None = None):
        self._store = store
        self.limit = limit or settings.PENDING_JOBS_LIMIT
        self.key = settings.cache_key("pending_jobs")

    @property
    def documents(self) -> CacheStore:
        return self._store or get_cache_store()

    async def all(self) -> list[PendingJob]:
        document = await self.documents.read(self.key)
        if not isinstance(document, list):
            return []
        return [PendingJob.from_dict(item) for item in document if isinstance(item, dict)]

    async def _save(self, jobs: list[PendingJob]) -> None:
        await self.documents.write(self.key, [job.to_dict() for job in jobs[: self.limit]])

    async def add(self, job: PendingJob) -> list[PendingJob]:
        """Record a submission at the head of the list, dropping the oldest past the cap."""
        jobs = [existing for existing in await self.all() if existing.job_id != job.job_id]
        jobs.insert(0, job)
        await self._save(jobs)
        return jobs[: self.limit]

    async def update_status(
        self, job_id: str, status: str, error_info: dict | None = None
    ) -> PendingJob | None:
        jobs = await self.all()
        for job in jobs:
            if job.job_id == job_id:
                job.status = status
                job.error_info = error_info
                await self._save(jobs)
                return job
        return None

    async def pending(self) -> list[PendingJob]:
        return [job for job in await self.all() if job.is_pending()]

    async def refresh_pending(self, service: ContactService | None = None) -> list[PendingJob]:
        """
        Re-check every unsettled job against SendGrid.

        Jobs without an id are skipped. A failed status lookup leaves that
        job as it was and does not stop the others.
        """
        service = service or contact_service
        jobs = await self.all()
        changed = False

        for job in jobs:
            if not job.is_pending():
                continue
            if not job.job_id or not job.job_id.strip():
                logger.warning("Skipping pending job without an id", emails=job.emails)
                continue
            try:
                status = await service.get_job_status(job.job_id)
            except ContactDeskError as e:
                logger.warning(
                    "Pending job status check failed",
                    job_id=job.job_id,
                    error_kind=e.kind,
                    error=e.message,
                )
                continue

            if status.status != job.status:
                job.status = status.status
                job.error_info = status.error_info.to_dict() if status.error_info else None
                changed = True

        if changed:
            await self._save(jobs)
        return jobs

    async def clear(self) -> None:
        await self.documents.clear(self.key)


# Global instance
pending_job_tracker = PendingJobTracker()
