"""
Contact export pipeline.

Fetches the full contact list through SendGrid's asynchronous export:

    start export -> poll status (bounded) -> download first file -> gunzip -> parse

Every stage failure surfaces as a typed error from app.services.errors; the
pipeline never substitutes an empty or sample list for a failed fetch.
"""

import asyncio
from collections.abc import Awaitable, Callable

from app.config import settings
from app.infrastructure.observability.logging import get_logger
from app.models.domain.contact_domain import ParseResult
from app.models.domain.job_domain import (
    ExportBatch,
    ExportJob,
    ExportPollResult,
    ExportReady,
    ExportTimedOut,
)
from app.services.contacts.export_parser import parse_export
from app.services.errors import (
    DownloadFailed,
    ExportStartFailed,
    ExportTimeout,
    UpstreamError,
    ValidationError,
)
from app.services.sendgrid.client import SendGridClient, sendgrid_client

logger = get_logger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class ContactExportPipeline:
    """
    Drives one SendGrid contact export from request to parsed records.

    The poll bound and interval are constructor parameters so callers (and
    tests) control how long a fetch may wait.
    """

    def __init__(
        self,
        client: SendGridClient | None = None,
        poll_interval: float | None = None,
        max_attempts: int | None = None,
        sleep: SleepFunc | None = None,
    ):
        export_config = settings.get_export_config()
        self._client = client or sendgrid_client
        self.poll_interval = (
            export_config["poll_interval"] if poll_interval is None else poll_interval
        )
        self.max_attempts = export_config["max_attempts"] if max_attempts is None else max_attempts
        self._sleep = sleep or asyncio.sleep

        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    async def start_export(self) -> str:
        """
        Request a bulk export.

        Returns:
            str: SendGrid export job id

        Raises:
            ExportStartFailed: On a non-2xx answer or a missing job id
            ConfigurationError: If no API key is configured
        """
        try:
            data = await self._client.start_export()
        except UpstreamError as e:
            logger.error("Failed to start contact export", status_code=e.status_code)
            raise ExportStartFailed(
                f"SendGrid API error starting export: {e.status_code}",
                upstream_status=e.status_code,
            ) from e

        export_id = data.get("id")
        if not export_id:
            logger.error("Export start returned no job id", response_keys=list(data.keys()))
            raise ExportStartFailed("No export ID returned from SendGrid")

        logger.info("Contact export started", export_id=export_id)
        return str(export_id)

    async def wait_for_export(self, export_id: str) -> ExportPollResult:
        """
        Poll the export job until it is ready or the attempt budget runs out.

        Each attempt waits ``poll_interval`` seconds and then checks status.
        A failed status check counts as an attempt and keeps the last known
        status.

        Returns:
            ExportReady | ExportTimedOut
        """
        last_status: str | None = None

        for attempt in range(1, self.max_attempts + 1):
            await self._sleep(self.poll_interval)

            try:
                job = ExportJob.from_api(await self._client.get_export_status(export_id))
            except UpstreamError as e:
                logger.warning(
                    "Error checking export status",
                    export_id=export_id,
                    attempt=attempt,
                    status_code=e.status_code,
                )
                continue

            last_status = job.status
            logger.debug(
                "Export status checked", export_id=export_id, attempt=attempt, status=job.status
            )

            if job.is_ready():
                logger.info("Contact export ready", export_id=export_id, attempts=attempt)
                return ExportReady(urls=job.urls, attempts=attempt)

        logger.warning(
            "Contact export did not complete in time",
            export_id=export_id,
            attempts=self.max_attempts,
            last_status=last_status,
        )
        return ExportTimedOut(last_status=last_status, attempts=self.max_attempts)

    async def export_urls(self) -> tuple[str, list[str]]:
        """
        Start an export and wait for its download URLs.

        Raises:
            ExportTimeout: If the export is not ready within the attempt budget
        """
        export_id = await self.start_export()
        result = await self.wait_for_export(export_id)

        if isinstance(result, ExportTimedOut):
            raise ExportTimeout(result.last_status, result.attempts)
        return export_id, list(result.urls)

    async def download(self, url: str) -> bytes:
        """
        Download one export file.

        Raises:
            DownloadFailed: On a non-2xx answer or network failure
        """
        if not url:
            raise ValidationError("URL is required")

        try:
            payload = await self._client.download_export(url)
        except UpstreamError as e:
            raise DownloadFailed(e.status_code, e.raw_body) from e

        logger.info("Export file downloaded", size_bytes=len(payload))
        return payload

    async def download_and_parse(self, url: str) -> ParseResult:
        """Download one export file and parse it into contact records."""
        payload = await self.download(url)
        return parse_export(payload, source_url=url)

    async def fetch_contacts(self) -> ExportBatch:
        """
        Run the whole pipeline and return the normalized contact list.

        Only the first result file is read.

        Raises:
            ConfigurationError, ExportStartFailed, ExportTimeout,
            DownloadFailed, DecompressFailed, ParseError
        """
        try:
            export_id, urls = await self.export_urls()
            result = await self.download_and_parse(urls[0])
        except Exception as e:
            logger.error(
                "Contact export pipeline failed", error=str(e), error_type=type(e).__name__
            )
            raise

        if len(urls) > 1:
            logger.info("Export produced multiple files; reading the first", file_count=len(urls))

        return ExportBatch(
            contacts=result.contacts,
            skipped=result.skipped,
            export_id=export_id,
            urls=urls,
            format=result.format,
        )


# Global instance
contact_export_pipeline = ContactExportPipeline()
