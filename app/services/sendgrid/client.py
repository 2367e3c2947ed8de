"""
SendGrid Marketing Contacts API client.
Handles authentication, raw API calls and response validation for contacts,
field definitions, exports, import job status and segments.
Low-level SendGrid API client: no retries, every non-2xx becomes an UpstreamError.
"""

import json
import time
from typing import Any

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger, log_upstream_call
from app.services.errors import ConfigurationError, UpstreamError

logger = get_logger(__name__)

# SendGrid API paths
CONTACTS_PATH = "/v3/marketing/contacts"
CONTACTS_SEARCH_PATH = "/v3/marketing/contacts/search"
CONTACTS_SEARCH_EMAILS_PATH = "/v3/marketing/contacts/search/emails"
CONTACTS_IMPORTS_PATH = "/v3/marketing/contacts/imports"
CONTACTS_EXPORTS_PATH = "/v3/marketing/contacts/exports"
FIELD_DEFINITIONS_PATH = "/v3/marketing/field_definitions"
SEGMENTS_PATH = "/v3/marketing/segments/2.0"

# Network failures are reported with this status (Bad Gateway)
NETWORK_ERROR_STATUS = 502


class SendGridClient:
    """
    Client for the SendGrid Marketing Contacts API.

    Pure API client that handles HTTP requests, bearer authentication and
    error normalization. Payload shaping lives in the contact and segment
    services.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        self._api_key = api_key
        self._base_url = (base_url or settings.SENDGRID_API_BASE_URL).rstrip("/")
        self._timeout = timeout or settings.SENDGRID_REQUEST_TIMEOUT
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Create the async HTTP client on first use."""
        if self._client is None or self._client.is_closed:
            timeout = httpx.Timeout(self._timeout)
            limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
            self._client = httpx.AsyncClient(timeout=timeout, limits=limits)
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _resolve_api_key(self) -> str:
        api_key = self._api_key if self._api_key is not None else settings.SENDGRID_API_KEY
        if not api_key or not api_key.strip():
            logger.error("SENDGRID_API_KEY not configured")
            raise ConfigurationError("API key not configured")
        return api_key.strip()

    def _get_auth_headers(self) -> dict:
        """Get authorization headers for SendGrid API requests."""
        return {
            "Authorization": f"Bearer {self._resolve_api_key()}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _send(
        self,
        method: str,
        url: str,
        operation: str,
        headers: dict | None = None,
        body: dict | None = None,
    ) -> httpx.Response:
        """Send one request and log it; network failures become UpstreamError."""
        start = time.time()
        try:
            response = await self._get_client().request(method, url, headers=headers, json=body)
        except httpx.RequestError as e:
            duration_ms = round((time.time() - start) * 1000, 2)
            log_upstream_call(operation, method, None, duration_ms, error=str(e))
            raise UpstreamError(
                NETWORK_ERROR_STATUS, f"{type(e).__name__}: {e}", operation=operation
            ) from e

        duration_ms = round((time.time() - start) * 1000, 2)
        log_upstream_call(operation, method, response.status_code, duration_ms)
        return response

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        """
        Handle and validate SendGrid API response.

        Args:
            response: HTTP response from SendGrid
            operation: Operation name for logging

        Returns:
            dict: Parsed response data ({} for empty bodies)

        Raises:
            UpstreamError: If the response is not 2xx
        """
        if response.is_success:
            if not response.content:
                return {}
            try:
                data = response.json()
            except ValueError as e:
                logger.error(f"Failed to parse SendGrid {operation} response", error=str(e))
                raise UpstreamError(
                    response.status_code, response.text[:500], operation=operation
                ) from e
            return data if isinstance(data, dict) else {"result": data}

        raw_body = response.text or ""
        logger.error(
            f"SendGrid {operation} failed",
            status_code=response.status_code,
            response_text=raw_body[:200],
        )
        raise UpstreamError(response.status_code, raw_body, operation=operation)

    async def _call(
        self, method: str, path: str, operation: str, body: dict | None = None
    ) -> dict:
        headers = self._get_auth_headers()
        response = await self._send(method, f"{self._base_url}{path}", operation, headers, body)
        return self._handle_api_response(response, operation)

    # ------------------------------------------------------------------
    # Contacts
    # ------------------------------------------------------------------

    async def upsert_contacts(self, contacts: list[dict[str, Any]]) -> dict:
        """Add or update contacts (keyed by email). Returns {'job_id': ...}."""
        logger.info("Upserting contacts", count=len(contacts))
        return await self._call("PUT", CONTACTS_PATH, "upsert_contacts", {"contacts": contacts})

    async def search_contacts_by_emails(self, emails: list[str]) -> dict:
        """Exact lookup. Response 'result' is keyed by email."""
        return await self._call(
            "POST", CONTACTS_SEARCH_EMAILS_PATH, "search_contacts_by_emails", {"emails": emails}
        )

    async def search_contacts(self, query: str) -> dict:
        """Search contacts with a SGQL query."""
        return await self._call("POST", CONTACTS_SEARCH_PATH, "search_contacts", {"query": query})

    async def get_import_status(self, job_id: str) -> dict:
        return await self._call("GET", f"{CONTACTS_IMPORTS_PATH}/{job_id}", "get_import_status")

    async def list_field_definitions(self) -> dict:
        return await self._call("GET", FIELD_DEFINITIONS_PATH, "list_field_definitions")

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    async def start_export(self, file_type: str = "json") -> dict:
        """Start a bulk contact export. Returns {'id': ...}."""
        body = {"file_type": file_type, "field_selections": ["*"]}
        return await self._call("POST", CONTACTS_EXPORTS_PATH, "start_export", body)

    async def get_export_status(self, export_id: str) -> dict:
        return await self._call("GET", f"{CONTACTS_EXPORTS_PATH}/{export_id}", "get_export_status")

    async def download_export(self, url: str) -> bytes:
        """
        Download an export result file.

        The URL is pre-signed, so no SendGrid credentials are attached.

        Raises:
            UpstreamError: If the download does not return 2xx
        """
        response = await self._send("GET", url, "download_export")
        if not response.is_success:
            logger.error(
                "SendGrid export download failed",
                status_code=response.status_code,
                reason=response.reason_phrase,
            )
            raise UpstreamError(
                response.status_code, response.reason_phrase or "", operation="download_export"
            )
        return response.content

    # ------------------------------------------------------------------
    # Segments
    # ------------------------------------------------------------------

    async def list_segments(self) -> dict:
        return await self._call("GET", SEGMENTS_PATH, "list_segments")

    async def get_segment(self, segment_id: str) -> dict:
        return await self._call("GET", f"{SEGMENTS_PATH}/{segment_id}", "get_segment")

    async def create_segment(self, name: str, query_dsl: str) -> dict:
        body = {"name": name, "query_dsl": query_dsl}
        try:
            return await self._call("POST", SEGMENTS_PATH, "create_segment", body)
        except UpstreamError:
            logger.error("Request payload", payload=json.dumps(body))
            raise

    async def update_segment(self, segment_id: str, name: str, query_dsl: str) -> dict:
        body = {"name": name, "query_dsl": query_dsl}
        try:
            return await self._call(
                "PATCH", f"{SEGMENTS_PATH}/{segment_id}", "update_segment", body
            )
        except UpstreamError:
            logger.error("Request payload", payload=json.dumps(body))
            raise

    async def delete_segment(self, segment_id: str) -> dict:
        return await self._call("DELETE", f"{SEGMENTS_PATH}/{segment_id}", "delete_segment")

    async def refresh_segment(self, segment_id: str, user_time_zone: str = "UTC") -> dict:
        return await self._call(
            "POST",
            f"{SEGMENTS_PATH}/refresh/{segment_id}",
            "refresh_segment",
            {"user_time_zone": user_time_zone},
        )


# Global instance
sendgrid_client = SendGridClient()
