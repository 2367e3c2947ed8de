# app/models/api/contact_response.py
"""
Contact API response models.
Used by routes for output formatting. Wire names follow the existing UI
(``jobId``, ``errorInfo``, ``lastUpdated``) through serialization aliases.
"""

from typing import Any

from pydantic import BaseModel, Field


class SuccessResponse(BaseModel):
    success: bool = True


class JobSubmittedResponse(SuccessResponse):
    """Response for any call that starts a SendGrid import job."""

    job_id: str | None = Field(None, serialization_alias="jobId", description="Import job id")


class EmailCheckResponse(SuccessResponse):
    exists: bool = Field(..., description="Whether a contact with this email exists")
    contact: dict[str, Any] | None = Field(None, description="Matched contact, if any")


class JobStatusResponse(SuccessResponse):
    status: str = Field(..., description="SendGrid import job status")
    error_info: dict[str, Any] | None = Field(
        None, serialization_alias="errorInfo", description="Partial failure counts"
    )
    job: dict[str, Any] = Field(default_factory=dict, description="Raw job document")


class CustomFieldsResponse(SuccessResponse):
    custom_fields: list[dict[str, Any]] = Field(default_factory=list)


class ExportUrlsResponse(SuccessResponse):
    urls: list[str] = Field(..., description="Download URLs of the export files")
    export_id: str = Field(..., serialization_alias="exportId", description="Export job id")


class ContactsPayload(BaseModel):
    contacts: list[dict[str, Any]] = Field(default_factory=list)


class DownloadResponse(SuccessResponse):
    data: ContactsPayload = Field(..., description="Parsed contact records")
    skipped: int = Field(default=0, description="Lines or rows that could not be parsed")
    format: str = Field(default="ndjson", description="Detected file format")


class CachedContactsResponse(SuccessResponse):
    contacts: list[dict[str, Any]] = Field(default_factory=list)
    total: int = Field(..., description="Contacts after filtering")
    last_updated: int = Field(
        ..., serialization_alias="lastUpdated", description="Fetch time, epoch milliseconds"
    )
    using_cached_data: bool = Field(..., serialization_alias="usingCachedData")
    state: str = Field(..., description="Cache freshness: fresh, stale or expired")


class TagsResponse(SuccessResponse):
    tags: list[str] = Field(default_factory=list)


class PendingJobsResponse(SuccessResponse):
    jobs: list[dict[str, Any]] = Field(default_factory=list)
    pending_count: int = Field(default=0, serialization_alias="pendingCount")


class ColumnsResponse(SuccessResponse):
    columns: list[str] = Field(default_factory=list)
