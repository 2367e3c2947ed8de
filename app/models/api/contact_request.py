# app/models/api/contact_request.py
"""
Contact API request models.
Used by routes for input validation. Email format and tag shape checks live
in the contact service so every entry point reports the same messages.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CreateContactRequest(BaseModel):
    """Request for adding or updating one contact (snake_case or camelCase names)."""

    model_config = ConfigDict(extra="allow")

    email: str | None = Field(default=None, description="Contact email (upsert key)")
    tags: Any = Field(default=None, description="Tag list or comma-separated tag text")
    custom_fields: dict[str, Any] | None = Field(
        default=None, description="Extra SendGrid custom field values"
    )
    name: str | None = Field(default=None, description="Display name for the pending job list")


class CheckEmailRequest(BaseModel):
    """Request for a duplicate check."""

    email: str | None = Field(default=None, description="Email to look up")


class UpdateTagsRequest(BaseModel):
    """Request for setting the same tags on several contacts."""

    emails: list[str] = Field(default_factory=list, description="Contacts to update")
    tags: Any = Field(default=None, description="Comma-separated tag text")


class BulkUpdateTagsRequest(BaseModel):
    """Request for per-contact tag updates."""

    updates: list[Any] = Field(default_factory=list, description="Entries of {email, tags}")


class DownloadRequest(BaseModel):
    """Request for downloading and parsing one export file."""

    url: str | None = Field(default=None, description="Export file URL")


class ColumnsRequest(BaseModel):
    """Request for saving visible contact table columns."""

    columns: list[str] = Field(..., description="Visible field names, in display order")
